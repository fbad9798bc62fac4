"""Test data factories for TeachShare.

Factories build unsaved ORM instances with every column populated, so
response schemas can validate them without a database round trip.
"""

from tests.factories.collection_factory import CollectionFactory
from tests.factories.proposal_factory import ProposalFactory
from tests.factories.resource_factory import CommentFactory, ResourceFactory
from tests.factories.user_factory import UserFactory

__all__ = [
    "UserFactory",
    "ResourceFactory",
    "CommentFactory",
    "ProposalFactory",
    "CollectionFactory",
]
