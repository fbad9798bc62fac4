"""Global pytest fixtures for TeachShare.

This module provides shared fixtures for testing including:
- A mocked async database session
- A mocked Redis client
- Sample users, resources and proposals built from the factories
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from collections.abc import Generator  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402

from tests.factories import ProposalFactory, ResourceFactory, UserFactory  # noqa: E402
from tests.helpers import make_result  # noqa: E402


def utcnow() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def _assign_server_defaults(obj: Any, *args: Any, **kwargs: Any) -> None:
    """Stand in for a refresh by filling the columns Postgres would default."""
    if getattr(obj, "id", None) is None:
        obj.id = uuid4()
    if hasattr(obj, "created_at") and obj.created_at is None:
        obj.created_at = utcnow()


# ===========================================
# DATABASE SESSION FIXTURES
# ===========================================


@pytest.fixture
def db_session() -> Generator[AsyncMock, None, None]:
    """Create a mock async database session.

    ``add`` is synchronous on a real session, so it is a plain MagicMock.
    """
    session = AsyncMock()
    session.add = MagicMock()
    session.execute = AsyncMock(return_value=make_result())
    session.commit = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock(side_effect=_assign_server_defaults)
    session.delete = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()

    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)

    yield session


# ===========================================
# REDIS FIXTURES
# ===========================================


@pytest.fixture
def mock_redis_client() -> MagicMock:
    """Create a mock Redis client with the commands the app uses."""
    redis = MagicMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.ping = AsyncMock(return_value=True)
    redis.aclose = AsyncMock()

    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, 1, 1, True])
    redis.pipeline = MagicMock(return_value=pipe)

    return redis


# ===========================================
# DOMAIN FIXTURES
# ===========================================


@pytest.fixture
def teacher():
    """An active teacher with enough credits to flag and vote."""
    return UserFactory.create(role="teacher", reputation_credits=60, contributor_level="contributor")


@pytest.fixture
def moderator():
    return UserFactory.create(role="moderator", reputation_credits=520, contributor_level="expert")


@pytest.fixture
def admin():
    return UserFactory.create(role="admin", reputation_credits=1200, contributor_level="master")


@pytest.fixture
def member():
    """A plain member account with no teaching role."""
    return UserFactory.create(role="user", reputation_credits=0)


@pytest.fixture
def resource(teacher):
    return ResourceFactory.create(contributor_id=teacher.id)


@pytest.fixture
def active_proposal(moderator):
    return ProposalFactory.create_active(author_id=moderator.id)

