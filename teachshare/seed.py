"""Seed script: creates sample users, resources, collections and a proposal for demos.

Usage:
    python -m teachshare.seed
"""

import asyncio
from datetime import datetime, timedelta, timezone

from passlib.hash import bcrypt

from teachshare.constants import RC_CONFIG
from teachshare.database import close_db, init_db, transaction
from teachshare.logging_config import configure_logging, get_logger
from teachshare.models import (
    Collection,
    CollectionResource,
    Proposal,
    Resource,
    ResourceComment,
    User,
)
from teachshare.services.reputation_service import apply_credits

logger = get_logger(__name__)

NOW = datetime.now(timezone.utc)

USERS = [
    {"username": "admin", "email": "admin@teachshare.dev", "name": "Site Admin", "role": "admin", "rc": 1200},
    {"username": "mod_rivera", "email": "rivera@teachshare.dev", "name": "Ana Rivera", "role": "moderator", "rc": 540},
    {"username": "ms_okafor", "email": "okafor@teachshare.dev", "name": "Ngozi Okafor", "role": "teacher", "rc": 230},
    {"username": "mr_lindqvist", "email": "lindqvist@teachshare.dev", "name": "Erik Lindqvist", "role": "teacher", "rc": 85},
    {"username": "new_teacher", "email": "newbie@teachshare.dev", "name": "Sam Patel", "role": "teacher", "rc": 12},
]

RESOURCES = [
    {
        "author": 2,
        "title": "Fractions with Pizza: Hands-on Lesson",
        "summary": "A 45 minute lesson introducing equivalent fractions with paper pizzas.",
        "category": "lesson_plan",
        "resource_type": "pdf",
        "subject": "math",
        "grade_level": "3rd",
        "tags": ["fractions", "hands-on"],
        "status": "approved",
        "net_votes": 14,
    },
    {
        "author": 2,
        "title": "Photosynthesis Diagram Worksheet",
        "summary": "Label the inputs and outputs of photosynthesis.",
        "category": "worksheet",
        "resource_type": "pdf",
        "subject": "science",
        "grade_level": "6th",
        "tags": ["biology", "plants"],
        "status": "approved",
        "net_votes": 9,
    },
    {
        "author": 3,
        "title": "Causes of World War I: Card Sort",
        "summary": "Students group causes into militarism, alliances, imperialism and nationalism.",
        "category": "interactive",
        "resource_type": "doc",
        "subject": "history",
        "grade_level": "10th",
        "tags": ["wwi", "card-sort"],
        "status": "approved",
        "net_votes": 6,
    },
    {
        "author": 3,
        "title": "Intro to Python Loops Slides",
        "summary": "Slide deck covering for and while loops with live-coding prompts.",
        "category": "presentation",
        "resource_type": "ppt",
        "subject": "computer_science",
        "grade_level": "9th",
        "tags": ["python", "loops"],
        "status": "pending",
        "net_votes": 0,
    },
    {
        "author": 4,
        "title": "Persuasive Essay Rubric",
        "summary": "Four-point rubric for argument, evidence and organization.",
        "category": "assessment",
        "resource_type": "doc",
        "subject": "english",
        "grade_level": "8th",
        "tags": ["writing", "rubric"],
        "status": "draft",
        "net_votes": 0,
    },
]


async def seed():
    configure_logging(level="INFO", json_format=False)
    await init_db()

    async with transaction() as db:
        users = []
        for ucfg in USERS:
            ucfg = dict(ucfg)
            rc = ucfg.pop("rc")
            user = User(password_hash=bcrypt.hash("password123"), status="active", **ucfg)
            db.add(user)
            await db.flush()
            await apply_credits(db, user, rc, "manual_adjustment", meta={"note": "seed"})
            users.append(user)
        await db.flush()

        resources = []
        for i, rcfg in enumerate(RESOURCES):
            rcfg = dict(rcfg)
            author = users[rcfg.pop("author")]
            net_votes = rcfg.pop("net_votes")
            created = NOW - timedelta(days=20 - i * 3)
            resource = Resource(
                contributor_id=author.id,
                upvote_count=net_votes,
                net_votes=net_votes,
                view_count=net_votes * 11,
                download_count=net_votes * 3,
                is_featured=i == 0,
                is_editor_pick=i == 1,
                created_at=created,
                published_at=created + timedelta(days=1) if rcfg["status"] == "approved" else None,
                **rcfg,
            )
            db.add(resource)
            resources.append(resource)
            if resource.status != "draft":
                author.total_resources_submitted = (author.total_resources_submitted or 0) + 1
            if resource.status == "approved":
                author.total_resources_approved = (author.total_resources_approved or 0) + 1
                author.total_upvotes_received = (author.total_upvotes_received or 0) + net_votes
        await db.flush()

        db.add(
            ResourceComment(
                resource_id=resources[0].id,
                user_id=users[3].id,
                content="Used this with my class today. The paper pizzas were a hit!",
            )
        )
        resources[0].comment_count = 1

        collection = Collection(
            owner_id=users[3].id,
            title="Elementary Math Favorites",
            description="Go-to activities for grades 2-4.",
            visibility="public",
            tags=["math", "elementary"],
            resource_count=2,
        )
        db.add(collection)
        await db.flush()
        for order, resource in enumerate(resources[:2]):
            db.add(CollectionResource(collection_id=collection.id, resource_id=resource.id, order_index=order))

        proposal = Proposal(
            author_id=users[1].id,
            title="Require standards tags on approved resources",
            summary="Every approved resource should list at least one curriculum standard.",
            body=(
                "Standards tags make resources much easier to find when planning units. "
                "This proposal asks moderators to send resources without standards back to "
                "their contributors before approval."
            ),
            status="active",
            snapshot_rc=users[1].reputation_credits,
            min_rc_to_create=RC_CONFIG["MIN_RC_TO_CREATE_PROPOSAL"],
            min_rc_to_vote=RC_CONFIG["MIN_RC_TO_VOTE_ON_PROPOSAL"],
            voting_duration_days=7,
            activated_at=NOW - timedelta(days=2),
            voting_ends_at=NOW + timedelta(days=5),
        )
        db.add(proposal)

    logger.info("seed_complete", user_count=len(users), resource_count=len(resources))

    print("\n" + "=" * 60)
    print("SEED DATA CREATED SUCCESSFULLY")
    print("=" * 60)
    print("\nUsers (password: password123):")
    for user in users:
        print(f"  {user.username:<14} {user.role:<10} {user.reputation_credits:>5} RC  {user.contributor_level}")
    print(f"\nResources: {len(resources)}")
    print(f"Collections: 1 ({collection.title})")
    print(f"Active proposal: {proposal.title}")
    print("=" * 60)

    await close_db()


if __name__ == "__main__":
    asyncio.run(seed())
