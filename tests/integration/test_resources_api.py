"""Integration tests for resource endpoints."""

from __future__ import annotations

from collections import namedtuple
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from teachshare.models import (
    Notification,
    RcTransaction,
    Resource,
    ResourceComment,
    ResourceDownload,
    ResourceView,
    ResourceVote,
)
from teachshare.routes.resources import router
from tests.factories import CommentFactory, ResourceFactory, UserFactory
from tests.helpers import build_app, make_result

BrowseRow = namedtuple("BrowseRow", ["Resource", "contributor_name"])

NEW_RESOURCE = {
    "title": "Fractions on a number line",
    "description": "Two pages of practice",
    "category": "worksheet",
    "resource_type": "pdf",
    "subject": "math",
    "grade_level": "3rd",
    "tags": ["fractions"],
    "file_url": "https://files.example.com/fractions.pdf",
}


def _added(db_session, model):
    return [c.args[0] for c in db_session.add.call_args_list if isinstance(c.args[0], model)]


# ---------------------------------------------------------------------------
# Browse / detail
# ---------------------------------------------------------------------------


class TestBrowse:

    def test_browse_paginates(self, db_session, teacher):
        resources = ResourceFactory.create_batch(2, contributor_id=teacher.id)
        db_session.execute.side_effect = [
            make_result(scalar=7),
            make_result(rows=[BrowseRow(r, teacher.name) for r in resources]),
        ]
        client = TestClient(build_app(router, db_session))

        resp = client.get("/api/resources", params={"subject": "math", "page": 2, "per_page": 2})

        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 7
        assert data["page"] == 2
        assert data["per_page"] == 2
        assert [item["contributor_name"] for item in data["items"]] == [teacher.name] * 2

    @pytest.mark.parametrize(
        "params",
        [{"subject": "alchemy"}, {"sort": "random"}, {"per_page": 500}, {"page": 0}],
    )
    def test_invalid_filters(self, db_session, params):
        client = TestClient(build_app(router, db_session))
        assert client.get("/api/resources", params=params).status_code == 422

    def test_featured(self, db_session):
        featured = ResourceFactory.create(is_featured=True)
        db_session.execute.return_value = make_result(scalars=[featured])
        client = TestClient(build_app(router, db_session))

        resp = client.get("/api/resources/featured")

        assert resp.status_code == 200
        assert resp.json()[0]["id"] == str(featured.id)

    def test_get_with_contributor(self, db_session, teacher, resource):
        db_session.execute.return_value = make_result(first=(resource, teacher))
        client = TestClient(build_app(router, db_session))

        resp = client.get(f"/api/resources/{resource.id}")

        assert resp.status_code == 200
        data = resp.json()
        assert data["contributor"]["id"] == str(teacher.id)
        assert data["contributor_name"] == teacher.name

    def test_get_missing(self, db_session):
        db_session.execute.return_value = make_result(first=None)
        client = TestClient(build_app(router, db_session))

        assert client.get(f"/api/resources/{uuid4()}").status_code == 404

    def test_related_for_unknown_resource_is_empty(self, db_session):
        db_session.execute.return_value = make_result(scalar_one_or_none=None)
        client = TestClient(build_app(router, db_session))

        resp = client.get(f"/api/resources/{uuid4()}/related")

        assert resp.json() == []

    def test_related(self, db_session, resource):
        sibling = ResourceFactory.create(subject=resource.subject)
        db_session.execute.side_effect = [
            make_result(scalar_one_or_none=resource),
            make_result(scalars=[sibling]),
        ]
        client = TestClient(build_app(router, db_session))

        resp = client.get(f"/api/resources/{resource.id}/related")

        assert [r["id"] for r in resp.json()] == [str(sibling.id)]


# ---------------------------------------------------------------------------
# Create / update / submit
# ---------------------------------------------------------------------------


class TestCreate:

    def test_pending_submission_awards_credits(self, db_session, teacher):
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.post("/api/resources", json=NEW_RESOURCE)

        assert resp.status_code == 201
        assert resp.json()["status"] == "pending"
        (created,) = _added(db_session, Resource)
        assert created.contributor_id == teacher.id
        assert created.tags == ["fractions"]
        assert teacher.reputation_credits == 65
        assert teacher.total_resources_submitted == 1
        (txn,) = _added(db_session, RcTransaction)
        assert txn.reason == "resource_submitted"
        assert txn.reference_id == created.id

    def test_draft_awards_nothing(self, db_session, teacher):
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.post("/api/resources", json={**NEW_RESOURCE, "as_draft": True})

        assert resp.json()["status"] == "draft"
        assert teacher.reputation_credits == 60
        assert _added(db_session, RcTransaction) == []

    def test_member_cannot_submit(self, db_session, member):
        client = TestClient(build_app(router, db_session, user=member))

        resp = client.post("/api/resources", json=NEW_RESOURCE)

        assert resp.status_code == 403
        db_session.add.assert_not_called()

    def test_anonymous_cannot_submit(self, db_session):
        client = TestClient(build_app(router, db_session))
        assert client.post("/api/resources", json=NEW_RESOURCE).status_code == 401

    def test_bad_url_rejected(self, db_session, teacher):
        client = TestClient(build_app(router, db_session, user=teacher))
        resp = client.post("/api/resources", json={**NEW_RESOURCE, "file_url": "javascript:alert(1)"})
        assert resp.status_code == 422


class TestUpdate:

    def test_owner_updates(self, db_session, teacher, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.patch(f"/api/resources/{resource.id}", json={"title": "Renamed"})

        assert resp.status_code == 200
        assert resource.title == "Renamed"
        db_session.commit.assert_awaited_once()

    def test_moderator_updates_others(self, db_session, moderator, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=moderator))

        resp = client.patch(f"/api/resources/{resource.id}", json={"subject": "science"})

        assert resp.status_code == 200
        assert resource.subject == "science"

    def test_stranger_forbidden(self, db_session, resource):
        stranger = UserFactory.create()
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=stranger))

        resp = client.patch(f"/api/resources/{resource.id}", json={"title": "Mine now"})

        assert resp.status_code == 403
        db_session.commit.assert_not_awaited()

    def test_null_for_required_field_rejected(self, db_session, teacher, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.patch(f"/api/resources/{resource.id}", json={"title": None, "subject": None})

        assert resp.status_code == 422
        assert {e["loc"][-1] for e in resp.json()["detail"]} == {"title", "subject"}
        assert resource.title is not None
        assert resource.subject is not None
        db_session.commit.assert_not_awaited()

    def test_optional_field_can_be_cleared(self, db_session, teacher, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.patch(f"/api/resources/{resource.id}", json={"description": None})

        assert resp.status_code == 200
        assert resource.description is None


class TestSubmitDraft:

    def test_submit_draft(self, db_session, teacher):
        draft = ResourceFactory.create(contributor_id=teacher.id, status="draft")
        db_session.execute.return_value = make_result(scalar_one_or_none=draft)
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.post(f"/api/resources/{draft.id}/submit")

        assert resp.status_code == 200
        assert draft.status == "pending"
        assert teacher.reputation_credits == 65

    def test_only_drafts(self, db_session, teacher, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=teacher))

        assert client.post(f"/api/resources/{resource.id}/submit").status_code == 400

    def test_not_owner(self, db_session, moderator, teacher):
        draft = ResourceFactory.create(contributor_id=teacher.id, status="draft")
        db_session.execute.return_value = make_result(scalar_one_or_none=draft)
        client = TestClient(build_app(router, db_session, user=moderator))

        assert client.post(f"/api/resources/{draft.id}/submit").status_code == 403


# ---------------------------------------------------------------------------
# Views / downloads
# ---------------------------------------------------------------------------


class TestViews:

    def test_first_view_counts(self, db_session, teacher, resource):
        viewer = UserFactory.create()
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=viewer))

        with patch("teachshare.routes.resources.claim_once", AsyncMock(return_value=True)) as claim:
            resp = client.post(f"/api/resources/{resource.id}/view")

        assert resp.status_code == 200
        assert resource.view_count == 1
        (view,) = _added(db_session, ResourceView)
        assert view.user_id == viewer.id
        assert claim.call_args.args == (f"view:{resource.id}:user:{viewer.id}", 3600)

    def test_repeat_view_ignored(self, db_session, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session))

        with patch("teachshare.routes.resources.claim_once", AsyncMock(return_value=False)) as claim:
            resp = client.post(f"/api/resources/{resource.id}/view")

        assert resp.json() == {"success": True}
        assert resource.view_count == 0
        assert claim.call_args.args[0].startswith(f"view:{resource.id}:ip:")

    def test_counts_when_redis_unavailable(self, db_session, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session))

        with patch(
            "teachshare.routes.resources.claim_once",
            AsyncMock(side_effect=RuntimeError("Redis not initialized")),
        ):
            client.post(f"/api/resources/{resource.id}/view")

        assert resource.view_count == 1


class TestDownloads:

    def test_download_credits_owner(self, db_session, teacher, resource):
        downloader = UserFactory.create()
        db_session.execute.side_effect = [
            make_result(scalar_one_or_none=resource),
            make_result(scalar_one_or_none=teacher),
        ]
        client = TestClient(build_app(router, db_session, user=downloader))

        with patch("teachshare.routes.resources.claim_once", AsyncMock(return_value=True)) as claim:
            resp = client.post(f"/api/resources/{resource.id}/download")

        assert resp.status_code == 200
        assert resp.json()["file_url"] == resource.file_url
        assert resource.download_count == 1
        assert teacher.total_downloads_received == 1
        assert teacher.reputation_credits == 61
        (txn,) = _added(db_session, RcTransaction)
        assert txn.reason == "resource_downloaded"
        assert len(_added(db_session, ResourceDownload)) == 1
        assert claim.call_args.args == (f"download:{resource.id}:user:{downloader.id}", 3600)

    def test_own_download_not_credited(self, db_session, teacher, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=teacher))

        with patch("teachshare.routes.resources.claim_once", AsyncMock(return_value=True)) as claim:
            client.post(f"/api/resources/{resource.id}/download")

        assert resource.download_count == 1
        assert teacher.reputation_credits == 60
        assert db_session.execute.await_count == 1
        claim.assert_not_awaited()

    def test_first_anonymous_download_credited_by_address(self, db_session, teacher, resource):
        db_session.execute.side_effect = [
            make_result(scalar_one_or_none=resource),
            make_result(scalar_one_or_none=teacher),
        ]
        client = TestClient(build_app(router, db_session))

        with patch("teachshare.routes.resources.claim_once", AsyncMock(return_value=True)) as claim:
            client.post(f"/api/resources/{resource.id}/download")

        assert teacher.reputation_credits == 61
        assert claim.call_args.args[0].startswith(f"download:{resource.id}:ip:")

    def test_repeat_anonymous_download_not_credited(self, db_session, teacher, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session))

        with patch("teachshare.routes.resources.claim_once", AsyncMock(return_value=False)):
            for _ in range(5):
                resp = client.post(f"/api/resources/{resource.id}/download")

        assert resp.status_code == 200
        assert resource.download_count == 5
        assert len(_added(db_session, ResourceDownload)) == 5
        assert teacher.reputation_credits == 60
        assert teacher.total_downloads_received == 0
        assert _added(db_session, RcTransaction) == []
        assert db_session.execute.await_count == 5

    def test_credit_skipped_when_redis_unavailable(self, db_session, teacher, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=UserFactory.create()))

        with patch(
            "teachshare.routes.resources.claim_once",
            AsyncMock(side_effect=RuntimeError("Redis not initialized")),
        ):
            resp = client.post(f"/api/resources/{resource.id}/download")

        assert resp.status_code == 200
        assert resource.download_count == 1
        assert teacher.reputation_credits == 60


# ---------------------------------------------------------------------------
# Votes
# ---------------------------------------------------------------------------


class TestVotes:

    @pytest.fixture
    def voter(self):
        return UserFactory.create()

    def test_upvote(self, db_session, voter, teacher, resource):
        db_session.execute.side_effect = [
            make_result(scalar_one_or_none=resource),
            make_result(scalar_one_or_none=None),
            make_result(scalar_one_or_none=teacher),
        ]
        client = TestClient(build_app(router, db_session, user=voter))

        resp = client.post(f"/api/resources/{resource.id}/vote", json={"value": "up"})

        assert resp.json() == {"success": True, "vote": 1}
        assert (resource.upvote_count, resource.downvote_count, resource.net_votes) == (1, 0, 1)
        assert teacher.reputation_credits == 62
        assert teacher.total_upvotes_received == 1
        (vote,) = _added(db_session, ResourceVote)
        assert vote.value == 1
        (txn,) = _added(db_session, RcTransaction)
        assert txn.reason == "resource_upvoted"
        assert txn.meta == {"voter_id": str(voter.id)}

    def test_flip_up_to_down(self, db_session, voter, teacher, resource):
        resource.upvote_count, resource.net_votes = 1, 1
        teacher.total_upvotes_received = 1
        existing = ResourceVote(resource_id=resource.id, user_id=voter.id, value=1)
        db_session.execute.side_effect = [
            make_result(scalar_one_or_none=resource),
            make_result(scalar_one_or_none=existing),
            make_result(scalar_one_or_none=teacher),
        ]
        client = TestClient(build_app(router, db_session, user=voter))

        resp = client.post(f"/api/resources/{resource.id}/vote", json={"value": "down"})

        assert resp.json()["vote"] == -1
        assert existing.value == -1
        assert (resource.upvote_count, resource.downvote_count, resource.net_votes) == (0, 1, -1)
        assert teacher.reputation_credits == 57
        assert teacher.total_upvotes_received == 0

    def test_remove_reverses_credit(self, db_session, voter, teacher, resource):
        resource.upvote_count, resource.net_votes = 1, 1
        existing = ResourceVote(resource_id=resource.id, user_id=voter.id, value=1)
        db_session.execute.side_effect = [
            make_result(scalar_one_or_none=resource),
            make_result(scalar_one_or_none=existing),
            make_result(scalar_one_or_none=teacher),
        ]
        client = TestClient(build_app(router, db_session, user=voter))

        resp = client.post(f"/api/resources/{resource.id}/vote", json={"value": "remove"})

        assert resp.json()["vote"] is None
        db_session.delete.assert_awaited_once_with(existing)
        assert resource.net_votes == 0
        assert teacher.reputation_credits == 58
        (txn,) = _added(db_session, RcTransaction)
        assert txn.reason == "resource_vote_removed"

    def test_repeat_vote_is_noop(self, db_session, voter, resource):
        existing = ResourceVote(resource_id=resource.id, user_id=voter.id, value=1)
        db_session.execute.side_effect = [
            make_result(scalar_one_or_none=resource),
            make_result(scalar_one_or_none=existing),
        ]
        client = TestClient(build_app(router, db_session, user=voter))

        resp = client.post(f"/api/resources/{resource.id}/vote", json={"value": "up"})

        assert resp.json()["vote"] == 1
        db_session.commit.assert_not_awaited()

    def test_self_vote_rejected(self, db_session, teacher, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.post(f"/api/resources/{resource.id}/vote", json={"value": "up"})

        assert resp.status_code == 400

    def test_invalid_value(self, db_session, voter, resource):
        client = TestClient(build_app(router, db_session, user=voter))
        resp = client.post(f"/api/resources/{resource.id}/vote", json={"value": "sideways"})
        assert resp.status_code == 422

    def test_my_vote(self, db_session, voter, resource):
        db_session.execute.return_value = make_result(scalar_one_or_none=-1)
        client = TestClient(build_app(router, db_session, user=voter))

        assert client.get(f"/api/resources/{resource.id}/vote").json()["vote"] == -1


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class TestComments:

    def test_list(self, db_session, teacher, resource):
        comment = CommentFactory.create(resource_id=resource.id, user_id=teacher.id)
        db_session.execute.return_value = make_result(rows=[(comment, teacher.name, None)])
        client = TestClient(build_app(router, db_session))

        resp = client.get(f"/api/resources/{resource.id}/comments")

        assert resp.status_code == 200
        assert resp.json()[0]["user_name"] == teacher.name

    def test_add_notifies_owner(self, db_session, teacher, resource):
        commenter = UserFactory.create()
        db_session.execute.return_value = make_result(scalar_one_or_none=resource)
        client = TestClient(build_app(router, db_session, user=commenter))

        resp = client.post(f"/api/resources/{resource.id}/comments", json={"content": "Used this today!"})

        assert resp.status_code == 201
        assert resource.comment_count == 1
        assert resp.json()["created_at"] is not None
        (comment,) = _added(db_session, ResourceComment)
        assert comment.user_id == commenter.id
        (notification,) = _added(db_session, Notification)
        assert notification.user_id == teacher.id
        assert notification.notification_type == "resource_comment"

    def test_reply_requires_parent_on_same_resource(self, db_session, resource):
        commenter = UserFactory.create()
        foreign = CommentFactory.create(resource_id=uuid4())
        db_session.execute.side_effect = [
            make_result(scalar_one_or_none=resource),
            make_result(scalar_one_or_none=foreign),
        ]
        client = TestClient(build_app(router, db_session, user=commenter))

        resp = client.post(
            f"/api/resources/{resource.id}/comments",
            json={"content": "Agreed", "parent_id": str(foreign.id)},
        )

        assert resp.status_code == 400
        db_session.add.assert_not_called()

    def test_reply_notifies_parent_author(self, db_session, teacher, resource):
        parent_author = UserFactory.create()
        commenter = UserFactory.create()
        parent = CommentFactory.create(resource_id=resource.id, user_id=parent_author.id)
        db_session.execute.side_effect = [
            make_result(scalar_one_or_none=resource),
            make_result(scalar_one_or_none=parent),
            make_result(scalar_one_or_none=parent),
        ]
        client = TestClient(build_app(router, db_session, user=commenter))

        resp = client.post(
            f"/api/resources/{resource.id}/comments",
            json={"content": "Agreed", "parent_id": str(parent.id)},
        )

        assert resp.status_code == 201
        recipients = {n.user_id: n.notification_type for n in _added(db_session, Notification)}
        assert recipients == {parent_author.id: "comment_reply", teacher.id: "resource_comment"}

    def test_edit_own_comment(self, db_session, teacher):
        comment = CommentFactory.create(user_id=teacher.id)
        db_session.execute.return_value = make_result(scalar_one_or_none=comment)
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.patch(f"/api/resources/comments/{comment.id}", json={"content": "Fixed typo"})

        assert resp.status_code == 200
        assert resp.json()["is_edited"] is True
        assert comment.content == "Fixed typo"

    def test_edit_others_comment_forbidden(self, db_session, teacher):
        comment = CommentFactory.create()
        db_session.execute.return_value = make_result(scalar_one_or_none=comment)
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.patch(f"/api/resources/comments/{comment.id}", json={"content": "Hijack"})

        assert resp.status_code == 403
