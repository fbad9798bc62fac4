"""Integration tests for notification endpoints."""

from datetime import datetime, timezone
from uuid import uuid4

from fastapi.testclient import TestClient

from teachshare.models import Notification
from teachshare.routes.notifications import router
from tests.helpers import build_app, make_result


def _notification(user_id, read_at=None):
    return Notification(
        id=uuid4(),
        user_id=user_id,
        notification_type="resource_comment",
        title="New comment on your resource",
        body="Someone commented",
        link="/resources/abc",
        metadata_={"resource_id": "abc"},
        read_at=read_at,
        created_at=datetime.now(timezone.utc),
    )


class TestNotifications:

    def test_list(self, db_session, teacher):
        items = [_notification(teacher.id), _notification(teacher.id, read_at=datetime.now(timezone.utc))]
        db_session.execute.side_effect = [
            make_result(scalar=2),
            make_result(scalar=1),
            make_result(scalars=items),
        ]
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.get("/api/notifications")

        assert resp.status_code == 200
        data = resp.json()
        assert (data["total"], data["unread_count"]) == (2, 1)
        assert data["items"][0]["metadata"] == {"resource_id": "abc"}

    def test_requires_login(self, db_session):
        client = TestClient(build_app(router, db_session))
        assert client.get("/api/notifications").status_code == 401

    def test_unread_count(self, db_session, teacher):
        db_session.execute.return_value = make_result(scalar=4)
        client = TestClient(build_app(router, db_session, user=teacher))

        assert client.get("/api/notifications/unread-count").json() == {"unread_count": 4}

    def test_mark_read(self, db_session, teacher):
        notif = _notification(teacher.id)
        db_session.execute.return_value = make_result(scalar_one_or_none=notif)
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.post(f"/api/notifications/{notif.id}/read")

        assert resp.status_code == 200
        assert resp.json()["read_at"] is not None
        db_session.commit.assert_awaited_once()

    def test_mark_read_is_idempotent(self, db_session, teacher):
        notif = _notification(teacher.id, read_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
        db_session.execute.return_value = make_result(scalar_one_or_none=notif)
        client = TestClient(build_app(router, db_session, user=teacher))

        client.post(f"/api/notifications/{notif.id}/read")

        assert notif.read_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
        db_session.commit.assert_not_awaited()

    def test_mark_read_missing(self, db_session, teacher):
        db_session.execute.return_value = make_result(scalar_one_or_none=None)
        client = TestClient(build_app(router, db_session, user=teacher))

        assert client.post(f"/api/notifications/{uuid4()}/read").status_code == 404

    def test_mark_read_someone_elses(self, db_session, teacher):
        notif = _notification(uuid4())
        db_session.execute.return_value = make_result(scalar_one_or_none=notif)
        client = TestClient(build_app(router, db_session, user=teacher))

        assert client.post(f"/api/notifications/{notif.id}/read").status_code == 403

    def test_read_all(self, db_session, teacher):
        client = TestClient(build_app(router, db_session, user=teacher))

        resp = client.post("/api/notifications/read-all")

        assert resp.json() == {"unread_count": 0}
        db_session.execute.assert_awaited_once()
        db_session.commit.assert_awaited_once()
