"""Integration tests for the auth and waitlist endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from teachshare.auth import create_access_token, create_refresh_token, hash_password
from teachshare.models import RcTransaction, User, WaitlistEntry
from teachshare.routes.auth import router as auth_router
from teachshare.routes.waitlist import router as waitlist_router
from tests.factories import UserFactory
from tests.helpers import build_app, make_result


def _added(db_session, model):
    return [c.args[0] for c in db_session.add.call_args_list if isinstance(c.args[0], model)]


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------


class TestRegister:

    def test_register_creates_member(self, db_session, mock_redis_client):
        db_session.execute.return_value = make_result(scalar_one_or_none=None)
        client = TestClient(build_app(auth_router, db_session))

        with patch("teachshare.routes.auth.get_redis", return_value=mock_redis_client):
            resp = client.post(
                "/api/auth/register",
                json={"username": "ms_okafor", "email": "Okafor@School.org", "password": "password123"},
            )

        assert resp.status_code == 201
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "user"
        assert data["user"]["email"] == "okafor@school.org"
        (user,) = _added(db_session, User)
        assert user.password_hash != "password123"
        key, token = mock_redis_client.set.call_args.args
        assert key == f"refresh:{user.id}"
        assert token == data["refresh_token"]
        assert mock_redis_client.set.call_args.kwargs["ex"] == 30 * 24 * 3600

    def test_duplicate_username(self, db_session):
        db_session.execute.return_value = make_result(scalar_one_or_none=UserFactory.create())
        client = TestClient(build_app(auth_router, db_session))

        resp = client.post(
            "/api/auth/register",
            json={"username": "taken", "email": "a@b.org", "password": "password123"},
        )

        assert resp.status_code == 409

    @pytest.mark.parametrize(
        "payload",
        [
            {"username": "ab", "email": "a@b.org", "password": "password123"},
            {"username": "valid_name", "email": "not-an-email", "password": "password123"},
            {"username": "valid_name", "email": "a@b.org", "password": "short"},
        ],
    )
    def test_validation(self, db_session, payload):
        client = TestClient(build_app(auth_router, db_session))
        assert client.post("/api/auth/register", json=payload).status_code == 422


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:

    @pytest.fixture
    def account(self):
        return UserFactory.create(username="rivera", password_hash=hash_password("password123"))

    def test_login_grants_daily_bonus_once(self, db_session, mock_redis_client, account):
        db_session.execute.return_value = make_result(scalar_one_or_none=account)
        client = TestClient(build_app(auth_router, db_session))

        with (
            patch("teachshare.routes.auth.get_redis", return_value=mock_redis_client),
            patch("teachshare.routes.auth.claim_once", AsyncMock(return_value=True)) as claim,
        ):
            resp = client.post("/api/auth/login", json={"username": "rivera", "password": "password123"})

        assert resp.status_code == 200
        assert account.login_count == 1
        assert account.last_login is not None
        assert account.reputation_credits == 1
        (txn,) = _added(db_session, RcTransaction)
        assert txn.reason == "daily_login"
        key, ttl = claim.call_args.args
        assert key.startswith(f"daily_login:{account.id}:")
        assert ttl == 48 * 3600

    def test_second_login_same_day_no_bonus(self, db_session, mock_redis_client, account):
        db_session.execute.return_value = make_result(scalar_one_or_none=account)
        client = TestClient(build_app(auth_router, db_session))

        with (
            patch("teachshare.routes.auth.get_redis", return_value=mock_redis_client),
            patch("teachshare.routes.auth.claim_once", AsyncMock(return_value=False)),
        ):
            resp = client.post("/api/auth/login", json={"username": "rivera", "password": "password123"})

        assert resp.status_code == 200
        assert account.reputation_credits == 0
        assert _added(db_session, RcTransaction) == []

    def test_bonus_skipped_when_redis_down(self, db_session, mock_redis_client, account):
        db_session.execute.return_value = make_result(scalar_one_or_none=account)
        client = TestClient(build_app(auth_router, db_session))

        with (
            patch("teachshare.routes.auth.get_redis", return_value=mock_redis_client),
            patch("teachshare.routes.auth.claim_once", AsyncMock(side_effect=RuntimeError("down"))),
        ):
            resp = client.post("/api/auth/login", json={"username": "rivera", "password": "password123"})

        assert resp.status_code == 200
        assert account.reputation_credits == 0

    def test_wrong_password(self, db_session, account):
        db_session.execute.return_value = make_result(scalar_one_or_none=account)
        client = TestClient(build_app(auth_router, db_session))

        resp = client.post("/api/auth/login", json={"username": "rivera", "password": "nope"})

        assert resp.status_code == 401

    def test_suspended_account(self, db_session, account):
        account.status = "suspended"
        db_session.execute.return_value = make_result(scalar_one_or_none=account)
        client = TestClient(build_app(auth_router, db_session))

        resp = client.post("/api/auth/login", json={"username": "rivera", "password": "password123"})

        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Refresh / logout / me
# ---------------------------------------------------------------------------


class TestSession:

    def test_refresh_rotates_token(self, db_session, mock_redis_client, teacher):
        token = create_refresh_token(str(teacher.id))
        mock_redis_client.get.return_value = token
        db_session.execute.return_value = make_result(scalar_one_or_none=teacher)
        client = TestClient(build_app(auth_router, db_session))

        with patch("teachshare.routes.auth.get_redis", return_value=mock_redis_client):
            resp = client.post("/api/auth/refresh", json={"refresh_token": token})

        assert resp.status_code == 200
        assert resp.json()["refresh_token"] != token
        mock_redis_client.set.assert_awaited_once()

    def test_refresh_revoked(self, db_session, mock_redis_client, teacher):
        mock_redis_client.get.return_value = None
        client = TestClient(build_app(auth_router, db_session))

        with patch("teachshare.routes.auth.get_redis", return_value=mock_redis_client):
            resp = client.post(
                "/api/auth/refresh", json={"refresh_token": create_refresh_token(str(teacher.id))}
            )

        assert resp.status_code == 401
        assert resp.json()["detail"] == "Refresh token revoked or expired"

    def test_access_token_cannot_refresh(self, db_session):
        client = TestClient(build_app(auth_router, db_session))
        resp = client.post("/api/auth/refresh", json={"refresh_token": create_access_token("abc")})

        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token type"

    def test_refresh_token_with_malformed_subject(self, db_session, mock_redis_client):
        token = create_refresh_token("not-a-uuid")
        mock_redis_client.get.return_value = token
        client = TestClient(build_app(auth_router, db_session))

        with patch("teachshare.routes.auth.get_redis", return_value=mock_redis_client):
            resp = client.post("/api/auth/refresh", json={"refresh_token": token})

        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token payload"
        db_session.execute.assert_not_awaited()

    def test_logout_deletes_refresh_token(self, db_session, mock_redis_client, teacher):
        client = TestClient(build_app(auth_router, db_session, user=teacher))

        with patch("teachshare.routes.auth.get_redis", return_value=mock_redis_client):
            resp = client.post("/api/auth/logout")

        assert resp.status_code == 200
        mock_redis_client.delete.assert_awaited_once_with(f"refresh:{teacher.id}")

    def test_me(self, db_session, teacher):
        client = TestClient(build_app(auth_router, db_session, user=teacher))

        resp = client.get("/api/auth/me")

        assert resp.status_code == 200
        assert resp.json()["username"] == teacher.username

    def test_me_requires_login(self, db_session):
        client = TestClient(build_app(auth_router, db_session))
        assert client.get("/api/auth/me").status_code == 401


# ---------------------------------------------------------------------------
# Waitlist
# ---------------------------------------------------------------------------


class TestWaitlist:

    def test_join(self, db_session):
        db_session.execute.return_value = make_result(scalar_one_or_none=None)
        client = TestClient(build_app(waitlist_router, db_session))

        resp = client.post("/api/waitlist", json={"name": "Sam", "email": "Sam@Example.com"})

        assert resp.status_code == 201
        assert resp.json() == {"success": True}
        (entry,) = _added(db_session, WaitlistEntry)
        assert entry.email == "sam@example.com"

    def test_rejoin_is_idempotent(self, db_session):
        existing = WaitlistEntry(name="Sam", email="sam@example.com")
        db_session.execute.return_value = make_result(scalar_one_or_none=existing)
        client = TestClient(build_app(waitlist_router, db_session))

        resp = client.post("/api/waitlist", json={"name": "Sam", "email": "sam@example.com"})

        assert resp.json() == {"success": True}
        db_session.add.assert_not_called()
        db_session.commit.assert_not_awaited()

    def test_name_required(self, db_session):
        client = TestClient(build_app(waitlist_router, db_session))
        assert client.post("/api/waitlist", json={"name": "", "email": "a@b.org"}).status_code == 422
