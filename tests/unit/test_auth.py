"""Tests for token handling and access-tier dependencies."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import jwt
import pytest
from fastapi import HTTPException

from teachshare.auth import (
    JWT_ALGORITHM,
    JWT_SECRET,
    check_min_credits,
    create_access_token,
    create_refresh_token,
    decode_jwt,
    get_current_user,
    get_current_user_optional,
    hash_password,
    require_admin,
    require_min_credits,
    require_moderator,
    require_teacher,
    verify_password,
)
from tests.factories import UserFactory
from tests.helpers import make_result


def _request(token: str | None = None) -> MagicMock:
    request = MagicMock()
    request.headers = {"Authorization": f"Bearer {token}"} if token else {}
    return request


# ---------------------------------------------------------------------------
# Tokens and passwords
# ---------------------------------------------------------------------------


class TestTokens:

    def test_access_token_claims(self):
        payload = decode_jwt(create_access_token("abc"))
        assert payload["sub"] == "abc"
        assert payload["type"] == "access"

    def test_refresh_tokens_are_unique(self):
        first = decode_jwt(create_refresh_token("abc"))
        second = decode_jwt(create_refresh_token("abc"))
        assert first["type"] == "refresh"
        assert first["jti"] != second["jti"]

    def test_expired_token(self):
        token = jwt.encode(
            {"sub": "abc", "type": "access", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
            JWT_SECRET,
            algorithm=JWT_ALGORITHM,
        )
        with pytest.raises(HTTPException) as exc:
            decode_jwt(token)
        assert exc.value.status_code == 401
        assert exc.value.detail == "Token expired"

    def test_tampered_token(self):
        token = jwt.encode({"sub": "abc", "type": "access"}, "another-secret", algorithm=JWT_ALGORITHM)
        with pytest.raises(HTTPException) as exc:
            decode_jwt(token)
        assert exc.value.detail == "Invalid token"

    def test_password_round_trip(self):
        hashed = hash_password("correct horse")
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)


# ---------------------------------------------------------------------------
# get_current_user
# ---------------------------------------------------------------------------


class TestGetCurrentUser:

    @pytest.mark.asyncio
    async def test_valid_token(self, db_session):
        user = UserFactory.create()
        db_session.execute.return_value = make_result(scalar_one_or_none=user)

        result = await get_current_user(_request(create_access_token(str(user.id))), db_session)

        assert result is user

    @pytest.mark.asyncio
    async def test_missing_header(self, db_session):
        with pytest.raises(HTTPException) as exc:
            await get_current_user(_request(), db_session)
        assert exc.value.status_code == 401
        assert exc.value.detail == "Please login (10001)"

    @pytest.mark.asyncio
    async def test_refresh_token_rejected(self, db_session):
        with pytest.raises(HTTPException) as exc:
            await get_current_user(_request(create_refresh_token("abc")), db_session)
        assert exc.value.detail == "Invalid token type"

    @pytest.mark.asyncio
    async def test_non_uuid_subject(self, db_session):
        with pytest.raises(HTTPException) as exc:
            await get_current_user(_request(create_access_token("not-a-uuid")), db_session)
        assert exc.value.detail == "Invalid token payload"

    @pytest.mark.asyncio
    async def test_suspended_user(self, db_session):
        user = UserFactory.create(status="suspended")
        db_session.execute.return_value = make_result(scalar_one_or_none=user)

        with pytest.raises(HTTPException) as exc:
            await get_current_user(_request(create_access_token(str(user.id))), db_session)
        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    async def test_optional_returns_none_on_bad_token(self, db_session):
        assert await get_current_user_optional(_request("garbage"), db_session) is None

    @pytest.mark.asyncio
    async def test_optional_anonymous(self, db_session):
        assert await get_current_user_optional(_request(), db_session) is None


# ---------------------------------------------------------------------------
# Access tiers
# ---------------------------------------------------------------------------


class TestAccessTiers:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", ["teacher", "moderator", "admin"])
    async def test_teacher_tier_admits(self, role):
        user = UserFactory.create(role=role)
        assert await require_teacher(user) is user

    @pytest.mark.asyncio
    async def test_teacher_tier_rejects_member(self):
        with pytest.raises(HTTPException) as exc:
            await require_teacher(UserFactory.create(role="user"))
        assert exc.value.status_code == 403
        assert exc.value.detail == "Teacher role required (10003)"

    @pytest.mark.asyncio
    async def test_moderator_tier_rejects_teacher(self):
        with pytest.raises(HTTPException) as exc:
            await require_moderator(UserFactory.create(role="teacher"))
        assert exc.value.detail == "Moderator role required (10004)"

    @pytest.mark.asyncio
    async def test_admin_tier_rejects_moderator(self):
        with pytest.raises(HTTPException) as exc:
            await require_admin(UserFactory.create(role="moderator"))
        assert exc.value.detail == "You do not have required permission (10002)"

    def test_min_credits_message(self):
        with pytest.raises(HTTPException) as exc:
            check_min_credits(UserFactory.create(reputation_credits=40), 100)
        assert exc.value.status_code == 403
        assert exc.value.detail == "Insufficient Reputation Credits (10005). Required: 100, Current: 40"

    def test_min_credits_exact_balance_passes(self):
        check_min_credits(UserFactory.create(reputation_credits=100), 100)

    @pytest.mark.asyncio
    async def test_min_credits_dependency(self):
        gate = require_min_credits(10)
        user = UserFactory.create(reputation_credits=10)
        assert await gate(user) is user
