"""Shared helpers: mocked query results and single-router test apps."""

from typing import Any
from unittest.mock import MagicMock

from fastapi import FastAPI

from teachshare.auth import get_current_user, get_current_user_optional
from teachshare.database import get_db


def make_result(
    scalar: Any = None,
    scalar_one_or_none: Any = None,
    scalars: list | None = None,
    rows: list | None = None,
    first: Any = None,
    one: Any = None,
    rowcount: int = 0,
) -> MagicMock:
    """Build a mock of what ``AsyncSession.execute`` returns.

    Every accessor the routes use is wired, so one helper serves
    single-row lookups, counts, scalar lists and tuple rows alike.
    """
    result = MagicMock()
    result.scalar.return_value = scalar
    result.scalar_one_or_none.return_value = scalar_one_or_none
    result.scalars.return_value.all.return_value = scalars or []
    result.all.return_value = rows or []
    result.first.return_value = first
    result.one.return_value = one
    result.rowcount = rowcount
    return result


def build_app(router, db_session, user=None) -> FastAPI:
    """Mount one router with the database and caller overridden.

    ``user`` becomes the authenticated caller. With None, protected routes
    answer 401 and optional-auth routes see an anonymous visitor.
    """
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_current_user_optional] = lambda: user
    if user is not None:
        app.dependency_overrides[get_current_user] = lambda: user
    return app
