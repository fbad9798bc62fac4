"""TeachShare FastAPI application."""

import os
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from teachshare.database import close_db, init_db
from teachshare.logging_config import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from teachshare.redis import close_redis, get_redis, init_redis
from teachshare.services.scheduler_service import start_scheduler, stop_scheduler

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: init DB, Redis and the scheduler; clean up on shutdown."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    json_format = os.getenv("LOG_FORMAT", "json") == "json"
    configure_logging(level=log_level, json_format=json_format)

    logger.info("starting_database_init")
    await init_db()

    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    await init_redis(redis_url)
    logger.info("redis_connected", url=redis_url)

    await start_scheduler()

    logger.info("application_started")
    yield

    logger.info("shutting_down")
    await stop_scheduler()
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


app = FastAPI(
    title="TeachShare",
    description="Community platform for sharing and curating teaching resources",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security middleware
from teachshare.middleware.sanitization_middleware import SanitizationMiddleware  # noqa: E402
from teachshare.middleware.rate_limit import RateLimitMiddleware  # noqa: E402

app.add_middleware(SanitizationMiddleware)
app.add_middleware(RateLimitMiddleware, redis_getter=get_redis)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag every log line emitted while serving a request with its id."""
    request_id = request.headers.get("X-Request-ID") or uuid4().hex
    bind_request_context(request_id, method=request.method, path=request.url.path)
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers["X-Request-ID"] = request_id
    return response


# --- Routers ---
from teachshare.routes.auth import router as auth_router  # noqa: E402
from teachshare.routes.waitlist import router as waitlist_router  # noqa: E402
from teachshare.routes.resources import router as resources_router  # noqa: E402
from teachshare.routes.collections import router as collections_router  # noqa: E402
from teachshare.routes.governance import router as governance_router  # noqa: E402
from teachshare.routes.moderation import router as moderation_router  # noqa: E402
from teachshare.routes.reputation import router as reputation_router  # noqa: E402
from teachshare.routes.users import router as users_router  # noqa: E402
from teachshare.routes.metrics import router as metrics_router  # noqa: E402
from teachshare.routes.notifications import router as notifications_router  # noqa: E402

app.include_router(auth_router)
app.include_router(waitlist_router)
app.include_router(resources_router)
app.include_router(collections_router)
app.include_router(governance_router)
app.include_router(moderation_router)
app.include_router(reputation_router)
app.include_router(users_router)
app.include_router(metrics_router)
app.include_router(notifications_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "teachshare"}
