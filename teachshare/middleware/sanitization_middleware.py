"""Middleware that scans mutating JSON payloads before they reach the routes."""

from __future__ import annotations

import json
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from teachshare.logging_config import get_logger
from teachshare.middleware.sanitization import ThreatLevel, get_sanitizer

logger = get_logger(__name__)

# User-generated content; HIGH/CRITICAL threats here are rejected
STRICT_PATHS = ("/api/resources", "/api/collections", "/api/governance", "/api/moderation")

SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


class SanitizationMiddleware(BaseHTTPMiddleware):
    """Scans POST/PUT/PATCH payloads. Blocks on content paths, flags elsewhere."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method in ("GET", "HEAD", "OPTIONS", "DELETE"):
            return await call_next(request)

        path = request.url.path
        if path in SKIP_PATHS:
            return await call_next(request)

        body = await request.body()
        if not body:
            return await call_next(request)

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return await call_next(request)

        if not isinstance(payload, dict):
            return await call_next(request)

        scan_result = get_sanitizer().scan(payload)
        is_strict = path.startswith(STRICT_PATHS)
        blocking = scan_result.blocking_threats()

        if blocking:
            logger.warning(
                "security_threat_detected",
                threat_level=scan_result.threat_level.value,
                threat_count=scan_result.threat_count,
                path=path,
                method=request.method,
                strict_mode=is_strict,
            )
            if is_strict:
                return JSONResponse(
                    status_code=400,
                    content={
                        "error": "payload_security_violation",
                        "detail": "Payload contains potentially malicious content",
                        "threat_level": scan_result.threat_level.value,
                        "threats": [
                            {"type": t.threat_type.value, "level": t.threat_level.value}
                            for t in blocking
                        ],
                    },
                )

        response = await call_next(request)
        if scan_result.threat_level not in (ThreatLevel.NONE, ThreatLevel.LOW):
            response.headers["X-Security-Flag"] = scan_result.threat_level.value
        return response
