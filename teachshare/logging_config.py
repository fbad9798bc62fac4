"""Structured logging for TeachShare.

Every line carries ``service``. Lines emitted while serving a request also
carry ``request_id``, and once the caller is authenticated, ``user_id`` and
``role``. Credentials never reach the output and email addresses are masked.
"""

import logging
import sys
from typing import Any

import structlog

REDACTED = "[redacted]"
CREDENTIAL_KEYS = frozenset(
    {"password", "password_hash", "access_token", "refresh_token", "token", "authorization"}
)
EMAIL_KEYS = frozenset({"email"})
REQUEST_CONTEXT_KEYS = ("request_id", "method", "path", "user_id", "role")


def mask_email(email: str) -> str:
    """Keep the first and last character of the local part: ``r***a@school.org``."""
    local, sep, domain = email.partition("@")
    if not sep or not local:
        return REDACTED
    if len(local) <= 2:
        return f"{local[0]}***@{domain}"
    return f"{local[0]}***{local[-1]}@{domain}"


def scrub_credentials(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor that blanks credentials and masks email addresses."""
    for key, value in event_dict.items():
        if key in CREDENTIAL_KEYS:
            event_dict[key] = REDACTED
        elif key in EMAIL_KEYS and isinstance(value, str):
            event_dict[key] = mask_email(value)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "teachshare",
) -> None:
    """
    Configure structured logging for the API and the seed script.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON lines when True; colored console output otherwise
        service_name: Bound to every line as ``service``
    """
    log_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        scrub_credentials,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: str, **kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(request_id=request_id, **kwargs)


def bind_user_context(user: Any) -> None:
    """Tag the rest of the current request's log lines with the caller."""
    structlog.contextvars.bind_contextvars(user_id=str(user.id), role=user.role)


def clear_request_context() -> None:
    """Drop request-scoped keys, keeping process-wide context such as ``service``."""
    structlog.contextvars.unbind_contextvars(*REQUEST_CONTEXT_KEYS)
