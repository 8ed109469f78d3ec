"""Logging configuration with structlog."""

import contextvars
import logging
import sys
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from wakeme.core.settings import get_settings

# Context variable for correlation ID
correlation_id_var = contextvars.ContextVar[str]("correlation_id", default="-")


def _add_service_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Attach correlation id and service name to every event."""
    event_dict.setdefault("correlation_id", correlation_id_var.get())
    event_dict["service"] = "wakeme"
    return event_dict


def setup_logging(log_level: str | None = None) -> None:
    """Configure structured logging with correlation ID support."""
    level_name = (log_level or get_settings().log_level).upper()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _add_service_context,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


REQUEST_ID_HEADER = "X-Request-ID"

# Health checks and metrics scrapes, logged at debug
QUIET_PATHS = frozenset({"/health/live", "/health/ready", "/metrics"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs one line when it finishes.

    The id is taken from the caller's X-Request-ID header when present and
    echoed back on the response. Every log event emitted while the request
    is handled carries it.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = correlation_id_var.set(request_id)
        request.state.correlation_id = request_id
        log = get_logger("request").bind(method=request.method, path=request.url.path)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            log.exception("Request failed", duration_ms=_elapsed_ms(started))
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            emit = log.debug if request.url.path in QUIET_PATHS else log.info
            emit(
                "Request completed",
                status_code=response.status_code,
                duration_ms=_elapsed_ms(started),
            )
            return response
        finally:
            correlation_id_var.reset(token)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def install_middlewares(app: FastAPI) -> None:
    """Install the request middleware."""
    app.add_middleware(RequestContextMiddleware)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
