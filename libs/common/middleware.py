"""Request context middleware for the ledger API.

Every request gets a request id (propagated from ``X-Request-ID`` when the
caller sends one) that ``libs.common.logging`` attaches to each log record, so
ledger state changes can be traced back to the request that caused them.

Usage:
    from libs.common.middleware import add_observability_middleware

    app = FastAPI()
    add_observability_middleware(app)
"""
import logging
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.common.logging import clear_request_context, get_logger, set_request_context

logger = get_logger(__name__)

QUIET_PATHS = frozenset({"/health"})


def _completion_level(status_code: int) -> int:
    # 409 is a ledger conflict (event full, duplicate), logged at info
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400 and status_code != 409:
        return logging.WARNING
    return logging.INFO


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds the request id for the duration of a request and logs its outcome."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get("X-Request-ID"),
            path=request.url.path,
            method=request.method,
        )
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Request failed after %.2fms", (time.perf_counter() - started) * 1000
            )
            raise
        else:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            if request.url.path not in QUIET_PATHS:
                logger.log(
                    _completion_level(response.status_code),
                    "%s %s -> %d",
                    request.method,
                    request.url.path,
                    response.status_code,
                    extra={"extra_fields": {
                        "status_code": response.status_code,
                        "duration_ms": duration_ms,
                    }},
                )
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time-Ms"] = str(duration_ms)
            return response
        finally:
            clear_request_context()


def add_observability_middleware(app: FastAPI) -> None:
    """Install request context tracking. Logging must already be configured."""
    app.add_middleware(RequestContextMiddleware)
    logger.info("Observability middleware initialized")
