"""Request logging middleware with correlation IDs.

Every request gets a correlation ID (taken from ``X-Correlation-ID`` or
generated) that is bound into structlog's contextvars, so store log lines
emitted while serving the request carry it too.
"""

from __future__ import annotations

import time
import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from structlog.contextvars import bind_contextvars, clear_contextvars

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        clear_contextvars()
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        bind_contextvars(
            correlation_id=correlation_id,
            request_method=request.method,
            request_path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        )

        start = time.perf_counter()
        logger.info("request_started")
        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=int((time.perf_counter() - start) * 1000),
            )
            return response
        except Exception as exc:
            logger.error(
                "request_failed",
                error_type=type(exc).__name__,
                duration_ms=int((time.perf_counter() - start) * 1000),
                exc_info=True,
            )
            raise
        finally:
            clear_contextvars()
