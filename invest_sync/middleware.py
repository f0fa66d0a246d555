"""
Request tracing middleware.

- ``RequestIDMiddleware`` honours or generates ``X-Request-ID`` and echoes it.
- ``RequestTimingMiddleware`` adds ``X-Process-Time`` and logs the duration,
  at WARNING above ``SLOW_REQUEST_MS``.  Metric endpoints recompute from the
  whole snapshot on every call, so slow responses point at snapshot size.
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from invest_sync.core.config import settings

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}ms"

        level = logging.WARNING if elapsed_ms > settings.SLOW_REQUEST_MS else logging.DEBUG
        logger.log(
            level,
            "%s %s -> %d",
            request.method,
            request.url.path,
            response.status_code,
            extra={"elapsed_ms": elapsed_ms},
        )
        return response
