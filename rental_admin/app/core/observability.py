"""
Observability Middleware.

Tags every request with a correlation ID and logs one line per request.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("rental_admin.requests")

CORRELATION_HEADER = "X-Correlation-ID"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        # Reuse the admin panel's correlation ID when it sends one
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Process-Time"] = str(duration_ms)

        log_data = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "ip": request.client.host if request.client else "unknown"
        }

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        logger.log(
            level,
            "%s %s -> %d (%.2f ms) [%s]",
            request.method, request.url.path, response.status_code, duration_ms, correlation_id,
            extra=log_data
        )

        return response
