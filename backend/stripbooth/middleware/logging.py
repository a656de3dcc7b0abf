"""
StripBooth Backend — Request Logging Middleware
================================================

What:  One access-log line per request on the `stripbooth.access` logger.
How:   Measures wall time around the downstream app and picks the log level
       from the status class (5xx ERROR, 4xx WARNING, otherwise INFO).
       Health probes and media downloads are not logged; the booth
       tablets poll the former and render thumbnails from the latter.

Logged:     method, path, status, duration, request ID, client IP.
Not logged: request bodies (customer names, payment references) and files.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from stripbooth.middleware.request_id import request_id_var

logger = logging.getLogger("stripbooth.access")

QUIET_PATHS = {"/health"}
QUIET_PREFIXES = ("/uploads/",)


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS or path.startswith(QUIET_PREFIXES):
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("")
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
