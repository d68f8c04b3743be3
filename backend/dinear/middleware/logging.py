"""
dineAR Backend — Request Logging Middleware
============================================

What:  One access-log line per request: method, path, status, duration.
Why:   Monitoring and debugging without relying on uvicorn's access log,
       which has no request id and no duration.
How:   Times the downstream call and logs at a level chosen by status class.

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, client address, request id
    ❌ Don't log: request bodies (passwords), the Authorization header, uploads
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from dinear.middleware.request_id import request_id_var

logger = logging.getLogger("dinear.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each HTTP request after its response is produced.

    Levels:
        5xx → ERROR, 4xx → WARNING, everything else → INFO

    /health is skipped; load balancers poll it every few seconds.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"
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
