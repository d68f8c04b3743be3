"""
dineAR Backend — Request ID Middleware
=======================================

What:  Assigns an id to each request and returns it in X-Request-ID.
Why:   Lets a client-reported failure be matched to the server's log lines.
How:   Reuses a client-sent X-Request-ID or generates a short UUID, stores it
       in a ContextVar (read by the access logger) and in request.state.

The id is deliberately kept out of error bodies: two identical failures must
produce identical bodies, so the header is its only channel to the client.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one thread each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "")[:MAX_CLIENT_ID_LENGTH] or str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
