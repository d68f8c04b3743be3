"""
dineAR Backend — Security Headers Middleware
=============================================

What:  Adds baseline browser hardening headers to every response.
Why:   Stops MIME sniffing, framing of the API and referrer leaks, while still
       letting the AR viewer on CLIENT_URL load uploaded images cross-origin.
How:   Sets each header unless the endpoint already chose a value.

Headers:
    X-Content-Type-Options        nosniff
    X-Frame-Options               SAMEORIGIN
    Referrer-Policy               no-referrer
    Cross-Origin-Resource-Policy  cross-origin (images are embedded by the client app)
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "cross-origin",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
