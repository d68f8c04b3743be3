# Middleware package init
"""
dineAR Backend — Middleware Package
====================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [CORS] → [Security Headers] → [Request ID] → [Logging] → [Rate Limit] → [GZip] → Route

    1. CORS outermost so preflights and 429s still carry CORS headers
    2. Security headers wrap everything below, static /uploads included
    3. Request ID before Logging, so the access line has the id
    4. Logging before Rate Limit, so rejected requests are logged too
    5. Rate Limit rejects floods before routing and body parsing

Route-level limits (auth, dish) are FastAPI dependencies in rate_limit.py;
they raise RateLimitExceededError, rendered by the central error handler.
"""
