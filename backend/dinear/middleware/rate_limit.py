"""
dineAR Backend — Rate Limiting
===============================

What:  Fixed-window request counters per (scope, client key), used by one
       global middleware and two route-level dependencies.
Why:   Protects the API from floods (global), credential stuffing (auth) and
       upload abuse (dish).
How:   An in-memory store maps scope:key → (count, reset_at). Each check is a
       single atomic increment-and-compare under an asyncio.Lock.
Who:   RateLimitMiddleware for every request; auth_rate_limit on signup/login;
       dish_rate_limit on list/create/update/delete.

Scopes (defaults, per window of RATE_LIMIT_WINDOW = 900 s):
    global  100 per client address, every path except health and docs
    auth    5 per client address; failed attempts count too
    dish    30 per identity when a valid token is presented, else per address

Algorithm: Fixed Window Counter
    1. First hit for a key opens a window: count = 1, reset_at = now + window
    2. Later hits inside the window increment count
    3. count > max → reject with retry_after = ceil(reset_at - now), at least 1
    4. A hit at or after reset_at opens a new window

    Rejected hits are still counted, so a client hammering a closed window
    does not earn extra attempts.

Production Upgrade Path:
    The store is per-process. Multi-worker deployments need a shared store
    (e.g. Redis INCR + EXPIRE); RateLimitStore.hit() is the only seam.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request
from fastapi.security.utils import get_authorization_scheme_param
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response

from dinear.config import settings
from dinear.exceptions import RateLimitExceededError
from dinear.schemas.common import ErrorResponse
from dinear.services.token_service import token_service

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"
AUTH_SCOPE = "auth"
DISH_SCOPE = "dish"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    limit: int
    retry_after: int


class RateLimitStore:
    """
    Shared counter store. One instance per application (held on app.state),
    so each create_app() starts with empty counters.

    Args:
        clock: Returns the current time in seconds; tests inject a fake clock
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = asyncio.Lock()
        self._hits_since_sweep = 0

    async def hit(self, key: str, window_seconds: int) -> Tuple[int, float, float]:
        """
        Count one request for `key`.

        Returns:
            (count in the current window, reset_at, now)
        """
        async with self._lock:
            now = self._clock()
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, reset_at)

            self._hits_since_sweep += 1
            if self._hits_since_sweep >= 1000:
                self._sweep(now)

            return count, reset_at, now

    def _sweep(self, now: float) -> None:
        """Drop expired windows so the dict does not grow with every new client."""
        expired = [key for key, (_, reset_at) in self._windows.items() if now >= reset_at]
        for key in expired:
            del self._windows[key]
        self._hits_since_sweep = 0
        if expired:
            logger.debug("Swept %d expired rate-limit windows", len(expired))


class RateLimiter:
    """A (window, max) policy for one scope, applied against a shared store."""

    def __init__(self, store: RateLimitStore, scope: str, max_requests: int, window_seconds: int):
        self.store = store
        self.scope = scope
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def check(self, client_key: str) -> RateLimitDecision:
        count, reset_at, now = await self.store.hit(f"{self.scope}:{client_key}", self.window_seconds)
        allowed = count <= self.max_requests
        retry_after = 0 if allowed else max(1, math.ceil(reset_at - now))
        if not allowed:
            logger.warning(
                "Rate limit exceeded [%s] for %s: %d requests in %ds window",
                self.scope,
                client_key,
                count,
                self.window_seconds,
            )
        return RateLimitDecision(
            allowed=allowed, count=count, limit=self.max_requests, retry_after=retry_after
        )

    async def enforce(self, client_key: str) -> None:
        """check() that raises RateLimitExceededError when over the limit."""
        decision = await self.check(client_key)
        if not decision.allowed:
            raise RateLimitExceededError(retry_after=decision.retry_after)


def client_address(request: Request) -> str:
    # Behind a proxy this is the proxy's address unless uvicorn runs with
    # --proxy-headers
    return request.client.host if request.client else "unknown"


def build_limiters(store: RateLimitStore) -> Dict[str, RateLimiter]:
    window = settings.rate_limit_window
    return {
        GLOBAL_SCOPE: RateLimiter(store, GLOBAL_SCOPE, settings.rate_limit_global_max, window),
        AUTH_SCOPE: RateLimiter(store, AUTH_SCOPE, settings.rate_limit_auth_max, window),
        DISH_SCOPE: RateLimiter(store, DISH_SCOPE, settings.rate_limit_dish_max, window),
    }


def _limiter(request: Request, scope: str) -> RateLimiter:
    return request.app.state.rate_limiters[scope]


def rate_limited_response(retry_after: int, message: str = "Too many requests, please slow down") -> JSONResponse:
    body = ErrorResponse(error=message, retry_after=retry_after)
    return JSONResponse(
        status_code=429,
        content=body.model_dump(exclude_none=True),
        headers={"Retry-After": str(retry_after)},
    )


# ══════════════════════════════════════════════════════════════════════════
# Global Middleware
# ══════════════════════════════════════════════════════════════════════════


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Global per-address limiter. Runs before routing, so it answers 429 itself
    instead of raising into the exception handlers.
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        decision = await _limiter(request, GLOBAL_SCOPE).check(client_address(request))
        if not decision.allowed:
            return rate_limited_response(decision.retry_after)

        return await call_next(request)


# ══════════════════════════════════════════════════════════════════════════
# Route Dependencies
# ══════════════════════════════════════════════════════════════════════════


async def auth_rate_limit(request: Request) -> None:
    """Signup/login limiter, keyed by client address."""
    await _limiter(request, AUTH_SCOPE).enforce(client_address(request))


async def dish_rate_limit(request: Request) -> None:
    """
    Dish limiter. Keyed by identity when the request carries a valid token,
    so users behind one NAT each get their own quota; otherwise by address.
    """
    scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
    subject = token_service.peek_subject(token) if scheme.lower() == "bearer" else None
    key = f"user:{subject}" if subject else f"ip:{client_address(request)}"
    await _limiter(request, DISH_SCOPE).enforce(key)
