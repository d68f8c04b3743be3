"""
dineAR Backend — Token Issuer/Verifier
=======================================

What:  Issues and verifies signed, time-bound bearer tokens (JWT, HS256).
Why:   Tokens are stateless: any worker can verify one without a session table.
How:   PyJWT signs {sub, iat, exp}; verification checks signature and expiry.
Who:   Called by the auth routes (issue) and the auth dependencies (verify).

Verification contract:
    verify() proves the token was signed by us and has not expired. It does
    NOT prove the user still exists. Callers must re-resolve the identity in
    the credential store and treat a missing user exactly like a bad token.

Known limitation:
    There is no revocation list. A token stays valid until `exp` even after
    the client "logs out"; logout is client-side only.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID

import jwt

from dinear.config import settings
from dinear.exceptions import AuthenticationError, TokenExpiredError, TokenInvalidError

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "iat", "exp"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """
    Issues and verifies bearer tokens.

    Args:
        secret: HMAC signing key (defaults to settings.jwt_secret)
        algorithm: JWT algorithm (defaults to settings.jwt_algorithm)
        lifetime_seconds: Token lifetime (defaults to settings.token_lifetime_seconds)
        clock: Returns the current UTC time; tests pass a fixed clock to mint
               already-expired tokens
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        lifetime_seconds: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.secret = secret or settings.jwt_secret
        self.algorithm = algorithm or settings.jwt_algorithm
        self.lifetime_seconds = lifetime_seconds or settings.token_lifetime_seconds
        self._clock = clock or _utcnow

    def issue(self, identity_id: UUID) -> str:
        """Sign a token for the given identity, valid for lifetime_seconds."""
        issued_at = self._clock()
        payload = {
            "sub": str(identity_id),
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.lifetime_seconds),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> UUID:
        """
        Check signature and expiry and return the identity id.

        Raises:
            TokenExpiredError: the token is past its exp claim
            TokenInvalidError: malformed, forged, or missing/invalid claims
        """
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError()
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(reason=type(e).__name__)

        try:
            return UUID(str(claims["sub"]))
        except ValueError:
            raise TokenInvalidError(reason="bad_subject")

    def peek_subject(self, token: Optional[str]) -> Optional[UUID]:
        """
        Non-raising verify, for keying rate limits before authentication runs.

        A verified subject may still belong to a deleted user; that is fine for
        bucketing requests, and the real authentication stage rejects it later.
        """
        if not token:
            return None
        try:
            return self.verify(token)
        except AuthenticationError:
            return None


token_service = TokenService()
