"""
dineAR Backend — Authentication Dependencies
=============================================

What:  FastAPI dependencies that turn a bearer token into a User.
Why:   Every protected route authenticates the same way, with one uniform
       failure: missing header, bad signature, expired token and deleted
       user all produce the same 401 body.
How:   HTTPBearer(auto_error=False) extracts the token without raising, so
       the failure is ours to shape; TokenService verifies it and the
       CredentialService re-resolves the identity on every request.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dinear.database import get_db_session
from dinear.exceptions import AuthenticationError
from dinear.models.user import User
from dinear.services.credential_service import credential_service
from dinear.services.token_service import token_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Resolve the authenticated user.

    Raises:
        AuthenticationError (→ 401 "Authentication failed") for every failure.
    """
    if credentials is None:
        raise AuthenticationError(context={"reason": "missing_token"})

    identity_id = token_service.verify(credentials.credentials)

    # A valid signature is not enough: the account may have been removed
    user = await credential_service.get_identity(db, identity_id)
    if user is None:
        raise AuthenticationError(context={"reason": "identity_not_found"})
    return user


async def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """Like get_current_identity(), but any failure means anonymous (None)."""
    if credentials is None:
        return None
    try:
        return await get_current_identity(credentials, db)
    except AuthenticationError as e:
        logger.debug("Optional auth degraded to anonymous: %s", e.context.get("reason"))
        return None
