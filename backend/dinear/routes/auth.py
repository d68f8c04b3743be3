"""
dineAR Backend — Auth Route Handlers
=====================================

What:  POST /api/auth/signup, POST /api/auth/login, GET /api/auth/me,
       POST /api/auth/logout.
How:   Bodies are read as plain JSON objects, projected onto the endpoint's
       declared fields and validated in one pass (all violations reported).
       Signup and login sit behind the auth rate limiter, which counts failed
       attempts too.

Login failure policy:
    Unknown email and wrong password return byte-identical 401 bodies.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinear.config import settings
from dinear.database import get_db_session
from dinear.dependencies import get_current_identity, get_optional_identity
from dinear.exceptions import NotFoundError
from dinear.middleware.rate_limit import auth_rate_limit
from dinear.models.user import User
from dinear.schemas.auth import (
    AuthData,
    AuthResponse,
    LoginRequest,
    SignupRequest,
    UserData,
    UserPublic,
    UserResponse,
)
from dinear.schemas.common import ErrorResponse, MessageResponse
from dinear.services.credential_service import credential_service
from dinear.services.token_service import token_service
from dinear.validation import validate_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{settings.api_prefix}/auth", tags=["Auth"])


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        data=AuthData(user=UserPublic.model_validate(user), token=token_service.issue(user.id))
    )


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthResponse,
    dependencies=[Depends(auth_rate_limit)],
    responses={
        400: {"description": "Validation failed", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
        429: {"description": "Too many attempts", "model": ErrorResponse},
    },
    summary="Create an account",
)
async def signup(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    """
    Register with email + password and receive a token.

    The email is trimmed and lower-cased before the uniqueness check, so
    "A@X.com" and "a@x.com" are the same account.
    """
    data = validate_payload(SignupRequest, payload)
    user = await credential_service.create_identity(db, data.email, data.password)
    return _auth_response(user)


@router.post(
    "/login",
    response_model=AuthResponse,
    dependencies=[Depends(auth_rate_limit)],
    responses={
        400: {"description": "Validation failed", "model": ErrorResponse},
        401: {"description": "Invalid credentials", "model": ErrorResponse},
        429: {"description": "Too many attempts", "model": ErrorResponse},
    },
    summary="Log in",
)
async def login(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    data = validate_payload(LoginRequest, payload)
    user = await credential_service.authenticate(db, data.email, data.password)
    logger.info("User %s logged in", user.id)
    return _auth_response(user)


@router.get(
    "/me",
    response_model=UserResponse,
    responses={
        401: {"description": "Authentication failed", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Current user",
)
async def me(
    identity: User = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    # Re-read so a user removed between the auth stage and here is a 404
    user = await credential_service.get_identity(db, identity.id)
    if user is None:
        raise NotFoundError(resource="user", resource_id=str(identity.id))
    return UserResponse(data=UserData(user=UserPublic.model_validate(user)))


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Log out",
    description=(
        "Tokens are stateless; the client discards its token. The token itself "
        "stays valid until it expires."
    ),
)
async def logout(identity: Optional[User] = Depends(get_optional_identity)) -> MessageResponse:
    if identity is not None:
        logger.info("User %s logged out", identity.id)
    return MessageResponse(message="Logged out successfully")
