"""
dineAR Backend — Credential Store
==================================

What:  Creates users, checks passwords, resolves identities by id.
Why:   The only module that reads or writes password hashes. Everything else
       sees a User through UserPublic, which has no hash field.
How:   bcrypt (cost from settings.bcrypt_rounds) run in Starlette's threadpool
       so hashing never blocks the event loop.

Enumeration hardening:
    authenticate() raises the same InvalidCredentialsError for an unknown email
    and for a wrong password. For unknown emails it still runs one bcrypt check
    against a throwaway hash so both paths cost about the same time.
"""

import logging
import secrets
from typing import Optional
from uuid import UUID

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from dinear.config import settings
from dinear.exceptions import ConflictError, DatabaseError, InvalidCredentialsError
from dinear.models.user import User

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes; newer releases raise past that
BCRYPT_MAX_BYTES = 72

_dummy_hash: Optional[str] = None


def _secret(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Return a bcrypt hash (as text) of the password."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(_secret(password), salt).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison of a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(_secret(password), password_hash.encode("ascii"))
    except ValueError:
        # Stored value is not a bcrypt hash; treat as a mismatch
        logger.warning("Stored password hash is malformed")
        return False


def _get_dummy_hash() -> str:
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password(secrets.token_urlsafe(16))
    return _dummy_hash


def _verify_against_dummy(password: str) -> bool:
    # Runs in the threadpool; the first call also builds the dummy hash there
    return verify_password(password, _get_dummy_hash())


class CredentialService:
    """
    Identity persistence and password checks.

    Responsibilities:
        - create_identity(): signup, with case-insensitive email uniqueness
        - authenticate(): login, uniform failure for unknown email / bad password
        - get_identity(): token subject → User, or None if it no longer exists
    """

    async def create_identity(self, db: AsyncSession, email: str, password: str) -> User:
        """
        Create a user. `email` must already be normalized (trimmed, lower-cased).

        Raises:
            ConflictError: a user with this email exists
            DatabaseError: the insert failed for another reason
        """
        existing = await db.execute(select(User.id).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(message="Email already registered")

        password_hash = await run_in_threadpool(hash_password, password)
        user = User(email=email, password_hash=password_hash)
        db.add(user)

        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same address
            await db.rollback()
            raise ConflictError(message="Email already registered")
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to create user: %s", type(e).__name__)
            raise DatabaseError(
                message="Could not create the account. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("User created: %s", user.id)
        return user

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> User:
        """
        Return the user whose credentials match.

        Raises:
            InvalidCredentialsError: unknown email or wrong password (same error)
        """
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is None:
            await run_in_threadpool(_verify_against_dummy, password)
            logger.warning("Login failed: unknown email")
            raise InvalidCredentialsError()

        if not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.warning("Login failed: wrong password for user %s", user.id)
            raise InvalidCredentialsError()

        return user

    async def get_identity(self, db: AsyncSession, identity_id: UUID) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == identity_id))
        return result.scalar_one_or_none()


credential_service = CredentialService()
