"""
dineAR Backend — User SQLAlchemy Model
=======================================

What:  ORM model representing the `users` table (the Identity record).
Why:   Backs the credential store: lookups by id for token resolution and by
       email for signup/login.
Who:   Used by CredentialService only. Routes never touch password_hash.

Table Design Rationale:
    - UUID primary key: non-sequential, so ids cannot be enumerated
    - email: stored lower-cased; the unique index makes uniqueness case-insensitive
    - password_hash: bcrypt hash, never serialized (response schemas omit it)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from dinear.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    An account that owns dishes.

    Lifecycle:
        1. Created on signup
        2. Never edited (no profile editing)
        3. Never deleted through the API
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier — also the `sub` claim of issued tokens",
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Lower-cased login email, unique",
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="bcrypt hash of the password",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        # email is fine to show in logs; the hash is not
        return f"<User(id={self.id}, email='{self.email}')>"
