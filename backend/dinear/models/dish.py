"""
dineAR Backend — Dish SQLAlchemy Model
=======================================

What:  ORM model representing the `dishes` table.
Why:   A dish is the user-owned resource guarded by the ownership pipeline.
Who:   Used by DishService for CRUD operations and by Alembic for schema management.

Table Design Rationale:
    - owner_id: set once at creation, never reassigned. Ownership checks always
      compare against this stored value, never against anything in the request.
    - thumbnail_url / model_url: public URLs of the uploaded image. In this
      release both point at the same photo; model_url is reserved for a
      generated 3D model.
    - qr_payload_url: PNG data URL of a QR code for the AR viewer. Nullable
      because QR generation is best-effort.

    Index on (owner_id, created_at):
        Serves the only list query: "this owner's dishes, newest first".
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from dinear.database import Base


class PlateSize(str, enum.Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Dish(Base):
    """
    A photographed menu item belonging to exactly one user.

    Lifecycle:
        1. Created by POST /dishes (requires an uploaded image)
        2. Updated by its owner only; a replacement image supersedes the old file
        3. Deleted by its owner only; the image file is removed with it
    """

    __tablename__ = "dishes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning user — immutable after creation",
    )

    # Escaping can grow a 100-char name up to 6x, so no VARCHAR cap here
    name: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Display name, HTML-escaped on write",
    )

    plate_size: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=PlateSize.MEDIUM.value,
        comment="small | medium | large",
    )

    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    model_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    # Data URLs for a QR PNG run to a few KB; TEXT avoids a length cap
    qr_payload_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    __table_args__ = (
        Index("idx_dishes_owner_created_at", "owner_id", created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Dish(id={self.id}, owner_id={self.owner_id}, "
            f"name='{self.name}', plate_size='{self.plate_size}')>"
        )
