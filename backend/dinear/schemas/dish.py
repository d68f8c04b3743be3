"""
dineAR Backend — Dish Schemas
==============================

What:  Form rules for dish create/update and the dish response models.
Why:   Schemas are separate from the SQLAlchemy model so that the API contract
       (and its validation rules) can evolve independently of storage.

Rules:
    name        required on create, optional on update; trimmed, 1-100 chars,
                then HTML-escaped so stored names are inert in any markup context
    plate_size  optional; small | medium | large; defaults to medium on create
"""

import html
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from dinear.models.dish import PlateSize
from dinear.schemas.common import Pagination


MAX_NAME_LENGTH = 100
PLATE_SIZES = [size.value for size in PlateSize]


def clean_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise ValueError("Dish name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError("Dish name must be between 1 and 100 characters")
    return html.escape(name, quote=True)


def clean_plate_size(value: str) -> str:
    size = value.strip().lower()
    if size not in PLATE_SIZES:
        raise ValueError("Plate size must be small, medium, or large")
    return size


# ══════════════════════════════════════════════════════════════════════════
# Request Models (multipart text fields)
# ══════════════════════════════════════════════════════════════════════════


class DishCreateForm(BaseModel):
    name: str
    plate_size: str = PlateSize.MEDIUM.value

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return clean_name(v)

    @field_validator("plate_size")
    @classmethod
    def validate_plate_size(cls, v: str) -> str:
        return clean_plate_size(v)


class DishUpdateForm(BaseModel):
    """All fields optional; only the ones sent are applied."""
    name: Optional[str] = None
    plate_size: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else clean_name(v)

    @field_validator("plate_size")
    @classmethod
    def validate_plate_size(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else clean_plate_size(v)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class DishResponse(BaseModel):
    """
    Full representation of a dish.

    Why these fields:
        - thumbnail_url: shown in the dashboard grid
        - model_url: loaded by the AR viewer
        - qr_payload_url: PNG data URL rendered as the printable QR code;
          null when QR generation failed at creation time
    """
    id: uuid.UUID
    owner_id: uuid.UUID
    name: str
    plate_size: str
    thumbnail_url: Optional[str] = None
    model_url: Optional[str] = None
    qr_payload_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DishData(BaseModel):
    dish: DishResponse


class DishEnvelope(BaseModel):
    """Returned by GET/POST/PUT on a single dish."""
    success: bool = Field(default=True)
    data: DishData


class DishListData(BaseModel):
    dishes: List[DishResponse]
    pagination: Pagination


class DishListResponse(BaseModel):
    """Returned by GET /dishes."""
    success: bool = Field(default=True)
    data: DishListData
