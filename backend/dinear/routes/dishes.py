"""
dineAR Backend — Dish Route Handlers
=====================================

What:  GET/POST /api/dishes, GET/PUT/DELETE /api/dishes/{id}.
Why:   The HTTP edge of the ownership pipeline.
How:   Stage order per request, terminal on the first failure:
           rate limit → authenticate → validate text fields (+ missing image)
           → DishService (store image → lookup → ownership → commit)

       Route-level `dependencies` run before the handler's own parameters,
       so the limiter always precedes authentication.

Multipart handling:
    The form is parsed with request.form() rather than Form()/File()
    parameters, so undeclared fields can be dropped (whitelist) and every
    violation batched into one 400 instead of FastAPI's per-parameter errors.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinear.config import settings
from dinear.database import get_db_session
from dinear.dependencies import get_current_identity, get_optional_identity
from dinear.middleware.rate_limit import dish_rate_limit
from dinear.models.user import User
from dinear.schemas.common import ErrorResponse, MessageResponse
from dinear.schemas.dish import (
    DishCreateForm,
    DishData,
    DishEnvelope,
    DishListResponse,
    DishUpdateForm,
)
from dinear.services.dish_service import dish_service
from dinear.services.upload_service import UPLOAD_FIELD, extract_single_upload
from dinear.validation import clamp_pagination, parse_uuid, validate_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{settings.api_prefix}/dishes", tags=["Dishes"])

_AUTH_ERRORS = {
    401: {"description": "Authentication failed", "model": ErrorResponse},
    429: {"description": "Too many requests", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=DishListResponse,
    dependencies=[Depends(dish_rate_limit)],
    responses={400: {"description": "Invalid query", "model": ErrorResponse}, **_AUTH_ERRORS},
    summary="List my dishes",
    description="The caller's dishes, newest first. `limit` is clamped to the server maximum.",
)
async def list_dishes(
    page: Optional[int] = Query(default=None, description="1-based page number"),
    limit: Optional[int] = Query(default=None, description="Items per page (default 20)"),
    identity: User = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> DishListResponse:
    page, limit = clamp_pagination(page, limit, settings.max_page_limit)
    data = await dish_service.list_dishes(db, owner_id=identity.id, page=page, limit=limit)
    return DishListResponse(data=data)


@router.get(
    "/{dish_id}",
    response_model=DishEnvelope,
    responses={
        400: {"description": "Invalid ID format", "model": ErrorResponse},
        404: {"description": "Dish not found", "model": ErrorResponse},
    },
    summary="Get a dish",
    description="Public: the AR viewer opens dishes from scanned QR codes without logging in.",
)
async def get_dish(
    dish_id: str,
    identity: Optional[User] = Depends(get_optional_identity),
    db: AsyncSession = Depends(get_db_session),
) -> DishEnvelope:
    dish = await dish_service.get_dish(db, parse_uuid(dish_id))
    return DishEnvelope(data=DishData(dish=dish))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=DishEnvelope,
    dependencies=[Depends(dish_rate_limit)],
    responses={400: {"description": "Validation or upload error", "model": ErrorResponse}, **_AUTH_ERRORS},
    summary="Create a dish",
    description="Multipart form: `name`, optional `plate_size`, and one `image` file (required).",
)
async def create_dish(
    request: Request,
    identity: User = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> DishEnvelope:
    form = await request.form()
    fields, upload = extract_single_upload(form, field=UPLOAD_FIELD)

    missing_image = []
    if upload is None:
        missing_image.append({"field": UPLOAD_FIELD, "message": "Dish image is required"})
    data = validate_payload(DishCreateForm, fields, extra_violations=missing_image)

    dish = await dish_service.create_dish(
        db,
        owner_id=identity.id,
        form=data,
        upload=upload,
        base_url=str(request.base_url),
    )
    return DishEnvelope(data=DishData(dish=dish))


@router.put(
    "/{dish_id}",
    response_model=DishEnvelope,
    dependencies=[Depends(dish_rate_limit)],
    responses={
        400: {"description": "Validation or upload error", "model": ErrorResponse},
        403: {"description": "Not the owner", "model": ErrorResponse},
        404: {"description": "Dish not found", "model": ErrorResponse},
        **_AUTH_ERRORS,
    },
    summary="Update a dish",
    description="Multipart form, every field optional. A new `image` replaces the old one.",
)
async def update_dish(
    dish_id: str,
    request: Request,
    identity: User = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> DishEnvelope:
    form = await request.form()
    fields, upload = extract_single_upload(form, field=UPLOAD_FIELD)
    data = validate_payload(DishUpdateForm, fields)
    target_id = parse_uuid(dish_id)

    dish = await dish_service.update_dish(
        db,
        dish_id=target_id,
        caller_id=identity.id,
        form=data,
        upload=upload,
        base_url=str(request.base_url),
    )
    return DishEnvelope(data=DishData(dish=dish))


@router.delete(
    "/{dish_id}",
    response_model=MessageResponse,
    dependencies=[Depends(dish_rate_limit)],
    responses={
        403: {"description": "Not the owner", "model": ErrorResponse},
        404: {"description": "Dish not found", "model": ErrorResponse},
        **_AUTH_ERRORS,
    },
    summary="Delete a dish",
)
async def delete_dish(
    dish_id: str,
    identity: User = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await dish_service.delete_dish(db, dish_id=parse_uuid(dish_id), caller_id=identity.id)
    return MessageResponse(message="Dish deleted successfully")
