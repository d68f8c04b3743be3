"""
dineAR Backend — Dish Service (Ownership-Enforcing Pipeline)
=============================================================

What:  CRUD on dishes, with upload storage, ownership checks and cleanup of
       stored images on every failure path.
Why:   Keeps the ordering rules of the pipeline in one place, independent of
       HTTP concerns. Routes only authenticate, validate and call in here.
How:   Composes UploadService, QRService and the database session. Each
       mutating method commits explicitly so file cleanup can be sequenced
       against the commit.

Orchestration Flow (POST /api/dishes, PUT /api/dishes/{id}):
    ┌──────────┐    ┌─────────────┐    ┌──────────┐    ┌───────────┐    ┌────────┐
    │ Validate │───▶│ Store image │───▶│  Lookup  │───▶│ Ownership │───▶│ Commit │
    │ (Route)  │    │ (UploadSvc) │    │ (update) │    │ (update)  │    │  (DB)  │
    └──────────┘    └─────────────┘    └──────────┘    └───────────┘    └────────┘

    On failure after the image was stored: the new file is deleted, then the
    error propagates. Old images are deleted only after the commit.

Design Decision:
    DishService is stateless; it receives the db session per call and the
    owner/caller id from the authentication dependency. owner_id is never
    read from the request payload.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Set

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from dinear.exceptions import AuthorizationError, DatabaseError, NotFoundError
from dinear.models.dish import Dish
from dinear.schemas.common import Pagination
from dinear.schemas.dish import DishCreateForm, DishListData, DishResponse, DishUpdateForm
from dinear.services.qr_service import QRGenerationError, qr_service
from dinear.services.upload_service import public_url, stored_name_from_url, upload_service

logger = logging.getLogger(__name__)


def _asset_names(dish: Dish) -> Set[str]:
    """Stored names referenced by a dish (thumbnail and model share one today)."""
    names = {stored_name_from_url(dish.thumbnail_url), stored_name_from_url(dish.model_url)}
    names.discard(None)
    return names


class DishService:
    """
    Business logic for dish operations.

    Responsibilities:
        - list_dishes(): the caller's dishes, newest first, offset pagination
        - get_dish(): any dish by id (public read)
        - create_dish(): store image → QR payload → insert
        - update_dish(): store image → lookup → ownership → update → old image cleanup
        - delete_dish(): lookup → ownership → delete → image cleanup

    Error Handling Strategy:
        Our own exceptions propagate unchanged. SQLAlchemy errors are wrapped
        in DatabaseError so no SQL detail reaches the client.
    """

    async def list_dishes(
        self, db: AsyncSession, owner_id: uuid.UUID, page: int, limit: int
    ) -> DishListData:
        """
        One page of the owner's dishes.

        Query plan:
            SELECT * FROM dishes WHERE owner_id = :owner
            ORDER BY created_at DESC, id DESC LIMIT :limit OFFSET :offset
            → idx_dishes_owner_created_at
        """
        try:
            result = await db.execute(
                select(Dish)
                .where(Dish.owner_id == owner_id)
                .order_by(desc(Dish.created_at), desc(Dish.id))
                .limit(limit)
                .offset((page - 1) * limit)
            )
            dishes: List[Dish] = list(result.scalars().all())

            count_result = await db.execute(
                select(func.count(Dish.id)).where(Dish.owner_id == owner_id)
            )
            total = count_result.scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error listing dishes: %s", e, exc_info=True)
            raise DatabaseError(
                message="Could not retrieve dishes. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return DishListData(
            dishes=[DishResponse.model_validate(d) for d in dishes],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit) if total else 0,
            ),
        )

    async def get_dish(self, db: AsyncSession, dish_id: uuid.UUID) -> DishResponse:
        """Any dish by id. Raises NotFoundError (→ 404)."""
        dish = await self._load(db, dish_id)
        return DishResponse.model_validate(dish)

    async def create_dish(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        form: DishCreateForm,
        upload: UploadFile,
        base_url: str,
    ) -> DishResponse:
        """
        Create a dish owned by `owner_id` from validated form fields and an image.

        The id is assigned up front so the QR payload can be rendered before
        the single insert. A QR failure is logged and leaves qr_payload_url null.

        Raises:
            UploadRejectedError: the image failed type/size checks (nothing stored)
            DatabaseError: the insert failed (the stored image is removed)
        """
        stored_name = await upload_service.validate_and_store(upload)

        try:
            dish_id = uuid.uuid4()
            image_url = public_url(base_url, stored_name)
            dish = Dish(
                id=dish_id,
                owner_id=owner_id,
                name=form.name,
                plate_size=form.plate_size,
                thumbnail_url=image_url,
                model_url=image_url,
                qr_payload_url=await self._qr_payload(dish_id),
            )
            db.add(dish)
            await db.commit()
        except SQLAlchemyError as e:
            await self._discard(db, stored_name)
            logger.error("Failed to create dish: %s", e, exc_info=True)
            raise DatabaseError(
                message="Could not save the dish. Please try again.",
                context={"error_type": type(e).__name__},
            )
        except Exception:
            await self._discard(db, stored_name)
            raise

        logger.info("Dish %s created by %s", dish.id, owner_id)
        return DishResponse.model_validate(dish)

    async def update_dish(
        self,
        db: AsyncSession,
        dish_id: uuid.UUID,
        caller_id: uuid.UUID,
        form: DishUpdateForm,
        upload: Optional[UploadFile],
        base_url: str,
    ) -> DishResponse:
        """
        Apply the sent fields and, optionally, a replacement image.

        Ordering:
            1. Store the new image (if any)
            2. Lookup (404) and ownership check (403); nothing is modified
               before both pass
            3. Commit
            4. Delete the previous image, only after the commit succeeded

        Any failure in 2-3 deletes the new image before propagating.
        """
        new_name: Optional[str] = None
        if upload is not None:
            new_name = await upload_service.validate_and_store(upload)

        old_names: Set[str] = set()
        try:
            dish = await self._load(db, dish_id)
            self._ensure_owner(dish, caller_id, action="update")

            if form.name is not None:
                dish.name = form.name
            if form.plate_size is not None:
                dish.plate_size = form.plate_size
            if new_name is not None:
                old_names = _asset_names(dish)
                image_url = public_url(base_url, new_name)
                dish.thumbnail_url = image_url
                dish.model_url = image_url
            dish.updated_at = datetime.now(timezone.utc)

            await db.commit()
        except SQLAlchemyError as e:
            await self._discard(db, new_name)
            logger.error("Failed to update dish %s: %s", dish_id, e, exc_info=True)
            raise DatabaseError(
                message="Could not update the dish. Please try again.",
                context={"dish_id": str(dish_id)},
            )
        except Exception:
            await self._discard(db, new_name)
            raise

        for name in old_names - {new_name}:
            await upload_service.delete(name)

        logger.info("Dish %s updated by %s", dish_id, caller_id)
        return DishResponse.model_validate(dish)

    async def delete_dish(self, db: AsyncSession, dish_id: uuid.UUID, caller_id: uuid.UUID) -> None:
        """
        Delete the record, commit, then remove its image best-effort.

        Raises:
            NotFoundError (→ 404), AuthorizationError (→ 403)
        """
        dish = await self._load(db, dish_id)
        self._ensure_owner(dish, caller_id, action="delete")
        names = _asset_names(dish)

        try:
            await db.delete(dish)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to delete dish %s: %s", dish_id, e, exc_info=True)
            raise DatabaseError(
                message="Could not delete the dish. Please try again.",
                context={"dish_id": str(dish_id)},
            )

        for name in names:
            await upload_service.delete(name)

        logger.info("Dish %s deleted by %s", dish_id, caller_id)

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _load(self, db: AsyncSession, dish_id: uuid.UUID) -> Dish:
        try:
            result = await db.execute(select(Dish).where(Dish.id == dish_id))
        except SQLAlchemyError as e:
            logger.error("Database error fetching dish %s: %s", dish_id, e)
            raise DatabaseError(
                message="Could not retrieve the dish. Please try again.",
                context={"dish_id": str(dish_id)},
            )
        dish = result.scalar_one_or_none()
        if dish is None:
            raise NotFoundError(resource="dish", resource_id=str(dish_id))
        return dish

    def _ensure_owner(self, dish: Dish, caller_id: uuid.UUID, action: str) -> None:
        # Ownership comes from the stored record only
        if dish.owner_id != caller_id:
            logger.warning(
                "Ownership denied: %s tried to %s dish %s", caller_id, action, dish.id
            )
            raise AuthorizationError(message=f"Not authorized to {action} this dish")

    async def _qr_payload(self, dish_id: uuid.UUID) -> Optional[str]:
        try:
            return await qr_service.generate(dish_id)
        except QRGenerationError as e:
            logger.warning("QR generation failed for dish %s: %s", dish_id, e)
            return None

    async def _discard(self, db: AsyncSession, stored_name: Optional[str]) -> None:
        """Roll back the session and remove a just-stored image."""
        await db.rollback()
        if stored_name:
            await upload_service.delete(stored_name)


# ── Singleton Instance ────────────────────────────────────────────────────
dish_service = DishService()
