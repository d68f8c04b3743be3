"""
dineAR Backend — Dish Service Tests
====================================

What:  Ordering guarantees of the ownership pipeline at the service layer:
       ownership denial leaves the record untouched, failures after an image
       was stored remove it, old images go only after the commit, and a QR
       failure degrades to a null payload.
How:   Real SQLite session plus unittest.mock fault injection.
"""

import io
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.exc import SQLAlchemyError
from starlette.datastructures import Headers, UploadFile

from dinear.exceptions import AuthorizationError, DatabaseError, NotFoundError, UploadRejectedError
from dinear.schemas.dish import DishCreateForm, DishUpdateForm
from dinear.services.credential_service import credential_service
from dinear.services.dish_service import DishService
from dinear.services.qr_service import QRGenerationError

from conftest import JPEG_BYTES, PNG_BYTES, stored_files

BASE_URL = "http://test/"


def make_upload(content: bytes = JPEG_BYTES, content_type: str = "image/jpeg"):
    return UploadFile(file=io.BytesIO(content), filename="dish.jpg", headers=Headers({"content-type": content_type}))


@pytest_asyncio.fixture
async def ctx(db_session, upload_dir):
    """Two users, a DishService and the shared upload root."""
    owner = await credential_service.create_identity(db_session, "owner@x.com", "pass1234")
    other = await credential_service.create_identity(db_session, "other@x.com", "pass1234")
    return SimpleNamespace(
        db=db_session,
        upload_dir=upload_dir,
        service=DishService(),
        owner_id=owner.id,
        other_id=other.id,
    )


async def _create(ctx, name="Ramen", plate_size="small"):
    return await ctx.service.create_dish(
        ctx.db,
        owner_id=ctx.owner_id,
        form=DishCreateForm(name=name, plate_size=plate_size),
        upload=make_upload(),
        base_url=BASE_URL,
    )


class TestDishService:

    # ── Create ────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_create_sets_owner_urls_and_qr(self, ctx):
        dish = await _create(ctx)

        assert dish.owner_id == ctx.owner_id
        assert dish.plate_size == "small"
        assert dish.thumbnail_url.startswith("http://test/uploads/")
        assert dish.model_url == dish.thumbnail_url
        assert dish.qr_payload_url.startswith("data:image/png;base64,")
        assert stored_files(ctx.upload_dir) == [dish.thumbnail_url.rsplit("/", 1)[1]]

    @pytest.mark.asyncio
    async def test_qr_failure_leaves_payload_null(self, ctx):
        with patch(
            "dinear.services.dish_service.qr_service.generate",
            AsyncMock(side_effect=QRGenerationError("renderer down")),
        ):
            dish = await _create(ctx)

        assert dish.qr_payload_url is None
        assert (await ctx.service.get_dish(ctx.db, dish.id)).name == "Ramen"

    @pytest.mark.asyncio
    async def test_rejected_upload_writes_nothing(self, ctx):
        with pytest.raises(UploadRejectedError):
            await ctx.service.create_dish(
                ctx.db,
                owner_id=ctx.owner_id,
                form=DishCreateForm(name="Ramen"),
                upload=make_upload(content_type="image/gif"),
                base_url=BASE_URL,
            )
        assert stored_files(ctx.upload_dir) == []

    @pytest.mark.asyncio
    async def test_commit_failure_removes_stored_image(self, ctx):
        with patch.object(ctx.db, "commit", AsyncMock(side_effect=SQLAlchemyError("boom"))):
            with pytest.raises(DatabaseError):
                await _create(ctx)

        assert stored_files(ctx.upload_dir) == []

    # ── Update ────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_update_applies_only_sent_fields(self, ctx):
        dish = await _create(ctx)
        updated = await ctx.service.update_dish(
            ctx.db, dish.id, ctx.owner_id, DishUpdateForm(plate_size="large"), None, BASE_URL
        )
        assert updated.name == "Ramen"
        assert updated.plate_size == "large"
        assert updated.thumbnail_url == dish.thumbnail_url

    @pytest.mark.asyncio
    async def test_replacement_image_deletes_old_after_commit(self, ctx):
        dish = await _create(ctx)
        old_name = dish.thumbnail_url.rsplit("/", 1)[1]

        updated = await ctx.service.update_dish(
            ctx.db, dish.id, ctx.owner_id, DishUpdateForm(), make_upload(PNG_BYTES, "image/png"), BASE_URL
        )
        new_name = updated.thumbnail_url.rsplit("/", 1)[1]

        assert new_name != old_name
        assert new_name.endswith(".png")
        assert stored_files(ctx.upload_dir) == [new_name]

    @pytest.mark.asyncio
    async def test_failed_update_keeps_old_image_and_drops_new(self, ctx):
        dish = await _create(ctx)
        old_name = dish.thumbnail_url.rsplit("/", 1)[1]

        with patch.object(ctx.db, "commit", AsyncMock(side_effect=SQLAlchemyError("boom"))):
            with pytest.raises(DatabaseError):
                await ctx.service.update_dish(
                    ctx.db, dish.id, ctx.owner_id, DishUpdateForm(), make_upload(), BASE_URL
                )

        assert stored_files(ctx.upload_dir) == [old_name]

    @pytest.mark.asyncio
    async def test_non_owner_update_denied_and_record_unchanged(self, ctx):
        dish = await _create(ctx)

        with pytest.raises(AuthorizationError, match="Not authorized to update this dish"):
            await ctx.service.update_dish(
                ctx.db, dish.id, ctx.other_id, DishUpdateForm(name="Stolen"), make_upload(), BASE_URL
            )

        reloaded = await ctx.service.get_dish(ctx.db, dish.id)
        assert reloaded.name == "Ramen"
        assert reloaded.thumbnail_url == dish.thumbnail_url
        # The non-owner's upload was removed, the owner's image kept
        assert stored_files(ctx.upload_dir) == [dish.thumbnail_url.rsplit("/", 1)[1]]

    @pytest.mark.asyncio
    async def test_update_missing_dish_removes_new_image(self, ctx):
        with pytest.raises(NotFoundError, match="Dish not found"):
            await ctx.service.update_dish(
                ctx.db, uuid4(), ctx.owner_id, DishUpdateForm(), make_upload(), BASE_URL
            )
        assert stored_files(ctx.upload_dir) == []

    # ── Delete ────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_delete_removes_record_then_image(self, ctx):
        dish = await _create(ctx)
        await ctx.service.delete_dish(ctx.db, dish.id, ctx.owner_id)

        with pytest.raises(NotFoundError):
            await ctx.service.get_dish(ctx.db, dish.id)
        assert stored_files(ctx.upload_dir) == []

    @pytest.mark.asyncio
    async def test_non_owner_delete_denied(self, ctx):
        dish = await _create(ctx)
        with pytest.raises(AuthorizationError, match="Not authorized to delete this dish"):
            await ctx.service.delete_dish(ctx.db, dish.id, ctx.other_id)
        assert (await ctx.service.get_dish(ctx.db, dish.id)).id == dish.id

    @pytest.mark.asyncio
    async def test_image_delete_failure_does_not_fail_delete(self, ctx):
        dish = await _create(ctx)
        with patch("dinear.services.upload_service.aiofiles.os.remove", side_effect=PermissionError("ro")):
            await ctx.service.delete_dish(ctx.db, dish.id, ctx.owner_id)

        with pytest.raises(NotFoundError):
            await ctx.service.get_dish(ctx.db, dish.id)

    # ── List ──────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_list_only_own_dishes_with_pagination(self, ctx):
        for name in ("One", "Two", "Three"):
            await _create(ctx, name=name)
        await ctx.service.create_dish(
            ctx.db, ctx.other_id, DishCreateForm(name="Foreign"), make_upload(), BASE_URL
        )

        page = await ctx.service.list_dishes(ctx.db, ctx.owner_id, page=1, limit=2)
        assert page.pagination.total == 3
        assert page.pagination.pages == 2
        assert len(page.dishes) == 2
        assert all(d.owner_id == ctx.owner_id for d in page.dishes)

        last = await ctx.service.list_dishes(ctx.db, ctx.owner_id, page=2, limit=2)
        assert len(last.dishes) == 1
