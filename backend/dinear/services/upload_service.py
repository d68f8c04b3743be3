"""
dineAR Backend — Upload Handler
================================

What:  Accepts the single dish image of a multipart request, validates it and
       writes it to the upload root. Also maps stored names to public URLs and
       removes assets that are no longer referenced.
Why:   Centralizes every file system operation so the dish pipeline never
       touches paths directly.
How:   Declared content type and size are checked before any byte is written;
       accepted bytes are written with aiofiles under a generated name.
Who:   Called by the dish routes (extraction) and DishService (store/delete).

Security Model:
    1. Field check:     Only one file, and only on the `image` field
    2. Type check:      Declared content type must be an allowed image type
    3. Size check:      Empty files and files over max_upload_size are refused
    4. Generated name:  <epoch-millis>-<random-token><ext>; no client input
                        reaches the path, so traversal is impossible
    5. Basename delete: delete() strips any directory part before unlinking

Directory Structure:
    uploads/
    ├── 1718123456789-Xk3p9QzT0aBc.jpg
    └── 1718123460012-Lm2n8RsU4dEf.webp

    Flat on purpose: files are served by StaticFiles at /uploads/<name>.
"""

import logging
import posixpath
import secrets
import time
from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

import aiofiles
import aiofiles.os
from starlette.datastructures import FormData, UploadFile

from dinear.config import settings
from dinear.exceptions import FileStorageError, UploadRejectedError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
# Declared MIME type → extension of the stored file
ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}

UPLOAD_FIELD = "image"
PUBLIC_PREFIX = "/uploads"


def extract_single_upload(
    form: FormData, field: str = UPLOAD_FIELD
) -> Tuple[Dict[str, str], Optional[UploadFile]]:
    """
    Split a parsed multipart form into text fields and at most one file.

    Returns:
        (text_fields, upload) where upload is None if no file was sent.

    Raises:
        UploadRejectedError: a file arrived on another field, or more than
            one file was sent
    """
    fields: Dict[str, str] = {}
    upload: Optional[UploadFile] = None

    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key != field:
                raise UploadRejectedError(
                    message="Unexpected file field",
                    context={"field": key},
                )
            if upload is not None:
                raise UploadRejectedError(message="Only one image can be uploaded")
            upload = value
        else:
            # Repeated text fields: the last one wins
            fields[key] = value

    return fields, upload


def public_url(base_url: str, stored_name: str) -> str:
    """Map a stored name to the URL StaticFiles serves it at."""
    return f"{base_url.rstrip('/')}{PUBLIC_PREFIX}/{stored_name}"


def stored_name_from_url(url: Optional[str]) -> Optional[str]:
    """Inverse of public_url(): the stored name is the URL's last path segment."""
    if not url:
        return None
    name = posixpath.basename(urlparse(url).path)
    return name or None


class UploadService:
    """
    Manages the lifecycle of uploaded dish images.

    Lifecycle of an uploaded file:
        1. Route parses the form → extract_single_upload()
        2. DishService calls validate_and_store() after text validation passed
        3. The stored name is turned into thumbnail/model URLs on the record
        4. If the record write fails, DishService calls delete() on the new file
        5. When a dish is updated with a new image or deleted, the old file is
           removed with delete() after the database change committed
    """

    def __init__(self, upload_dir: Optional[str] = None, max_size: Optional[int] = None):
        """
        Args:
            upload_dir: Override the upload root (tests use a temp dir)
            max_size: Override the maximum accepted size in bytes
        """
        self.upload_dir = Path(upload_dir or settings.upload_dir).resolve()
        self.max_size = max_size or settings.max_upload_size
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        logger.info("UploadService initialized with upload_dir=%s", self.upload_dir)

    def validate_content_type(self, content_type: Optional[str]) -> str:
        """Return the stored-file extension for an allowed declared type."""
        normalized = (content_type or "").split(";")[0].strip().lower()
        if normalized not in ALLOWED_CONTENT_TYPES:
            raise UploadRejectedError(
                message="Only JPEG, PNG and WebP images are allowed",
                context={"content_type": normalized, "allowed": list(ALLOWED_CONTENT_TYPES)},
            )
        return ALLOWED_CONTENT_TYPES[normalized]

    def validate_size(self, size: int) -> None:
        if size == 0:
            raise UploadRejectedError(message="Uploaded file is empty")
        if size > self.max_size:
            max_mb = self.max_size / (1024 * 1024)
            raise UploadRejectedError(
                message=f"File too large. Maximum size is {max_mb:.0f}MB",
                context={"max_size": self.max_size},
            )

    def generate_name(self, extension: str) -> str:
        """<epoch-millis>-<random-token><ext>"""
        return f"{int(time.time() * 1000)}-{secrets.token_urlsafe(12)}{extension}"

    async def store(self, content: bytes, extension: str) -> str:
        """
        Write validated bytes under a fresh generated name.

        Raises:
            FileStorageError if the write fails (the partial file is removed).
        """
        stored_name = self.generate_name(extension)
        path = self.upload_dir / stored_name

        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store upload %s: %s", stored_name, e)
            await self.delete(stored_name)
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"os_error": str(e)},
            )

        logger.info("Upload stored: %s (%d bytes)", stored_name, len(content))
        return stored_name

    async def validate_and_store(self, upload: UploadFile) -> str:
        """
        Complete validation and storage pipeline for one upload.

        Validation order (cheapest first, nothing written until all pass):
            1. Declared content type
            2. Size, reading at most max_size + 1 bytes
            3. Write to disk

        Returns:
            The stored name (basename inside the upload root).
        """
        extension = self.validate_content_type(upload.content_type)

        content = await upload.read(self.max_size + 1)
        self.validate_size(len(content))

        return await self.store(content, extension)

    async def delete(self, stored_name: Optional[str]) -> bool:
        """
        Remove a stored file. Best-effort: never raises.

        Only the basename of `stored_name` is used, so "../x" cannot escape
        the upload root. Returns True if a file was removed.
        """
        name = Path(stored_name or "").name
        if not name or name in (".", ".."):
            return False

        path = self.upload_dir / name
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.debug("Cleanup: file already gone: %s", name)
            return False
        except OSError as e:
            logger.warning("Failed to delete upload %s: %s", name, e)
            return False

        logger.info("Deleted upload: %s", name)
        return True

    def exists(self, stored_name: str) -> bool:
        return (self.upload_dir / Path(stored_name).name).is_file()


# ── Singleton Instance ────────────────────────────────────────────────────
upload_service = UploadService()
