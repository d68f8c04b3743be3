"""
dineAR Backend — QR Payload Generator
======================================

What:  Renders the printable QR code for a dish as a PNG data URL.
Why:   Restaurants print the code next to the menu item; scanning it opens
       the AR viewer at <client_url>/ar/<dish_id>.
How:   `qrcode` builds the matrix and renders a PNG through Pillow in the
       threadpool (CPU-bound); the bytes are base64-encoded into a data URL.

Failure policy:
    generate() raises QRGenerationError on any rendering failure. DishService
    catches it and stores the dish with qr_payload_url = null; a missing QR
    code never fails the create request.
"""

import base64
import io
import logging
from typing import Optional
from uuid import UUID

import qrcode
from starlette.concurrency import run_in_threadpool

from dinear.config import settings

logger = logging.getLogger(__name__)


class QRGenerationError(Exception):
    """Internal: QR rendering failed. Never reaches the client."""


def ar_view_url(dish_id: UUID, client_url: Optional[str] = None) -> str:
    """The URL encoded in a dish's QR code."""
    base = (client_url or settings.client_url).rstrip("/")
    return f"{base}/ar/{dish_id}"


def render_png_data_url(content: str) -> str:
    """Synchronous render of `content` to a data:image/png;base64 URL."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(content)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


class QRService:
    def __init__(self, client_url: Optional[str] = None):
        self.client_url = client_url

    async def generate(self, dish_id: UUID) -> str:
        """
        Return the QR payload URL for a dish.

        Raises:
            QRGenerationError if rendering fails for any reason.
        """
        content = ar_view_url(dish_id, self.client_url)
        try:
            return await run_in_threadpool(render_png_data_url, content)
        except Exception as e:
            raise QRGenerationError(f"{type(e).__name__}: {e}") from e


qr_service = QRService()
