"""
Payment proof ingestion: relay the receipt photo to the image host and move
the user's pending order to verification.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from storebot import messages
from storebot.errors import NoPendingOrder, StoreBotError, UploadFailed
from storebot.models import Order
from storebot.orders import OrderService
from storebot.telegram import TelegramAPI

logger = logging.getLogger("storebot.payments")


class ImageHost:
    """Uploads files to a catbox-compatible endpoint and returns the public URL."""

    def __init__(self, client: httpx.AsyncClient, url: str = "https://catbox.moe/user/api.php"):
        self.client = client
        self.url = url

    async def upload(self, data: bytes, filename: str, content_type: str = "image/jpeg") -> str:
        try:
            response = await self.client.post(
                self.url,
                data={"reqtype": "fileupload"},
                files={"fileToUpload": (filename, data, content_type)},
            )
        except httpx.HTTPError as e:
            raise UploadFailed(f"Image host unreachable: {type(e).__name__}") from e

        if response.status_code >= 400:
            raise UploadFailed(f"Image host error {response.status_code}")

        link = response.text.strip()
        if not link.startswith("http"):
            raise UploadFailed(f"Image host rejected upload: {link[:100]}")
        return link


class ProofIngestion:
    def __init__(
        self,
        orders: OrderService,
        image_host: ImageHost,
        telegram: Optional[TelegramAPI] = None,
        operator_chat_id: Optional[str] = None,
    ):
        self.orders = orders
        self.image_host = image_host
        self.telegram = telegram
        self.operator_chat_id = operator_chat_id

    async def ingest_proof(self, user_id: Any, image_bytes: bytes, username: Optional[str] = None) -> Order:
        order = await self.orders.find_active_pending(user_id)
        if order is None:
            raise NoPendingOrder(f"No pending order for {user_id}")

        try:
            proof_url = await self.image_host.upload(image_bytes, f"proof_{order.id}.jpg")
        except UploadFailed:
            logger.error(f"Proof upload failed for order #{order.id} (user {user_id})")
            raise

        updated = await self.orders.attach_proof(order.id, proof_url)
        # Relation fields are not part of the update response
        updated.product_name = updated.product_name or order.product_name

        await self._notify_operator(updated, username)
        return updated

    async def _notify_operator(self, order: Order, username: Optional[str]) -> None:
        if not (self.telegram and self.operator_chat_id):
            return
        try:
            await self.telegram.send_photo(
                self.operator_chat_id,
                order.payment_proof_url,
                caption=messages.operator_proof_text(order, username),
            )
        except StoreBotError as e:
            logger.error(f"Operator notification for order #{order.id} failed: {e}")
