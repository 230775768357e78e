"""
Telegram Bot API wrapper over a shared httpx client.
"""
from __future__ import annotations

import hmac
import logging
from typing import Any, Optional

import httpx

from storebot.errors import TelegramError

logger = logging.getLogger("storebot.telegram")


class TelegramAPI:
    """Thin async Bot API client. One instance per bot token."""

    BASE_URL = "https://api.telegram.org"

    def __init__(self, token: str, client: httpx.AsyncClient):
        self.token = token
        self.client = client

    def _method_url(self, method: str) -> str:
        return f"{self.BASE_URL}/bot{self.token}/{method}"

    async def call(self, method: str, payload: dict) -> Any:
        """Invoke a Bot API method and return its ``result``."""
        try:
            response = await self.client.post(self._method_url(method), json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Telegram {method} transport error: {type(e).__name__}")
            raise TelegramError(method, type(e).__name__) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400 or not data.get("ok"):
            description = data.get("description") or response.text
            logger.error(f"Telegram API error: {method} {response.status_code} - {description}")
            raise TelegramError(method, description, response.status_code)

        return data.get("result")

    async def send_message(
        self,
        chat_id: Any,
        text: str,
        reply_markup: Optional[dict] = None,
        parse_mode: str = "HTML",
    ) -> dict:
        payload = {"chat_id": chat_id, "text": text, "parse_mode": parse_mode}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self.call("sendMessage", payload)

    async def send_photo(
        self,
        chat_id: Any,
        photo: str,
        caption: str = "",
        reply_markup: Optional[dict] = None,
        parse_mode: str = "HTML",
    ) -> dict:
        payload = {"chat_id": chat_id, "photo": photo, "caption": caption, "parse_mode": parse_mode}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self.call("sendPhoto", payload)

    async def edit_message_text(
        self,
        chat_id: Any,
        message_id: int,
        text: str,
        reply_markup: Optional[dict] = None,
        parse_mode: str = "HTML",
    ) -> dict:
        payload = {"chat_id": chat_id, "message_id": message_id, "text": text, "parse_mode": parse_mode}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self.call("editMessageText", payload)

    async def delete_message(self, chat_id: Any, message_id: int) -> bool:
        return await self.call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> bool:
        payload = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        return await self.call("answerCallbackQuery", payload)

    async def download_file(self, file_id: str) -> bytes:
        """Resolve ``file_id`` via getFile and download its content."""
        info = await self.call("getFile", {"file_id": file_id})
        file_path = (info or {}).get("file_path")
        if not file_path:
            raise TelegramError("getFile", "file_path missing")

        try:
            response = await self.client.get(f"{self.BASE_URL}/file/bot{self.token}/{file_path}")
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Telegram file download failed: {type(e).__name__}")
            raise TelegramError("downloadFile", type(e).__name__) from e
        return response.content

    @staticmethod
    def verify_secret(expected: str, received: Optional[str]) -> bool:
        """Check the X-Telegram-Bot-Api-Secret-Token header."""
        if not expected:
            return True
        return hmac.compare_digest(expected, received or "")
