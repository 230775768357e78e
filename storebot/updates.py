"""
Inbound Telegram updates, validated into tagged types at the webhook boundary.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

logger = logging.getLogger("storebot.updates")


@dataclass(frozen=True)
class Sender:
    user_id: Any
    first_name: str = ""
    last_name: str = ""
    username: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class TextUpdate:
    kind = "text"
    chat_id: Any
    message_id: int
    sender: Sender
    text: str


@dataclass(frozen=True)
class PhotoUpdate:
    kind = "photo"
    chat_id: Any
    message_id: int
    sender: Sender
    file_id: str


@dataclass(frozen=True)
class CallbackUpdate:
    kind = "callback"
    callback_id: str
    chat_id: Any
    message_id: int
    sender: Sender
    data: str


Update = Union[TextUpdate, PhotoUpdate, CallbackUpdate]


def _sender(raw: dict, chat: dict) -> Sender:
    raw = raw or {}
    return Sender(
        user_id=raw.get("id", chat.get("id")),
        first_name=raw.get("first_name") or chat.get("first_name") or "",
        last_name=raw.get("last_name") or chat.get("last_name") or "",
        username=raw.get("username") or chat.get("username") or "",
    )


def parse_update(data: dict) -> Optional[Update]:
    """Extract the update we handle, or None for anything else."""
    if not isinstance(data, dict):
        return None

    try:
        query = data.get("callback_query")
        if query:
            message = query.get("message") or {}
            chat = message.get("chat") or {}
            if "id" not in chat:
                return None
            return CallbackUpdate(
                callback_id=str(query["id"]),
                chat_id=chat["id"],
                message_id=message.get("message_id"),
                sender=_sender(query.get("from"), chat),
                data=query.get("data") or "",
            )

        message = data.get("message")
        if not message:
            return None
        chat = message.get("chat") or {}
        if "id" not in chat:
            return None
        sender = _sender(message.get("from"), chat)

        if message.get("text") is not None:
            return TextUpdate(
                chat_id=chat["id"],
                message_id=message.get("message_id"),
                sender=sender,
                text=message["text"],
            )

        photos = message.get("photo")
        if photos:
            # Telegram lists sizes smallest first
            return PhotoUpdate(
                chat_id=chat["id"],
                message_id=message.get("message_id"),
                sender=sender,
                file_id=photos[-1]["file_id"],
            )
    except (KeyError, TypeError, AttributeError) as e:
        logger.error(f"Error extracting update: {e}")
        return None

    return None
