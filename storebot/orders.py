"""
Order state machine: pending -> verification -> completed.

Transitions are single conditional updates against Supabase, so two racing
requests cannot both move the same order.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from storebot import messages
from storebot.database import Database
from storebot.errors import InvalidTransition, NotFound, NotificationFailed, StoreBotError
from storebot.models import (
    AWAITING_COMPLETION,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_VERIFICATION,
    Order,
)
from storebot.telegram import TelegramAPI

logger = logging.getLogger("storebot.orders")


@dataclass
class CompletionResult:
    order: Order
    changed: bool
    notified: bool = False


class OrderService:
    def __init__(self, db: Database, telegram: Optional[TelegramAPI] = None):
        self.db = db
        self.telegram = telegram

    async def create_order(
        self,
        user_id: Any,
        product_id: Any,
        price: int,
        variant_name: Optional[str] = None,
    ) -> Order:
        """Insert a pending order with ``price`` snapshotted as its total."""
        if price < 0:
            raise ValueError("Order price must be >= 0")
        order = await self.db.insert_order({
            "user_id": user_id,
            "product_id": product_id,
            "total_price": price,
            "variant_name": variant_name,
            "status": STATUS_PENDING,
            "created_at": datetime.now(timezone.utc).isoformat(),
        })
        logger.info(f"Order #{order.id} created for {user_id}: product={product_id} total={price}")
        return order

    async def find_active_pending(self, user_id: Any) -> Optional[Order]:
        return await self.db.find_latest_pending(user_id)

    async def get_order(self, order_id: Any) -> Order:
        order = await self.db.get_order(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    async def list_orders(self) -> list[Order]:
        return await self.db.list_orders()

    async def attach_proof(self, order_id: Any, proof_url: str) -> Order:
        """pending -> verification, storing the proof link."""
        updated = await self.db.update_order_if_status(
            order_id,
            [STATUS_PENDING],
            {"status": STATUS_VERIFICATION, "payment_proof_url": proof_url},
        )
        if updated is not None:
            logger.info(f"Order #{order_id} moved to verification")
            return updated

        current = await self.get_order(order_id)
        raise InvalidTransition(order_id, current.status, [STATUS_PENDING])

    async def complete(self, order_id: Any, credentials: str) -> CompletionResult:
        """verification -> completed, then deliver ``credentials`` to the buyer.

        Completing an order that is already completed is a successful no-op:
        nothing is written and no second notification goes out.
        """
        updated = await self.db.update_order_if_status(
            order_id,
            AWAITING_COMPLETION,
            {"status": STATUS_COMPLETED, "admin_notes": credentials},
        )
        if updated is None:
            current = await self.get_order(order_id)
            if current.status == STATUS_COMPLETED:
                logger.info(f"Order #{order_id} already completed, skipping")
                return CompletionResult(order=current, changed=False)
            raise InvalidTransition(order_id, current.status, AWAITING_COMPLETION)

        logger.info(f"Order #{order_id} completed")
        notified = await self._notify_completed(updated, credentials)
        return CompletionResult(order=updated, changed=True, notified=notified)

    async def _notify_completed(self, order: Order, credentials: str) -> bool:
        try:
            if self.telegram is None:
                raise NotificationFailed("Telegram bot is not configured")
            await self.telegram.send_message(order.user_id, messages.order_completed_text(credentials))
            return True
        except StoreBotError as e:
            # The order is already completed; a lost message must not undo that
            logger.error(f"Completion notice for order #{order.id} to {order.user_id} failed: {e}")
            return False
