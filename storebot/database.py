"""
Supabase persistence gateway.

Every query the bot runs lives here. Supabase/PostgREST failures are wrapped
into ``PersistenceError`` so callers only deal with the domain taxonomy.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from supabase import Client, create_client

from storebot.config import Config
from storebot.errors import PersistenceError
from storebot.models import REVENUE_STATUSES, STATUS_PENDING, Order, Product, User

logger = logging.getLogger("storebot.database")

ORDER_WITH_RELATIONS = "*, products(name), users(username, full_name)"


def create_supabase(config: Config) -> Client:
    if not config.supabase_configured:
        logger.error("Supabase credentials not configured")
        raise RuntimeError("Supabase credentials not configured")
    try:
        client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)
        logger.info("Supabase client initialized")
        return client
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {type(e).__name__}")
        raise RuntimeError("Database connection failed") from e


class Database:
    """Database operations using Supabase."""

    def __init__(self, client: Client, max_display: int = 50):
        self.client = client
        self.max_display = max_display

    def _execute(self, query, what: str):
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"Supabase {what} failed: {type(e).__name__}: {e}")
            raise PersistenceError(f"{what} failed") from e

    # ------------------------------------------------------------
    # Users
    # ------------------------------------------------------------
    async def upsert_user(self, user: User) -> None:
        self._execute(
            self.client.table("users").upsert(user.to_row(), on_conflict="telegram_id"),
            "upsert user",
        )

    # ------------------------------------------------------------
    # Products
    # ------------------------------------------------------------
    async def list_active_products(self) -> list[Product]:
        """Active catalog in display order: ascending id, capped at max_display.

        Invalid rows are dropped before the cap, so the cap always counts
        products the bot can actually show.
        """
        result = self._execute(
            self.client.table("products")
            .select("*")
            .eq("is_active", True)
            .order("id", desc=False),
            "list products",
        )
        return _to_products(result.data or [])[: self.max_display]

    async def list_products(self) -> list[Product]:
        result = self._execute(
            self.client.table("products").select("*").order("id", desc=True),
            "list all products",
        )
        return _to_products(result.data or [])

    async def get_product(self, product_id: Any) -> Optional[Product]:
        result = self._execute(
            self.client.table("products").select("*").eq("id", product_id).limit(1),
            "get product",
        )
        products = _to_products(result.data or [])
        return products[0] if products else None

    async def insert_product(self, product: Product) -> Product:
        result = self._execute(
            self.client.table("products").insert(product.to_row()),
            "insert product",
        )
        return Product.from_row(result.data[0])

    async def delete_product(self, product_id: Any) -> bool:
        result = self._execute(
            self.client.table("products").delete().eq("id", product_id),
            "delete product",
        )
        return bool(result.data)

    # ------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------
    async def insert_order(self, values: dict) -> Order:
        result = self._execute(self.client.table("orders").insert(values), "insert order")
        if not result.data:
            raise PersistenceError("insert order returned no row")
        return Order.from_row(result.data[0])

    async def get_order(self, order_id: Any) -> Optional[Order]:
        result = self._execute(
            self.client.table("orders").select(ORDER_WITH_RELATIONS).eq("id", order_id).limit(1),
            "get order",
        )
        return Order.from_row(result.data[0]) if result.data else None

    async def find_latest_pending(self, user_id: Any) -> Optional[Order]:
        result = self._execute(
            self.client.table("orders")
            .select(ORDER_WITH_RELATIONS)
            .eq("user_id", user_id)
            .eq("status", STATUS_PENDING)
            .order("created_at", desc=True)
            .limit(1),
            "find pending order",
        )
        return Order.from_row(result.data[0]) if result.data else None

    async def update_order_if_status(self, order_id: Any, expected: Iterable[str], values: dict) -> Optional[Order]:
        """Single conditional update: ``... WHERE id = ? AND status IN expected``.

        Returns the updated order, or None if no row matched.
        """
        expected = list(expected)
        query = self.client.table("orders").update(values).eq("id", order_id)
        if len(expected) == 1:
            query = query.eq("status", expected[0])
        else:
            query = query.in_("status", expected)
        result = self._execute(query, "update order")
        return Order.from_row(result.data[0]) if result.data else None

    async def list_orders(self, limit: int = 200) -> list[Order]:
        result = self._execute(
            self.client.table("orders")
            .select(ORDER_WITH_RELATIONS)
            .order("created_at", desc=True)
            .limit(limit),
            "list orders",
        )
        return [Order.from_row(row) for row in result.data or []]

    async def get_stats(self) -> dict:
        products = self._execute(self.client.table("products").select("id", count="exact"), "count products")
        orders = self._execute(self.client.table("orders").select("total_price, status"), "list order totals")
        rows = orders.data or []
        income = sum(int(r.get("total_price") or 0) for r in rows if r.get("status") in REVENUE_STATUSES)
        return {
            "products": products.count or 0,
            "orders": len(rows),
            "income": income,
        }

    async def ping(self) -> None:
        self._execute(self.client.table("users").select("telegram_id").limit(1), "ping")

    # ------------------------------------------------------------
    # Chat log
    # ------------------------------------------------------------
    async def log_chat_message(self, user_id: Any, content: str, message_type: str = "text") -> None:
        """Append an inbound message to the user's chat room (created on demand)."""
        rooms = self._execute(
            self.client.table("chat_rooms").select("id").eq("user_id", user_id).limit(1),
            "get chat room",
        )
        if rooms.data:
            room_id = rooms.data[0]["id"]
        else:
            created = self._execute(
                self.client.table("chat_rooms").insert({"user_id": user_id}),
                "create chat room",
            )
            room_id = created.data[0]["id"]

        self._execute(
            self.client.table("chat_messages").insert({
                "room_id": room_id,
                "is_admin": False,
                "message_type": message_type,
                "content": content,
                "is_read": False,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }),
            "insert chat message",
        )

    async def list_chat_messages(self, user_id: Any, limit: int = 500) -> list[dict]:
        """Messages of the user's chat room, oldest first. Empty if there is no room."""
        rooms = self._execute(
            self.client.table("chat_rooms").select("id").eq("user_id", user_id).limit(1),
            "get chat room",
        )
        if not rooms.data:
            return []
        result = self._execute(
            self.client.table("chat_messages")
            .select("*")
            .eq("room_id", rooms.data[0]["id"])
            .order("created_at", desc=False)
            .limit(limit),
            "list chat messages",
        )
        return result.data or []


def _to_products(rows: list[dict]) -> list[Product]:
    products = []
    for row in rows:
        try:
            products.append(Product.from_row(row))
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Skipping invalid product row {row.get('id')}: {e}")
    return products
