"""
Domain models: products, variants, orders and users.

Rows coming back from Supabase are plain dicts; they are converted here at the
boundary so the rest of the bot works with typed objects.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger("storebot.models")


# ============================================================
# ORDER STATUS
# ============================================================
STATUS_PENDING = "pending"
STATUS_VERIFICATION = "verification"
STATUS_COMPLETED = "completed"

# Older rows used "paid" for the verification step
STATUS_PAID_LEGACY = "paid"

AWAITING_COMPLETION = (STATUS_VERIFICATION, STATUS_PAID_LEGACY)
REVENUE_STATUSES = (STATUS_COMPLETED, STATUS_VERIFICATION, STATUS_PAID_LEGACY)


@dataclass(frozen=True)
class Variant:
    name: str
    price: int


def parse_variants(raw: Any) -> list[Variant]:
    """Decode the variants column, which may be a JSON string or a list."""
    if not raw:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed variants JSON")
            return []
    if not isinstance(raw, list):
        return []

    variants = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        price = int(item.get("price") or 0)
        if price < 0:
            raise ValueError(f"Variant price must be >= 0, got {price}")
        variants.append(Variant(name=str(item.get("name") or "Variant"), price=price))
    return variants


@dataclass
class Product:
    """A catalog entry. Variants are addressed by their list position."""

    id: Any
    name: str
    price: int = 0
    unit: str = ""
    category: str = ""
    description: str = ""
    is_active: bool = True
    variants: list[Variant] = field(default_factory=list)

    def __post_init__(self):
        if self.price < 0:
            raise ValueError(f"Product price must be >= 0, got {self.price}")

    @property
    def has_variants(self) -> bool:
        return len(self.variants) > 0

    @property
    def min_price(self) -> int:
        if self.has_variants:
            return min(v.price for v in self.variants)
        return self.price

    @classmethod
    def from_row(cls, row: dict) -> "Product":
        return cls(
            id=row["id"],
            name=row.get("name") or "",
            price=int(row.get("price") or 0),
            unit=row.get("unit") or "",
            category=row.get("software_type") or "",
            description=row.get("description") or "",
            is_active=bool(row.get("is_active", True)),
            variants=parse_variants(row.get("variants")),
        )

    def to_row(self) -> dict:
        row = {
            "name": self.name,
            "price": self.price,
            "unit": self.unit or None,
            "software_type": self.category or None,
            "description": self.description or None,
            "is_active": self.is_active,
            "variants": [{"name": v.name, "price": v.price} for v in self.variants] or None,
        }
        return row


@dataclass
class Order:
    id: Any
    user_id: Any
    product_id: Any
    total_price: int
    status: str = STATUS_PENDING
    variant_name: Optional[str] = None
    payment_proof_url: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: Optional[str] = None
    product_name: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "Order":
        # Embedded relations come back as nested dicts: products(name), users(...)
        product = row.get("products") or {}
        user = row.get("users") or {}
        return cls(
            id=row["id"],
            user_id=row.get("user_id"),
            product_id=row.get("product_id"),
            total_price=int(row.get("total_price") or 0),
            status=row.get("status") or STATUS_PENDING,
            variant_name=row.get("variant_name"),
            payment_proof_url=row.get("payment_proof_url"),
            admin_notes=row.get("admin_notes"),
            created_at=row.get("created_at"),
            product_name=product.get("name"),
            username=user.get("username"),
            full_name=user.get("full_name"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "variant_name": self.variant_name,
            "total_price": self.total_price,
            "status": self.status,
            "payment_proof_url": self.payment_proof_url,
            "admin_notes": self.admin_notes,
            "created_at": self.created_at,
            "username": self.username,
            "full_name": self.full_name,
        }


@dataclass
class User:
    telegram_id: Any
    username: str = ""
    full_name: str = ""

    def to_row(self) -> dict:
        return {
            "telegram_id": self.telegram_id,
            "username": self.username or None,
            "full_name": self.full_name,
        }
