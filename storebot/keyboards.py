"""
Reply and inline keyboard builders.

The numbered grid comes from ``CatalogIndexer.page_numbers``, the same source
``render_list`` numbers the product list with, so button "7" always means the
seventh product of the list the user is looking at.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from storebot.catalog import CatalogIndexer, product_fingerprint
from storebot.messages import format_rupiah
from storebot.models import Product

# ============================================================
# MENU BUTTONS
# ============================================================
BTN_PRODUCT_LIST = "🏷 Product List"
BTN_VOUCHER = "🛍 Voucher"
BTN_STOCK = "📦 Stock Report"
BTN_DEPOSIT = "💰 Deposit"
BTN_HOW_TO = "❓ How to Buy"
BTN_INFO = "⚠️ Information"

# Callback data prefixes
CB_CHECKOUT = "co"
CB_VARIANT_CHECKOUT = "vco"
CB_PAGE = "page"
CB_CANCEL = "cancel"


def build_main_keyboard(
    indexer: CatalogIndexer,
    total_active: int,
    per_row: int = 6,
    page: Optional[int] = None,
) -> dict:
    """Persistent reply keyboard: menu rows around a grid of product numbers."""
    top_menu = [{"text": BTN_PRODUCT_LIST}, {"text": BTN_VOUCHER}, {"text": BTN_STOCK}]
    bottom_menu = [{"text": BTN_DEPOSIT}, {"text": BTN_HOW_TO}, {"text": BTN_INFO}]

    number_grid = []
    row = []
    for number in indexer.page_numbers(total_active, page):
        row.append({"text": str(number)})
        if len(row) == per_row:
            number_grid.append(row)
            row = []
    if row:
        number_grid.append(row)

    return {
        "keyboard": [top_menu, *number_grid, bottom_menu],
        "resize_keyboard": True,
        "is_persistent": True,
        "input_field_placeholder": "Choose a menu or product number...",
    }


def build_list_pager(
    indexer: CatalogIndexer,
    total_active: int,
    page: int,
    fingerprint: Optional[str] = None,
) -> Optional[dict]:
    """Inline prev/next buttons under the product list, None for a single page."""
    pages = indexer.page_count(total_active)
    if pages <= 1:
        return None

    def data(target: int) -> str:
        return f"{CB_PAGE}:{target}:{fingerprint}" if fingerprint else f"{CB_PAGE}:{target}"

    page = indexer.clamp_page(total_active, page)
    nav = []
    if page > 0:
        nav.append({"text": "« Prev", "callback_data": data(page - 1)})
    nav.append({"text": f"{page + 1}/{pages}", "callback_data": data(page)})
    if page < pages - 1:
        nav.append({"text": "Next »", "callback_data": data(page + 1)})
    return {"inline_keyboard": [nav]}


def build_product_keyboard(product: Product) -> dict:
    """Inline buttons under a product detail message."""
    fp = product_fingerprint(product)
    inline_keyboard = []

    if product.has_variants:
        for idx, variant in enumerate(product.variants):
            inline_keyboard.append([{
                "text": f"🔹 {variant.name} - Rp {format_rupiah(variant.price)}",
                "callback_data": f"{CB_VARIANT_CHECKOUT}:{product.id}:{idx}:{fp}",
            }])
    else:
        inline_keyboard.append([{
            "text": "✅ Buy Now",
            "callback_data": f"{CB_CHECKOUT}:{product.id}:{fp}",
        }])

    inline_keyboard.append([{"text": "✖️ Cancel", "callback_data": CB_CANCEL}])
    return {"inline_keyboard": inline_keyboard}


# ============================================================
# CALLBACK DATA
# ============================================================
@dataclass(frozen=True)
class CheckoutRequest:
    product_id: str
    variant_index: Optional[int]
    fingerprint: str


def parse_checkout_data(data: str) -> Optional[CheckoutRequest]:
    """Decode checkout callback data; None for anything else."""
    parts = (data or "").split(":")
    try:
        if parts[0] == CB_CHECKOUT and len(parts) == 3:
            return CheckoutRequest(parts[1], None, parts[2])
        if parts[0] == CB_VARIANT_CHECKOUT and len(parts) == 4:
            return CheckoutRequest(parts[1], int(parts[2]), parts[3])
    except ValueError:
        return None
    return None


@dataclass(frozen=True)
class PageRequest:
    page: int
    fingerprint: Optional[str] = None


def parse_page_data(data: str) -> Optional[PageRequest]:
    parts = (data or "").split(":")
    if len(parts) not in (2, 3) or parts[0] != CB_PAGE:
        return None
    if not (parts[1].isascii() and parts[1].isdecimal()):
        return None
    return PageRequest(int(parts[1]), parts[2] if len(parts) == 3 else None)
