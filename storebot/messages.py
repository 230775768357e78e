"""
Chat message texts (Telegram HTML parse mode).
"""
from __future__ import annotations

from html import escape
from typing import Optional, Sequence

from storebot.catalog import CatalogEntry, PriceQuote
from storebot.models import Order, Product

DIVIDER = "────────────────────"


def format_rupiah(amount: int) -> str:
    """Format an integer amount with dot thousands separators (id-ID style)."""
    return f"{int(amount):,}".replace(",", ".")


def unit_suffix(unit: str) -> str:
    return f" / {escape(unit)}" if unit else ""


def welcome_text(first_name: str) -> str:
    return (
        f"👋 <b>Hello, {escape(first_name or 'there')}!</b>\n"
        "Welcome to the Store Bot.\n\n"
        "Tap <b>Product List</b> below to get started."
    )


HOW_TO_BUY_TEXT = (
    "📚 <b>HOW TO BUY:</b>\n"
    "1. Tap <b>Product List</b>.\n"
    "2. Remember the number of the product you want (e.g. 1).\n"
    "3. Tap the number <b>1</b> on the keyboard.\n"
    "4. Choose a package and transfer the payment.\n"
    "5. Send the <b>transfer receipt photo</b> here."
)


def product_list_text(entries: Sequence[CatalogEntry], page: int = 0, pages: int = 1) -> str:
    lines = ["🛒 <b>PRICE LIST</b>"]
    if pages > 1:
        lines[0] += f" <i>(page {page + 1}/{pages})</i>"
    lines.append("")

    for entry in entries:
        product = entry.product
        if product.has_variants:
            price_str = f"From Rp {format_rupiah(product.min_price)}"
        else:
            price_str = f"Rp {format_rupiah(product.price)}{unit_suffix(product.unit)}"
        lines.append(f"<b>{entry.number}. {escape(product.name.upper())}</b>")
        lines.append(f"   └ {price_str}")
        lines.append("")

    lines.append("<i>Type or tap a product number to order a package or a single unit.</i>")
    return "\n".join(lines)


def product_detail_text(product: Product) -> str:
    lines = [
        "🛍 <b>PRODUCT DETAIL</b>",
        DIVIDER,
        f"📦 <b>{escape(product.name.upper())}</b>",
    ]
    if product.category:
        lines.append(f"🏷 {escape(product.category)}")
    lines.append(f"📄 {escape(product.description or '-')}")
    lines.append(DIVIDER)

    if product.has_variants:
        lines.append("")
        lines.append("👇 <b>Choose a package:</b>")
    else:
        lines.append("")
        lines.append(f"💰 <b>PRICE:</b> Rp {format_rupiah(product.price)}{unit_suffix(product.unit)}")
        lines.append("")
        lines.append("👇 <i>Tap the button below to buy:</i>")
    return "\n".join(lines)


def invoice_text(order: Order, product: Product, quote: PriceQuote, bank: dict) -> str:
    # Unit is only shown for single-unit purchases; variant names carry their own meaning
    unit = "" if quote.variant_name else unit_suffix(quote.label)
    return (
        f"⚡️ <b>PAYMENT INVOICE (#{order.id})</b>\n"
        f"{DIVIDER}\n"
        f"📦 <b>Item:</b> {escape(product.name.upper())}\n"
        f"🔖 <b>Package:</b> {escape(quote.variant_name or '-')}\n"
        f"💰 <b>Total:</b> Rp {format_rupiah(order.total_price)}{unit}\n"
        f"{DIVIDER}\n\n"
        "🏦 <b>TRANSFER TO:</b>\n"
        f"<b>{escape(bank['name'])}</b>\n"
        f"<code>{escape(bank['number'])}</code>\n"
        f"A.N {escape(bank['holder'])}\n\n"
        "📸 <b>NEXT STEP:</b>\n"
        "Order status: <b>🟡 PENDING</b>.\n"
        "Please <b>send a PHOTO of the transfer receipt</b> in this chat."
    )


def proof_received_text(order: Order) -> str:
    variant = f" ({escape(order.variant_name)})" if order.variant_name else ""
    return (
        "✅ <b>RECEIPT RECEIVED!</b>\n"
        f"{DIVIDER}\n"
        f"<b>Order ID:</b> #{order.id}\n"
        f"<b>Product:</b> {escape(order.product_name or '-')}{variant}\n"
        "<b>Status:</b> 🔵 VERIFICATION\n\n"
        "Please wait while the admin verifies your payment.\n"
        "Your product will be delivered here once the order is completed."
    )


def operator_proof_text(order: Order, username: Optional[str] = None) -> str:
    who = f"@{escape(username)}" if username else f"<code>{order.user_id}</code>"
    variant = f" ({escape(order.variant_name)})" if order.variant_name else ""
    return (
        "🔔 <b>NEW PAYMENT PROOF</b>\n"
        f"<b>Order:</b> #{order.id}\n"
        f"<b>User:</b> {who}\n"
        f"<b>Item:</b> {escape(order.product_name or str(order.product_id))}{variant}\n"
        f"<b>Total:</b> Rp {format_rupiah(order.total_price)}\n"
        f"<b>Proof:</b> {escape(order.payment_proof_url or '-')}"
    )


def order_completed_text(credentials: str) -> str:
    return (
        "✅ <b>ORDER COMPLETED!</b>\n\n"
        "Thanks for waiting. Here are your order details:\n\n"
        "📦 <b>Account Info / Voucher Code:</b>\n"
        f"<code>{escape(credentials)}</code>\n\n"
        "<i>(Tap the text above to copy it)</i>\n\n"
        "Come back and order again! ⭐"
    )


def stock_text(total_active: int) -> str:
    return f"📊 <b>Stock Info</b>\n\nActive products: <b>{total_active} items</b>"
