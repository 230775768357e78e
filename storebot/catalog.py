"""
Catalog indexing and variant resolution.

Users pick products by the 1-based number shown in the list (and on the reply
keyboard), and package options by their position in the product's variant
list. Both are positions, not ids, so they are only meaningful against the
same ordered fetch:

* the product list, the reply keyboard grid and the number lookup all use
  ``Database.list_active_products`` (valid active products, ascending id,
  truncated to ``max_display``);
* checkout buttons carry the product id plus a fingerprint of its price and
  variants. Checkout re-fetches the product and refuses the purchase if the
  fingerprint no longer matches, so an operator edit between "show" and "buy"
  is reported as a stale selection instead of charging a different price.

List pager buttons carry ``catalog_fingerprint`` of the list they page
through; a page request for a catalog that changed since restarts at the first
page of the current list. ``resolve_selection`` accepts the same fingerprint
for callers that kept one from display time.

A plain number typed after the operator reordered the catalog still resolves
to whatever now sits at that position; the detail view names the product
before anything is bought, and the checkout fingerprint binds the purchase to
exactly what was shown.
"""
from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from storebot.errors import InvalidVariant, NotFound
from storebot.models import Product


@dataclass(frozen=True)
class CatalogEntry:
    number: int
    product: Product


@dataclass(frozen=True)
class PriceQuote:
    """Authoritative price and display label for one order line."""

    price: int
    label: str
    variant_name: Optional[str] = None


def _digest(parts: list[str]) -> str:
    return hashlib.sha1("|".join(parts).encode()).hexdigest()[:8]


def product_fingerprint(product: Product) -> str:
    """Digest of everything that decides what a checkout button charges."""
    parts = [str(product.id), str(product.price)]
    parts.extend(f"{v.name}={v.price}" for v in product.variants)
    return _digest(parts)


def parse_selector(selected: Any) -> Optional[int]:
    """Return the integer behind a selector number, or None if it is not one."""
    if isinstance(selected, bool):
        return None
    if isinstance(selected, int):
        return selected
    if isinstance(selected, str):
        text = selected.strip()
        if text.isascii() and text.isdecimal():
            return int(text)
    return None


class CatalogIndexer:
    """Maps an ordered product listing to selector numbers and back."""

    def __init__(self, max_display: int = 50, page_size: Optional[int] = None):
        self.max_display = max_display
        self.page_size = min(page_size or max_display, max_display)

    def displayed(self, products: Sequence[Product]) -> list[Product]:
        return list(products[: self.max_display])

    def page_count(self, total: int) -> int:
        shown = min(total, self.max_display)
        return max(1, math.ceil(shown / self.page_size))

    def clamp_page(self, total: int, page: Optional[int]) -> int:
        if not page or page < 0:
            return 0
        return min(page, self.page_count(total) - 1)

    def page_numbers(self, total: int, page: Optional[int] = None) -> range:
        """Selector numbers visible on ``page`` (all of them when page is None)."""
        shown = min(total, self.max_display)
        if page is None:
            return range(1, shown + 1)
        page = self.clamp_page(total, page)
        start = page * self.page_size
        return range(start + 1, min(start + self.page_size, shown) + 1)

    def render_list(self, products: Sequence[Product], page: Optional[int] = None) -> list[CatalogEntry]:
        shown = self.displayed(products)
        return [CatalogEntry(n, shown[n - 1]) for n in self.page_numbers(len(products), page)]

    def catalog_fingerprint(self, products: Sequence[Product]) -> str:
        return _digest([product_fingerprint(p) for p in self.displayed(products)])

    def resolve_selection(
        self,
        products: Sequence[Product],
        selected: Any,
        fingerprint: Optional[str] = None,
    ) -> Product:
        """Return the product shown under ``selected``.

        Raises NotFound for anything outside ``[1, min(N, max_display)]`` and
        when ``fingerprint`` (taken when the list was shown) no longer matches.
        """
        number = parse_selector(selected)
        shown = self.displayed(products)
        if number is None or number < 1 or number > len(shown):
            raise NotFound(f"No product with number {selected!r}")
        if fingerprint is not None and fingerprint != self.catalog_fingerprint(products):
            raise NotFound("Catalog changed since the list was shown")
        return shown[number - 1]


def resolve_variant(product: Product, variant_index: Optional[int] = None) -> PriceQuote:
    """Compute the price and label of an order line.

    ``None`` or ``-1`` means the product itself, priced per unit. Any other
    index must point into the variant list as it is now.
    """
    if variant_index is None or variant_index == -1:
        return PriceQuote(price=product.price, label=product.unit)

    if variant_index < -1 or variant_index >= len(product.variants):
        raise InvalidVariant(
            f"Variant {variant_index} out of range for product {product.id} "
            f"({len(product.variants)} variants)"
        )

    variant = product.variants[variant_index]
    return PriceQuote(price=variant.price, label=variant.name, variant_name=variant.name)
