"""
Catalog context builder.
Serializes the product snapshot into the text block that grounds every remote
prompt in real inventory.
"""
from typing import Iterable, Optional

from toywonder.core.logging import get_logger
from toywonder.schema import Product
from toywonder.services.catalog import CatalogStore
from toywonder.utils.prompt_loader import PromptLoader, get_prompt_loader

logger = get_logger("services.catalog_context")


def format_price(amount: float) -> str:
    """Render a rupee amount, e.g. 3499 -> ₹3,499 and 99.5 -> ₹99.50."""
    if float(amount).is_integer():
        return f"₹{int(amount):,}"
    return f"₹{amount:,.2f}"


def format_product_line(product: Product) -> str:
    """One context line per product."""
    price = format_price(product.price)
    if product.original_price:
        price = f"{price}, was {format_price(product.original_price)}"

    stock = f"{product.stock} available" if product.in_stock else "Out of stock"
    fields = [
        f"{product.name} ({price})",
        f"Category: {product.category}",
        f"Rating: {product.rating:g}★ ({product.reviews} reviews)",
        f"Stock: {stock}",
    ]
    if product.badge:
        fields.append(f"Badge: {product.badge}")
    if product.description:
        fields.append(f"Description: {product.description}")
    return " | ".join(fields)


def build_catalog_context(products: Iterable[Product]) -> str:
    """Join product lines in catalog order."""
    return "\n".join(format_product_line(p) for p in products)


class CatalogContextBuilder:
    """
    Lazily builds and caches the system preamble plus catalog context.

    The cache is keyed on the catalog fingerprint, so a new snapshot is
    picked up on the next call and an unchanged one is never re-serialized.
    """

    def __init__(self, catalog: CatalogStore, prompt_loader: Optional[PromptLoader] = None):
        self.catalog = catalog
        self.prompt_loader = prompt_loader or get_prompt_loader()
        self._cached_fingerprint: Optional[int] = None
        self._cached_context: Optional[str] = None

    def set_catalog(self, catalog: CatalogStore):
        self.catalog = catalog

    @property
    def context(self) -> str:
        """The serialized catalog block."""
        if self._cached_fingerprint != self.catalog.fingerprint or self._cached_context is None:
            self._cached_context = build_catalog_context(self.catalog.products)
            self._cached_fingerprint = self.catalog.fingerprint
            logger.debug(f"Rebuilt catalog context for {len(self.catalog)} products")
        return self._cached_context

    @property
    def preamble(self) -> str:
        config = self.prompt_loader.get_llm_prompt("system_preamble")
        return self.prompt_loader.get_text(config, "system")

    def system_prompt(self, instructions: str = "") -> str:
        """Preamble, catalog context and per-kind instructions, in that order."""
        parts = [self.preamble, self.context]
        if instructions:
            parts.append(instructions)
        return "\n\n".join(parts)
