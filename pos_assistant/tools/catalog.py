"""
Mock product catalog with search by base product name.

In production, this would integrate with the POS kernel's product
catalog and localization store (SKU master data, per-store pricing,
availability flags, popularity ranking).
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional, Protocol

from pos_assistant.schemas.store_schema import ProductInfo

logger = logging.getLogger(__name__)


class ProductCatalog(Protocol):
    """Catalog collaborator: search, full listing, and popularity ranking."""

    def search(self, term: str, max_results: int) -> list[ProductInfo]:
        ...

    def list_products(self) -> list[ProductInfo]:
        ...

    def popular(self, count: int) -> list[ProductInfo]:
        ...


DEFAULT_PRODUCTS: list[ProductInfo] = [
    ProductInfo(sku="LATTE", display_name="Latte", base_price=Decimal("4.50"), category="coffee"),
    ProductInfo(sku="CAPP", display_name="Cappuccino", base_price=Decimal("4.25"), category="coffee"),
    ProductInfo(sku="AMER", display_name="Americano", base_price=Decimal("3.50"), category="coffee"),
    ProductInfo(sku="ESPR", display_name="Espresso", base_price=Decimal("2.75"), category="coffee"),
    ProductInfo(sku="FLATW", display_name="Flat White", base_price=Decimal("4.25"), category="coffee"),
    ProductInfo(sku="MOCHA", display_name="Mocha", base_price=Decimal("4.75"), category="coffee"),
    ProductInfo(
        sku="PSL", display_name="Pumpkin Spice Latte", base_price=Decimal("5.50"),
        category="coffee", active=False,
    ),
    ProductInfo(sku="CHAI", display_name="Chai Latte", base_price=Decimal("4.50"), category="tea"),
    ProductInfo(sku="TEA", display_name="Teh", base_price=Decimal("1.60"), category="tea"),
    ProductInfo(sku="ICEDTEA", display_name="Iced Tea", base_price=Decimal("3.00"), category="tea"),
    ProductInfo(sku="HOTCHOC", display_name="Hot Chocolate", base_price=Decimal("4.00"), category="other"),
    ProductInfo(sku="KOPI", display_name="Kopi", base_price=Decimal("1.40"), category="coffee"),
    ProductInfo(sku="KOPIC", display_name="Kopi C", base_price=Decimal("1.60"), category="coffee"),
    ProductInfo(sku="KAYA", display_name="Kaya Toast", base_price=Decimal("2.20"), category="food"),
    ProductInfo(sku="MUFFIN", display_name="Muffin", base_price=Decimal("3.25"), category="food"),
    ProductInfo(sku="CROIS", display_name="Croissant", base_price=Decimal("3.00"), category="food"),
    ProductInfo(
        sku="CHOCROIS", display_name="Chocolate Croissant", base_price=Decimal("3.50"), category="food",
    ),
    ProductInfo(sku="BAGUETTE", display_name="Baguette", base_price=Decimal("1.30"), category="food"),
    ProductInfo(sku="BAGEL", display_name="Bagel", base_price=Decimal("2.50"), category="food"),
]

# Best sellers first; everything else ranks after these, by name.
DEFAULT_POPULAR_SKUS: list[str] = ["LATTE", "CAPP", "CROIS", "KOPI", "MUFFIN"]


class InMemoryCatalog:
    """Case-insensitive substring search over display name, SKU, and category."""

    def __init__(
        self,
        products: Optional[Iterable[ProductInfo]] = None,
        popular_skus: Optional[Iterable[str]] = None,
    ) -> None:
        self._products = list(products if products is not None else DEFAULT_PRODUCTS)
        self._popular_skus = list(popular_skus if popular_skus is not None else DEFAULT_POPULAR_SKUS)

    def list_products(self) -> list[ProductInfo]:
        return list(self._products)

    def search(self, term: str, max_results: int = 5) -> list[ProductInfo]:
        key = term.strip().casefold()
        if not key:
            return []
        matches = [
            product for product in self._products
            if key in product.display_name.casefold()
            or key == product.sku.casefold()
            or key == (product.category or "").casefold()
        ]
        logger.debug("Catalog search %r -> %d match(es)", term, len(matches))
        return matches[:max_results]

    def popular(self, count: int = 5) -> list[ProductInfo]:
        """Active products by popularity rank, then by name."""
        rank = {sku: index for index, sku in enumerate(self._popular_skus)}
        active = [p for p in self._products if p.active]
        active.sort(key=lambda p: (rank.get(p.sku, len(rank)), p.display_name))
        return active[:count]
