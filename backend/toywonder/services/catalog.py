"""
Read-only product catalog snapshot.
Loaded from the bundled JSON file in mock mode, or from the catalog API in
networked mode.
"""
import json
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import httpx

from toywonder.core.config import Settings, get_settings
from toywonder.core.logging import get_logger
from toywonder.schema import Product

logger = get_logger("services.catalog")

BUNDLED_CATALOG_PATH = Path(__file__).parent.parent / "data" / "products.json"


class CatalogStore:
    """Immutable snapshot of the product catalog."""

    def __init__(self, products: Iterable[Product]):
        self._products: Tuple[Product, ...] = tuple(products)
        self._fingerprint = hash(self._products)

    @property
    def products(self) -> Tuple[Product, ...]:
        return self._products

    @property
    def fingerprint(self) -> int:
        """Changes whenever the snapshot contents change."""
        return self._fingerprint

    def __len__(self) -> int:
        return len(self._products)

    def get(self, product_id: str) -> Optional[Product]:
        for product in self._products:
            if product.id == product_id:
                return product
        return None

    def in_category(self, categories: Iterable[str]) -> List[Product]:
        wanted = set(categories)
        return [p for p in self._products if p.category in wanted]

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "CatalogStore":
        return cls(Product.model_validate(record) for record in records)

    @classmethod
    def from_json(cls, path: Optional[Path] = None) -> "CatalogStore":
        path = Path(path) if path else BUNDLED_CATALOG_PATH
        with open(path, 'r', encoding='utf-8') as f:
            return cls.from_records(json.load(f))


async def fetch_catalog(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CatalogStore:
    """Fetch the catalog from the networked products API."""
    url = f"{settings.catalog_api_url.rstrip('/')}/api/products"
    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        response = await client.get(url, params={"limit": 1000})
        response.raise_for_status()
        data = response.json()

    # The API returns either a bare list or { products, pagination }
    records = data if isinstance(data, list) else data.get("products", [])
    return CatalogStore.from_records(records)


async def load_catalog(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CatalogStore:
    """Load the catalog according to the configured backend mode."""
    settings = settings or get_settings()

    if settings.backend_mode == "networked":
        try:
            store = await fetch_catalog(settings, transport=transport)
            logger.info(f"Loaded {len(store)} products from {settings.catalog_api_url}")
            return store
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch catalog from {settings.catalog_api_url}: {e}")
            logger.warning("Falling back to bundled catalog snapshot")

    store = CatalogStore.from_json(settings.catalog_path)
    logger.info(f"Loaded {len(store)} products from bundled catalog")
    return store
