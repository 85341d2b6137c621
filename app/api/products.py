"""Common shape for listings pulled from any marketplace, plus the scrape cache."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScrapedProduct:
    source: str
    title: str
    price: Optional[float]
    url: Optional[str] = None
    default_type: str = "fullsize-authentic"
    product_type: str = ""

    @property
    def tagged_as_helmet(self) -> bool:
        """Shopify tags some helmets only through product_type."""
        return "helmet" in self.product_type.lower()

    @property
    def is_helmet_listing(self) -> bool:
        return self.tagged_as_helmet or "helmet" in self.title.lower()


def cache_path(source: str, cache_dir: Optional[str] = None) -> Path:
    return Path(cache_dir or settings.cache_dir) / f"{source}-products.json"


def save_cache(source: str, products: list[ScrapedProduct], cache_dir: Optional[str] = None) -> Path:
    path = cache_path(source, cache_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump([asdict(p) for p in products], fh, indent=2)
    logger.info(f"Cached {len(products)} {source} products to {path}")
    return path


def load_cache(source: str, cache_dir: Optional[str] = None) -> Optional[list[ScrapedProduct]]:
    """Cached products for ``source``, or None when no cache file exists."""
    path = cache_path(source, cache_dir)
    if not path.exists():
        return None
    with path.open(encoding="utf-8") as fh:
        rows = json.load(fh)
    logger.info(f"Loaded {len(rows)} {source} products from cache {path}")
    return [ScrapedProduct(**row) for row in rows]
