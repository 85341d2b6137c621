"""Shop RSA (Shopify) product feed client.

RSA is a Shopify store and exposes public JSON endpoints such as:
- /products.json
- /collections/<collection-handle>/products.json
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import urljoin

import httpx

from app.api.products import ScrapedProduct
from app.config import settings

logger = logging.getLogger(__name__)

SOURCE = "rsa"

# (collection handle, helmet type for titles that do not say)
COLLECTIONS: list[tuple[str, str]] = [
    ("signed-nfl-mini-helmets", "mini"),
    ("signed-midi-speedflex-helmets", "midi"),
    ("signed-nfl-football-helmets", "fullsize-authentic"),
]


class RSAShopifyClient:
    """Fetches Shop RSA helmets via Shopify public JSON endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        client: Optional[httpx.AsyncClient] = None,
        max_pages: int | None = None,
        page_delay: float | None = None,
        collection_delay: float | None = None,
    ):
        self.base_url = (base_url or settings.rsa_base_url).rstrip("/") + "/"
        self._client = client
        self.max_pages = max_pages or settings.rsa_max_pages
        self.page_delay = settings.rsa_page_delay_seconds if page_delay is None else page_delay
        self.collection_delay = (
            settings.rsa_collection_delay_seconds if collection_delay is None else collection_delay
        )

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        headers = {"User-Agent": settings.user_agent, "Accept": "application/json"}
        if self._client is not None:
            resp = await self._client.get(url, params=params, headers=headers, timeout=settings.http_timeout_seconds)
            resp.raise_for_status()
            return resp.json()
        async with httpx.AsyncClient() as client:
            resp = await client.get(url, params=params, headers=headers, timeout=settings.http_timeout_seconds)
            resp.raise_for_status()
            return resp.json()

    async def fetch_products_page(
        self,
        collection_handle: str | None,
        page: int = 1,
        limit: int = 250,
        default_type: str = "fullsize-authentic",
    ) -> list[ScrapedProduct]:
        """Fetch one page from a collection, or from /products.json when handle is None."""
        path = f"collections/{collection_handle}/products.json" if collection_handle else "products.json"
        url = urljoin(self.base_url, path)
        params = {"limit": min(int(limit), 250), "page": int(page)}

        data = await self._get_json(url, params)
        out: list[ScrapedProduct] = []
        for p in data.get("products") or []:
            parsed = self._parse_product(p, default_type)
            if parsed:
                out.append(parsed)
        return out

    async def fetch_collection(self, collection_handle: str | None, default_type: str) -> list[ScrapedProduct]:
        """Walk a collection page by page until an empty page or the page cap."""
        out: list[ScrapedProduct] = []
        for page in range(1, self.max_pages + 1):
            try:
                batch = await self.fetch_products_page(collection_handle, page=page, default_type=default_type)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"RSA page fetch failed collection={collection_handle or 'all'} page={page}: {e}")
                break
            if not batch:
                break
            out.extend(batch)
            logger.info(f"RSA {collection_handle or 'products'} page {page}: {len(batch)} helmets")
            await asyncio.sleep(self.page_delay)
        return out

    async def collect_all(self) -> list[ScrapedProduct]:
        """All helmets across the signed-helmet collections plus the full catalog, deduped by title."""
        seen: set[str] = set()
        products: list[ScrapedProduct] = []

        targets: list[tuple[str | None, str]] = list(COLLECTIONS) + [(None, "fullsize-authentic")]
        for handle, default_type in targets:
            for product in await self.fetch_collection(handle, default_type):
                key = product.title.strip().lower()
                if key in seen:
                    continue
                seen.add(key)
                products.append(product)
            await asyncio.sleep(self.collection_delay)

        logger.info(f"RSA collection scan complete: {len(products)} unique helmets")
        return products

    def _parse_product(self, p: dict[str, Any], default_type: str) -> Optional[ScrapedProduct]:
        title = (p.get("title") or "").strip()
        handle = (p.get("handle") or "").strip()
        product_type = (p.get("product_type") or "").strip()
        if not title:
            return None

        variants = p.get("variants") or []
        if not isinstance(variants, list) or not variants:
            return None
        try:
            price = float(variants[0].get("price"))
        except (TypeError, ValueError):
            price = None

        product = ScrapedProduct(
            source=SOURCE,
            title=title,
            price=price,
            url=urljoin(self.base_url, f"products/{handle}") if handle else None,
            default_type=default_type,
            product_type=product_type,
        )
        return product if product.is_helmet_listing else None
