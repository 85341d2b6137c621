"""Radtke Sports (WooCommerce) helmet search scraper.

The store renders its catalog client-side, so pages are loaded through the
headless browser and the resulting HTML is parsed with BeautifulSoup.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Protocol
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from app.api.products import ScrapedProduct
from app.config import settings

logger = logging.getLogger(__name__)

SOURCE = "radtke"

PRODUCT_SELECTOR = "li.product, .product-item, .products .product"
TITLE_SELECTOR = ".woocommerce-loop-product__title, .product-title, h2, .item-title, h3"
PRICE_SELECTOR = ".price, .woocommerce-Price-amount"
LINK_SELECTOR = 'a[href*="/product/"]'
NEXT_SELECTOR = ".next.page-numbers, a.next"
END_MARKERS = ("No products were found", "Page not found")

_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d{1,2})?")


class PageFetcher(Protocol):
    async def fetch(self, url: str, settle: float = 0.0) -> Optional[str]: ...


@dataclass
class ListingPage:
    products: list[ScrapedProduct] = field(default_factory=list)
    has_next: bool = False
    end_reached: bool = False


def parse_price_text(text: str | None) -> Optional[float]:
    """First money amount in a string like "$1,299.99 – $1,499.99"."""
    if not text:
        return None
    match = _PRICE_RE.search(text)
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def parse_listing_page(html: str, base_url: str | None = None) -> ListingPage:
    """Extract helmet products from one rendered search results page."""
    base_url = base_url or settings.radtke_base_url
    soup = BeautifulSoup(html, "html.parser")
    page_text = soup.get_text(" ", strip=True)

    if any(marker in page_text for marker in END_MARKERS):
        return ListingPage(end_reached=True)

    seen_titles: set[str] = set()
    products: list[ScrapedProduct] = []
    for node in soup.select(PRODUCT_SELECTOR):
        title_el = node.select_one(TITLE_SELECTOR)
        title = title_el.get_text(" ", strip=True) if title_el else ""
        if not title or title in seen_titles:
            continue
        seen_titles.add(title)

        # Sale prices render as <del>old</del><ins>new</ins>
        price_el = node.select_one(".price ins") or node.select_one(PRICE_SELECTOR)
        price = parse_price_text(price_el.get_text(" ", strip=True)) if price_el else None

        link_el = node.select_one(LINK_SELECTOR) or node.find("a", href=True)
        url = urljoin(base_url, link_el["href"]) if link_el and link_el.get("href") else None

        products.append(ScrapedProduct(source=SOURCE, title=title, price=price, url=url))

    return ListingPage(products=products, has_next=soup.select_one(NEXT_SELECTOR) is not None)


class RadtkeScraper:
    """Pages through the helmet search until the store runs out of results."""

    def __init__(
        self,
        fetcher: PageFetcher,
        base_url: str | None = None,
        max_pages: int | None = None,
        settle: float | None = None,
        page_delay: float | None = None,
    ):
        self.fetcher = fetcher
        self.base_url = (base_url or settings.radtke_base_url).rstrip("/")
        self.max_pages = max_pages or settings.radtke_max_pages
        self.settle = settings.radtke_settle_seconds if settle is None else settle
        self.page_delay = settings.radtke_page_delay_seconds if page_delay is None else page_delay

    def page_url(self, page: int) -> str:
        query = "?s=helmet&product_cat=0&post_type=product"
        if page <= 1:
            return f"{self.base_url}/{query}"
        return f"{self.base_url}/page/{page}/{query}"

    async def collect_all(self) -> list[ScrapedProduct]:
        products: list[ScrapedProduct] = []
        seen: set[str] = set()

        for page in range(1, self.max_pages + 1):
            url = self.page_url(page)
            html = await self.fetcher.fetch(url, settle=self.settle)
            if html is None:
                logger.warning(f"Radtke page {page} could not be loaded; stopping")
                break

            listing = parse_listing_page(html, self.base_url)
            if listing.end_reached or not listing.products:
                logger.info(f"Radtke search exhausted at page {page}")
                break

            new = [p for p in listing.products if p.title not in seen]
            seen.update(p.title for p in new)
            products.extend(new)
            logger.info(f"Radtke page {page}: {len(listing.products)} products ({len(products)} total)")

            if not listing.has_next:
                break
            await asyncio.sleep(self.page_delay)

        return products
