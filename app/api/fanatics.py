"""Fanatics autographed-helmet search, rendered through Firecrawl."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from app.api.firecrawl import FirecrawlClient, FirecrawlError
from app.api.products import ScrapedProduct
from app.api.radtke import parse_price_text
from app.config import settings

logger = logging.getLogger(__name__)

SOURCE = "fanatics"
BASE_URL = "https://www.fanatics.com"

CARD_SELECTOR = '[class*="product-card"]'
TITLE_SELECTORS = ('[class*="product-card-title"]', '[class*="title"] a', "a[title]")
PRICE_SELECTORS = ('[class*="price-sale"]', '[class*="money-value"]', '[class*="price"]')


def _first_text(node, selectors: tuple[str, ...]) -> str:
    for selector in selectors:
        el = node.select_one(selector)
        if el is None:
            continue
        text = el.get("title") if el.name == "a" and el.get("title") else el.get_text(" ", strip=True)
        if text:
            return text.strip()
    return ""


def parse_search_page(html: str) -> list[ScrapedProduct]:
    """Product cards from a rendered Fanatics search page."""
    soup = BeautifulSoup(html, "html.parser")
    products: list[ScrapedProduct] = []
    seen: set[str] = set()

    for card in soup.select(CARD_SELECTOR):
        # nested elements also carry "product-card-*" classes
        if card.find_parent(class_=lambda c: c and "product-card" in c):
            continue
        title = _first_text(card, TITLE_SELECTORS)
        if not title or title in seen:
            continue
        seen.add(title)

        price = parse_price_text(_first_text(card, PRICE_SELECTORS))
        link = card.select_one("a[href]")
        url = urljoin(BASE_URL, link["href"]) if link else None
        products.append(ScrapedProduct(source=SOURCE, title=title, price=price, url=url))

    return products


class FanaticsScraper:
    def __init__(
        self,
        crawler: FirecrawlClient,
        search_url: str | None = None,
        max_pages: int | None = None,
        page_delay: float | None = None,
    ):
        self.crawler = crawler
        self.search_url = search_url or settings.fanatics_search_url
        self.max_pages = max_pages or settings.fanatics_max_pages
        self.page_delay = settings.fanatics_page_delay_seconds if page_delay is None else page_delay

    def page_url(self, page: int) -> str:
        joiner = "&" if "?" in self.search_url else "?"
        return f"{self.search_url}{joiner}pageSize=72&pageNumber={page}"

    async def fetch_page(self, page: int) -> Optional[list[ScrapedProduct]]:
        try:
            html = await self.crawler.scrape_html(self.page_url(page))
        except (FirecrawlError, httpx.HTTPError) as e:
            logger.warning(f"Fanatics page {page} failed: {e}")
            return None
        return parse_search_page(html)

    async def collect_all(self) -> list[ScrapedProduct]:
        products: list[ScrapedProduct] = []
        seen: set[str] = set()
        for page in range(1, self.max_pages + 1):
            batch = await self.fetch_page(page)
            if not batch:
                break
            new = [p for p in batch if p.title not in seen]
            if not new:
                break
            seen.update(p.title for p in new)
            products.extend(new)
            logger.info(f"Fanatics page {page}: {len(new)} products")
            await asyncio.sleep(self.page_delay)
        return products
