"""eBay sold/completed listing search scraped through the browser."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlencode

from bs4 import BeautifulSoup

from app.api.radtke import PageFetcher, parse_price_text
from app.config import settings

logger = logging.getLogger(__name__)

CARD_SELECTORS = (".s-card", ".s-item", ".srp-results li")
TITLE_SELECTOR = ".s-card__title, .s-item__title"
PRICE_SELECTOR = ".s-card__price, .s-item__price"
PLACEHOLDER_TITLE = "Shop on eBay"


@dataclass
class SoldSearchResult:
    query: str
    url: str
    prices: list[float] = field(default_factory=list)


def build_sold_url(query: str, base_url: str | None = None) -> str:
    """Sold + completed listings, newest first."""
    params = {"_nkw": query, "LH_Sold": "1", "LH_Complete": "1", "_sop": "13"}
    return f"{base_url or settings.ebay_search_url}?{urlencode(params)}"


def parse_sold_prices(
    html: str,
    min_price: float | None = None,
    max_price: float | None = None,
) -> list[float]:
    """Sale prices from a results page, dropping placeholders and outliers."""
    low = settings.ebay_min_price if min_price is None else min_price
    high = settings.ebay_max_price if max_price is None else max_price
    soup = BeautifulSoup(html, "html.parser")

    cards = []
    for selector in CARD_SELECTORS:
        cards = soup.select(selector)
        if cards:
            break

    prices: list[float] = []
    for card in cards:
        title_el = card.select_one(TITLE_SELECTOR)
        if title_el and PLACEHOLDER_TITLE in title_el.get_text(" ", strip=True):
            continue
        price_el = card.select_one(PRICE_SELECTOR)
        price = parse_price_text(price_el.get_text(" ", strip=True)) if price_el else None
        if price is not None and low < price < high:
            prices.append(price)
    return prices


class EbaySoldScraper:
    def __init__(self, fetcher: PageFetcher, settle: float = 1.5):
        self.fetcher = fetcher
        self.settle = settle

    async def search(self, query: str) -> Optional[SoldSearchResult]:
        """Sold prices for ``query``; None when the page could not be loaded."""
        url = build_sold_url(query)
        html = await self.fetcher.fetch(url, settle=self.settle)
        if html is None:
            return None
        prices = parse_sold_prices(html)
        logger.info(f"eBay sold '{query}': {len(prices)} prices")
        return SoldSearchResult(query=query, url=url, prices=prices)
