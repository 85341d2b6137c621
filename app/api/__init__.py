"""Marketplace collectors."""

from app.api.products import ScrapedProduct
from app.api.rsa_shopify import RSAShopifyClient
from app.api.radtke import RadtkeScraper
from app.api.fanatics import FanaticsScraper
from app.api.firecrawl import FirecrawlClient
from app.api.ebay_sold import EbaySoldScraper

__all__ = [
    "ScrapedProduct",
    "RSAShopifyClient",
    "RadtkeScraper",
    "FanaticsScraper",
    "FirecrawlClient",
    "EbaySoldScraper",
]
