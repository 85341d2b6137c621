"""Scrape a marketplace and import its helmets and prices.

RSA is read from Shopify JSON, Radtke through the headless browser and
Fanatics through Firecrawl. Every run can be served from / written to the
JSON scrape cache.
"""

import asyncio
import logging
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from app.api.browser import BrowserFetcher
from app.api.fanatics import FanaticsScraper
from app.api.firecrawl import FirecrawlClient
from app.api.products import ScrapedProduct, load_cache, save_cache
from app.api.radtke import RadtkeScraper
from app.api.rsa_shopify import RSAShopifyClient
from app.config import settings
from app.database import SessionLocal
from app.services.importer import HelmetImporter
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def run_async(coro):
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def http_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout or settings.http_timeout_seconds,
        headers={"User-Agent": settings.user_agent, "Accept": "application/json"},
        follow_redirects=True,
    )


async def collect_rsa() -> list[ScrapedProduct]:
    async with http_client() as client:
        return await RSAShopifyClient(client=client).collect_all()


async def collect_radtke() -> list[ScrapedProduct]:
    async with BrowserFetcher() as fetcher:
        return await RadtkeScraper(fetcher).collect_all()


async def collect_fanatics() -> list[ScrapedProduct]:
    if not settings.firecrawl_api_key:
        raise ValueError("FIRECRAWL_API_KEY is not set")
    async with http_client(timeout=90) as client:
        crawler = FirecrawlClient(client=client)
        return await FanaticsScraper(crawler).collect_all()


COLLECTORS = {
    "rsa": collect_rsa,
    "radtke": collect_radtke,
    "fanatics": collect_fanatics,
}


def gather_products(source: str, use_cache: bool = False) -> list[ScrapedProduct]:
    """Products for ``source``, from the cache when asked and available."""
    if use_cache:
        cached = load_cache(source)
        if cached is not None:
            return cached
        logger.info(f"No {source} cache found; scraping")

    products = run_async(COLLECTORS[source]())
    save_cache(source, products)
    return products


def import_source(db: Session, source: str, use_cache: bool = False, dry_run: bool = False) -> dict:
    if source not in COLLECTORS:
        raise ValueError(f"Unknown source: {source}")
    products = gather_products(source, use_cache=use_cache)
    logger.info(f"{source}: {len(products)} products collected")
    summary = HelmetImporter(db, source, dry_run=dry_run).run(products)
    return summary.to_dict()


def _run_import_task(task, source: str, use_cache: bool = False) -> dict:
    logger.info(f"Starting {source} import")
    db = SessionLocal()
    try:
        return import_source(db, source, use_cache=use_cache)
    except Exception as e:
        logger.error(f"Error in {source} import: {e}")
        task.retry(exc=e, countdown=60)
    finally:
        db.close()


@celery_app.task(bind=True, max_retries=3)
def import_rsa_helmets(self, use_cache: bool = False):
    """Shop RSA collections and catalog scan."""
    return _run_import_task(self, "rsa", use_cache)


@celery_app.task(bind=True, max_retries=3)
def import_radtke_helmets(self, use_cache: bool = False):
    """Radtke Sports WooCommerce search, browser rendered."""
    return _run_import_task(self, "radtke", use_cache)


@celery_app.task(bind=True, max_retries=3)
def import_fanatics_helmets(self, use_cache: bool = False):
    """Fanatics search pages via Firecrawl."""
    if not settings.firecrawl_api_key:
        logger.warning("FIRECRAWL_API_KEY not set; skipping Fanatics import")
        return {"status": "not_configured", "source": "fanatics"}
    return _run_import_task(self, "fanatics", use_cache)
