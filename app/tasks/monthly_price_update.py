"""Monthly re-price: refresh every active helmet's eBay row from sold listings."""

import asyncio
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.api.browser import BrowserFetcher
from app.api.ebay_sold import EbaySoldScraper
from app.config import settings
from app.database import SessionLocal
from app.services.catalog import iter_helmets
from app.services.prices import summarize_prices, upsert_price
from app.tasks.celery_app import celery_app
from app.tasks.import_sources import run_async

logger = logging.getLogger(__name__)

SOURCE = "ebay"


async def reprice_helmets(db: Session, scraper: EbaySoldScraper, delay: Optional[float] = None) -> dict:
    """Search sold listings for each active helmet and overwrite its eBay price."""
    delay = settings.ebay_helmet_delay_seconds if delay is None else delay
    counts = {"helmets": 0, "updated": 0, "no_sales": 0, "failed": 0}

    for helmet in iter_helmets(db, active_only=True):
        counts["helmets"] += 1
        helmet_id, query = helmet.id, helmet.ebay_search_query

        result = await scraper.search(query)
        if result is None:
            counts["failed"] += 1
        else:
            summary = summarize_prices(result.prices)
            if summary is None:
                counts["no_sales"] += 1
                logger.info(f"No sold listings for helmet {helmet_id} ({query})")
            else:
                written = upsert_price(
                    db,
                    helmet_id,
                    SOURCE,
                    summary.median,
                    min_price=summary.min,
                    max_price=summary.max,
                    total_results=summary.count,
                    ebay_url=result.url,
                )
                if written.success:
                    counts["updated"] += 1
                else:
                    counts["failed"] += 1
                    logger.error(f"eBay price write failed for helmet {helmet_id}: {written.error}")

        await asyncio.sleep(delay)

    logger.info(
        f"Monthly re-price: {counts['updated']} updated, {counts['no_sales']} without sales, "
        f"{counts['failed']} failed of {counts['helmets']}"
    )
    return counts


async def run_monthly_update(db: Session) -> dict:
    async with BrowserFetcher() as fetcher:
        return await reprice_helmets(db, EbaySoldScraper(fetcher))


@celery_app.task(bind=True, max_retries=3)
def monthly_price_update(self):
    logger.info("Starting monthly eBay price update")
    db = SessionLocal()
    try:
        counts = run_async(run_monthly_update(db))
        return {"status": "success", **counts}
    except Exception as e:
        logger.error(f"Error in monthly price update: {e}")
        self.retry(exc=e, countdown=60)
    finally:
        db.close()
