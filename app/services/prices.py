"""Price store: one observation per (helmet, source)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from sqlalchemy import func, inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import Helmet, HelmetPrice

logger = logging.getLogger(__name__)

VALID_SOURCES = (
    "ebay",
    "fanatics",
    "rsa",
    "radtke",
    "pristine",
    "signaturesports",
    "greatsports",
    "denverautographs",
)

MAX_PRICE = Decimal("50000")
_CENTS = Decimal("0.01")

REQUIRED_COLUMNS = {
    "helmets": {
        "id", "name", "player", "team", "helmet_type", "design_type",
        "auth_company", "ebay_search_query", "natural_key", "is_active",
    },
    "helmet_prices": {
        "id", "helmet_id", "source", "median_price", "min_price", "max_price",
        "total_results", "ebay_url", "scraped_at",
    },
}


@dataclass(frozen=True)
class PriceResult:
    success: bool
    action: Optional[str] = None  # "inserted" | "updated"
    error: Optional[str] = None


@dataclass(frozen=True)
class PriceSummary:
    median: Decimal
    min: Decimal
    max: Decimal
    count: int


def validate_price(value: Any) -> Optional[Decimal]:
    """Positive number up to MAX_PRICE, rounded to cents; anything else is None."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        return None
    if not price.is_finite() or price <= 0 or price > MAX_PRICE:
        return None
    return price.quantize(_CENTS, rounding=ROUND_HALF_UP)


def _median_dec(values: list[Decimal]) -> Decimal:
    vals = sorted(values)
    n = len(vals)
    mid = n // 2
    if n % 2 == 1:
        return vals[mid]
    return ((vals[mid - 1] + vals[mid]) / Decimal("2")).quantize(_CENTS, rounding=ROUND_HALF_UP)


def summarize_prices(values: Iterable[Any]) -> Optional[PriceSummary]:
    """Median/min/max/count over the valid prices in ``values``."""
    prices = [p for p in (validate_price(v) for v in values) if p is not None]
    if not prices:
        return None
    return PriceSummary(
        median=_median_dec(prices),
        min=min(prices),
        max=max(prices),
        count=len(prices),
    )


def _apply(row: HelmetPrice, values: dict) -> None:
    for key, value in values.items():
        setattr(row, key, value)


def _find_price(db: Session, helmet_id: int, source: str) -> Optional[HelmetPrice]:
    return (
        db.query(HelmetPrice)
        .filter(HelmetPrice.helmet_id == helmet_id)
        .filter(HelmetPrice.source == source)
        .first()
    )


def upsert_price(
    db: Session,
    helmet_id: Optional[int],
    source: str,
    price: Any,
    min_price: Any = None,
    max_price: Any = None,
    total_results: Optional[int] = None,
    ebay_url: Optional[str] = None,
) -> PriceResult:
    """Insert or overwrite the price row for (helmet_id, source).

    Commits on success. Failures are rolled back and reported through
    ``PriceResult.error``; this function does not raise.
    """
    if source not in VALID_SOURCES:
        return PriceResult(False, error=f"Invalid source: {source}. Must be one of: {', '.join(VALID_SOURCES)}")
    if not helmet_id:
        return PriceResult(False, error="helmet_id is required")

    median = validate_price(price)
    if median is None:
        return PriceResult(False, error=f"Invalid price: {price!r}")

    values = {
        "median_price": median,
        "min_price": validate_price(min_price) or median,
        "max_price": validate_price(max_price) or median,
        "total_results": total_results or 1,
        "ebay_url": ebay_url,
        "scraped_at": datetime.utcnow(),
    }

    try:
        existing = _find_price(db, helmet_id, source)
        if existing:
            _apply(existing, values)
            action = "updated"
        else:
            db.add(HelmetPrice(helmet_id=helmet_id, source=source, **values))
            action = "inserted"
        db.commit()
        return PriceResult(True, action=action)
    except IntegrityError as e:
        db.rollback()
        # Either another writer inserted the same (helmet, source) first, or
        # the helmet id does not exist. Retry once as an update.
        try:
            existing = _find_price(db, helmet_id, source)
            if not existing:
                return PriceResult(False, error=f"Could not write price for helmet {helmet_id}: {e.orig}")
            _apply(existing, values)
            db.commit()
            return PriceResult(True, action="updated")
        except SQLAlchemyError as retry_error:
            db.rollback()
            logger.error(f"Price upsert retry failed helmet={helmet_id} source={source}: {retry_error}")
            return PriceResult(False, error=str(retry_error))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Price upsert failed helmet={helmet_id} source={source}: {e}")
        return PriceResult(False, error=str(e))


def get_price_stats(db: Session) -> dict:
    """Record count and distinct helmets per source, plus catalog size."""
    rows = (
        db.query(
            HelmetPrice.source,
            func.count(HelmetPrice.id),
            func.count(func.distinct(HelmetPrice.helmet_id)),
        )
        .group_by(HelmetPrice.source)
        .all()
    )
    return {
        "total_helmets": db.query(func.count(Helmet.id)).scalar() or 0,
        "sources": {
            source: {"records": records, "unique_helmets": unique}
            for source, records, unique in sorted(rows)
        },
    }


def validate_schema(db: Session) -> tuple[bool, str]:
    """Check that both tables exist with the columns the importers write."""
    try:
        inspector = inspect(db.get_bind())
        tables = set(inspector.get_table_names())
        for table, required in REQUIRED_COLUMNS.items():
            if table not in tables:
                return False, f"Missing table: {table}. Run `alembic upgrade head`."
            columns = {c["name"] for c in inspector.get_columns(table)}
            missing = sorted(required - columns)
            if missing:
                return False, f"Table {table} is missing columns: {', '.join(missing)}"
    except SQLAlchemyError as e:
        return False, f"Schema check failed: {e}"
    return True, "Schema OK"
