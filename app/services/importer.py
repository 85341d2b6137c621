"""Turn collected listings and vendor rows into catalog helmets plus prices."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.products import ScrapedProduct
from app.parsing import parse_helmet_title
from app.services.catalog import get_or_create_helmet
from app.services.prices import VALID_SOURCES, upsert_price, validate_price
from app.services.reconciler import HelmetReconciler

logger = logging.getLogger(__name__)


@dataclass
class ImportSummary:
    source: str
    dry_run: bool = False
    scraped: int = 0
    valid: int = 0
    invalid: int = 0
    duplicates: int = 0
    no_price: int = 0
    new_helmets: int = 0
    matched_helmets: int = 0
    prices_inserted: int = 0
    prices_updated: int = 0
    errors: int = 0
    helmet_types: Counter = field(default_factory=Counter)
    design_types: Counter = field(default_factory=Counter)
    teams: Counter = field(default_factory=Counter)
    issues: Counter = field(default_factory=Counter)

    def to_dict(self) -> dict:
        return {
            "status": "success",
            "source": self.source,
            "dry_run": self.dry_run,
            "scraped": self.scraped,
            "valid": self.valid,
            "invalid": self.invalid,
            "duplicates": self.duplicates,
            "no_price": self.no_price,
            "new_helmets": self.new_helmets,
            "matched_helmets": self.matched_helmets,
            "prices_inserted": self.prices_inserted,
            "prices_updated": self.prices_updated,
            "errors": self.errors,
            "helmet_types": dict(self.helmet_types),
            "design_types": dict(self.design_types),
            "top_teams": dict(self.teams.most_common(10)),
            "issues": dict(self.issues),
        }


def record_vendor_price(
    db: Session,
    reconciler: HelmetReconciler,
    source: str,
    player: str,
    team: Optional[str],
    helmet_type: str,
    design_type: str,
    price,
    name: Optional[str] = None,
    auth_company: Optional[str] = None,
    url: Optional[str] = None,
) -> tuple[str, bool]:
    """Attach ``price`` to the matching helmet, creating the helmet if needed.

    Returns ``(outcome, created)`` where outcome is "inserted", "updated" or
    "error". An unknown source is rejected before any helmet is created.
    """
    if source not in VALID_SOURCES:
        logger.error(f"Invalid source: {source}; not recording {player} / {team} / {helmet_type}")
        return "error", False

    try:
        helmet = reconciler.find(player, team, helmet_type, design_type)
        created = False
        if helmet is None:
            helmet, created = get_or_create_helmet(
                db,
                player=player,
                team=team,
                helmet_type=helmet_type,
                design_type=design_type,
                name=name,
                auth_company=auth_company,
            )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not create helmet {player} / {team} / {helmet_type}: {e}")
        return "error", False

    result = upsert_price(db, helmet.id, source, price, ebay_url=url)
    if not result.success:
        logger.error(f"Price write failed for helmet {helmet.id} ({source}): {result.error}")
        return "error", created
    return result.action, created


class HelmetImporter:
    """Parse, validate, dedupe and write one source's scraped products."""

    def __init__(
        self,
        db: Session,
        source: str,
        reconciler: Optional[HelmetReconciler] = None,
        dry_run: bool = False,
    ):
        self.db = db
        self.source = source
        self.reconciler = reconciler or HelmetReconciler(db)
        self.dry_run = dry_run

    def run(self, products: Iterable[ScrapedProduct]) -> ImportSummary:
        summary = ImportSummary(source=self.source, dry_run=self.dry_run)
        seen: set[str] = set()

        for product in products:
            summary.scraped += 1
            parsed = parse_helmet_title(
                product.title,
                default_type=product.default_type,
                require_helmet_keyword=not product.tagged_as_helmet,
            )
            if not parsed.is_valid:
                summary.invalid += 1
                summary.issues.update(parsed.issues)
                continue

            price = validate_price(product.price)
            if price is None:
                summary.no_price += 1
                continue

            if parsed.dedupe_key in seen:
                summary.duplicates += 1
                continue
            seen.add(parsed.dedupe_key)

            summary.valid += 1
            summary.helmet_types[parsed.helmet_type] += 1
            summary.design_types[parsed.design_type] += 1
            summary.teams[parsed.team or "Unknown"] += 1

            if self.dry_run:
                continue

            outcome, created = record_vendor_price(
                self.db,
                self.reconciler,
                self.source,
                player=parsed.player,
                team=parsed.team,
                helmet_type=parsed.helmet_type,
                design_type=parsed.design_type,
                price=price,
                name=product.title,
                auth_company=parsed.auth_company,
                url=product.url,
            )
            if created:
                summary.new_helmets += 1
            elif outcome != "error":
                summary.matched_helmets += 1

            if outcome == "inserted":
                summary.prices_inserted += 1
            elif outcome == "updated":
                summary.prices_updated += 1
            else:
                summary.errors += 1

        logger.info(
            "%s import complete: %s scraped, %s valid, %s new helmets, %s prices inserted, %s updated, %s errors",
            self.source,
            summary.scraped,
            summary.valid,
            summary.new_helmets,
            summary.prices_inserted,
            summary.prices_updated,
            summary.errors,
        )
        return summary
