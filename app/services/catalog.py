"""Catalog writes and paginated scans."""

from __future__ import annotations

import logging
import re
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Helmet, HelmetPrice, make_natural_key

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000


def build_search_query(player, team, helmet_type, design_type) -> str:
    """eBay search phrase for a helmet variant; also the catalog lookup key."""
    parts = [player, team, helmet_type, design_type, "autographed helmet"]
    text = " ".join(p for p in parts if p)
    return re.sub(r"\s+", " ", text).strip().lower()


def build_helmet_name(player, team, helmet_type, design_type="regular") -> str:
    design = "" if not design_type or design_type == "regular" else f" {design_type}"
    return re.sub(r"\s+", " ", f"{player} {team or ''}{design} Autographed {helmet_type} Helmet").strip()


def get_or_create_helmet(
    db: Session,
    player: str,
    team: Optional[str],
    helmet_type: str,
    design_type: str = "regular",
    name: Optional[str] = None,
    auth_company: Optional[str] = None,
) -> tuple[Helmet, bool]:
    """Return (helmet, created) for the natural key, inserting at most once.

    The unique natural_key column makes the insert a compare-and-swap: if a
    concurrent writer got there first, or another row already owns the same
    search phrase, the integrity error is swallowed and that row is returned.
    Any pending work in ``db`` is committed.
    """
    design_type = design_type or "regular"
    key = make_natural_key(player, team, helmet_type, design_type)
    existing = db.query(Helmet).filter(Helmet.natural_key == key).first()
    if existing:
        return existing, False

    search_query = build_search_query(player, team, helmet_type, design_type)
    helmet = Helmet(
        name=(name or build_helmet_name(player, team, helmet_type, design_type))[:255],
        player=player,
        team=team or None,
        helmet_type=helmet_type,
        design_type=design_type,
        auth_company=auth_company,
        ebay_search_query=search_query,
        natural_key=key,
        is_active=True,
    )
    db.add(helmet)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = find_conflicting_helmet(db, key, search_query)
        if existing:
            logger.info(f"Helmet {key} conflicts with id={existing.id} ({existing.natural_key}); reusing it")
            return existing, False
        raise
    return helmet, True


def find_conflicting_helmet(
    db: Session, natural_key: str, search_query: str, exclude_id: Optional[int] = None
) -> Optional[Helmet]:
    """The row holding either unique catalog key, preferring a natural-key match."""
    for column, value in ((Helmet.natural_key, natural_key), (Helmet.ebay_search_query, search_query)):
        query = db.query(Helmet).filter(column == value)
        if exclude_id is not None:
            query = query.filter(Helmet.id != exclude_id)
        existing = query.first()
        if existing:
            return existing
    return None


def iter_helmets(db: Session, page_size: int = PAGE_SIZE, active_only: bool = False) -> Iterator[Helmet]:
    """Yield every helmet, fetching ``page_size`` rows at a time by id."""
    last_id = 0
    while True:
        query = db.query(Helmet).filter(Helmet.id > last_id)
        if active_only:
            query = query.filter(Helmet.is_active == True)
        page = query.order_by(Helmet.id).limit(page_size).all()
        if not page:
            return
        yield from page
        last_id = page[-1].id
        if len(page) < page_size:
            return


def iter_prices(db: Session, page_size: int = PAGE_SIZE) -> Iterator[HelmetPrice]:
    """Yield every price row, fetching ``page_size`` rows at a time by id."""
    last_id = 0
    while True:
        page = (
            db.query(HelmetPrice)
            .filter(HelmetPrice.id > last_id)
            .order_by(HelmetPrice.id)
            .limit(page_size)
            .all()
        )
        if not page:
            return
        yield from page
        last_id = page[-1].id
        if len(page) < page_size:
            return
