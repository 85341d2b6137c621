"""Batch repairs for known catalog data-quality problems.

Each job scans the tables with ``iter_helmets``/``iter_prices`` (id-keyed
pages) and returns a dict of counters so it can be run from the CLI or as a
Celery task.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import Optional

from sqlalchemy.orm import Session

from app.models import Helmet, HelmetPrice, make_natural_key
from app.parsing import extract_team, extract_team_from_name, get_tables
from app.parsing.title_parser import extract_player
from app.services.catalog import build_search_query, find_conflicting_helmet, iter_helmets, iter_prices

logger = logging.getLogger(__name__)

DELETE_BATCH_SIZE = 100

_LISTING_NOISE_RE = re.compile(
    r"^(NEW LISTING|Fanatics Authentic|NFL|Signed|Autographed)\s*|Opens in a new window or tab$|-\s*with COA$",
    re.IGNORECASE,
)
_PRODUCT_WORDS_RE = re.compile(
    r"\b(SIGNED|AUTOGRAPHED|AUTOGRAPH|SPEED|MINI|HELMET|FULL|SIZE|AUTHENTIC|REPLICA|THROWBACK|"
    r"ECLIPSE|FLASH|RAVE|ALTERNATE|BLAZE)\b",
    re.IGNORECASE,
)
_SKIP_FIRST_WORDS = {"official", "new", "the", "a", "an", "with"}


def _delete_prices(db: Session, ids: list[int]) -> int:
    deleted = 0
    for start in range(0, len(ids), DELETE_BATCH_SIZE):
        batch = ids[start:start + DELETE_BATCH_SIZE]
        deleted += (
            db.query(HelmetPrice)
            .filter(HelmetPrice.id.in_(batch))
            .delete(synchronize_session=False)
        )
        db.commit()
    return deleted


def merge_into(db: Session, keep: Helmet, duplicate: Helmet) -> tuple[int, int]:
    """Move ``duplicate``'s prices onto ``keep`` and delete ``duplicate``.

    A price whose source ``keep`` already has is dropped. Returns
    ``(moved, dropped)``. Does not commit.
    """
    keep_sources = {p.source for p in keep.prices}
    moved = dropped = 0
    for price in list(duplicate.prices):
        if price.source in keep_sources:
            duplicate.prices.remove(price)
            dropped += 1
        else:
            price.helmet = keep
            keep_sources.add(price.source)
            moved += 1
    db.delete(duplicate)
    db.flush()
    return moved, dropped


def rekey(db: Session, helmet: Helmet) -> str:
    """Recompute both catalog keys after an edit, merging on collision.

    Returns "unchanged", "rekeyed" or "merged". Does not commit.
    """
    key = make_natural_key(helmet.player, helmet.team, helmet.helmet_type, helmet.design_type)
    search_query = build_search_query(helmet.player, helmet.team, helmet.helmet_type, helmet.design_type)
    if key == helmet.natural_key and search_query == helmet.ebay_search_query:
        return "unchanged"
    other = find_conflicting_helmet(db, key, search_query, exclude_id=helmet.id)
    if other:
        logger.info(f"Helmet {helmet.id} now duplicates {other.id} ({key}); merging")
        merge_into(db, other, helmet)
        return "merged"
    helmet.natural_key = key
    helmet.ebay_search_query = search_query
    db.flush()
    return "rekeyed"


def remove_orphaned_prices(db: Session) -> dict:
    """Delete price rows that reference a helmet id that no longer exists."""
    helmet_ids = {h.id for h in iter_helmets(db)}
    orphaned = [p.id for p in iter_prices(db) if p.helmet_id not in helmet_ids]
    if not orphaned:
        logger.info("No orphaned prices to remove")
        return {"orphaned_removed": 0}
    removed = _delete_prices(db, orphaned)
    logger.info(f"Removed {removed} orphaned price records")
    return {"orphaned_removed": removed}


def remove_duplicate_prices(db: Session) -> dict:
    """Keep only the most recent price per (helmet_id, source)."""
    groups: dict[tuple[int, str], list[HelmetPrice]] = defaultdict(list)
    for price in iter_prices(db):
        groups[(price.helmet_id, price.source)].append(price)

    to_delete: list[int] = []
    duplicate_groups = 0
    for records in groups.values():
        if len(records) < 2:
            continue
        duplicate_groups += 1
        records.sort(key=lambda p: (p.scraped_at, p.id), reverse=True)
        to_delete.extend(p.id for p in records[1:])

    deleted = _delete_prices(db, to_delete) if to_delete else 0
    logger.info(f"Duplicate price cleanup: {duplicate_groups} groups, {deleted} rows deleted")
    return {"duplicate_groups": duplicate_groups, "deleted": deleted}


def apply_name_corrections(db: Session, corrections: Optional[dict[str, Optional[str]]] = None) -> dict:
    """Rewrite truncated, misspelled and ALL-CAPS player names."""
    corrections = get_tables().name_corrections if corrections is None else corrections
    fixed = merged = 0
    for old, new in corrections.items():
        if new is None:
            continue
        helmets = db.query(Helmet).filter(Helmet.player == old).order_by(Helmet.id).all()
        for helmet in helmets:
            helmet.player = new
            if rekey(db, helmet) == "merged":
                merged += 1
            fixed += 1
        if helmets:
            logger.info(f'"{old}" -> "{new}" ({len(helmets)} helmets)')
            db.commit()
    return {"names_fixed": fixed, "merged": merged}


def is_non_player(player: Optional[str], corrections: Optional[dict] = None) -> bool:
    tables = get_tables()
    corrections = tables.name_corrections if corrections is None else corrections
    value = (player or "").strip()
    if not value:
        return False
    if value in corrections and corrections[value] is None:
        return True
    return any(p.search(value) for p in tables.non_player_patterns)


def delete_non_player_helmets(db: Session) -> dict:
    """Delete helmets whose "player" is a team name, year or boilerplate."""
    targets = [(h.id, h.player) for h in iter_helmets(db) if is_non_player(h.player)]
    for helmet_id, player in targets:
        logger.info(f"Deleting helmet {helmet_id}: {player!r}")
        db.query(HelmetPrice).filter(HelmetPrice.helmet_id == helmet_id).delete(synchronize_session=False)
        db.query(Helmet).filter(Helmet.id == helmet_id).delete(synchronize_session=False)
    db.commit()
    return {"deleted": len(targets), "helmets": [{"id": i, "player": p} for i, p in targets]}


def duplicate_group_key(helmet: Helmet) -> str:
    return "|".join(
        (v or "NULL").strip().lower()
        for v in (helmet.player, helmet.team, helmet.helmet_type, helmet.design_type)
    )


def find_duplicate_groups(db: Session) -> dict[str, list[Helmet]]:
    """Helmets sharing player|team|type|design, keyed by that tuple."""
    groups: dict[str, list[Helmet]] = defaultdict(list)
    for helmet in iter_helmets(db):
        groups[duplicate_group_key(helmet)].append(helmet)
    return {k: v for k, v in groups.items() if len(v) > 1}


def merge_duplicate_helmets(db: Session) -> dict:
    """Collapse each duplicate group onto the member with the most prices."""
    groups = find_duplicate_groups(db)
    removed = moved = dropped = 0
    for key, helmets in groups.items():
        helmets.sort(key=lambda h: (-len(h.prices), h.id))
        keep, duplicates = helmets[0], helmets[1:]
        logger.info(f"Merging {key}: keeping {keep.id}, removing {[h.id for h in duplicates]}")
        for dup in duplicates:
            m, d = merge_into(db, keep, dup)
            moved += m
            dropped += d
            removed += 1
        rekey(db, keep)
        db.commit()
    return {
        "duplicate_groups": len(groups),
        "helmets_removed": removed,
        "prices_moved": moved,
        "prices_dropped": dropped,
    }


def guess_player_from_name(name: Optional[str]) -> Optional[str]:
    """Best-effort player from a stored catalog name."""
    if not name:
        return None
    player = extract_player(name)
    if player:
        return player

    cleaned = _LISTING_NOISE_RE.sub("", name.split("\n")[0]).strip()
    for rule in get_tables().team_rules:
        for alias in rule.keywords:
            cleaned = re.sub(rf"\b{re.escape(alias)}\b", " ", cleaned, flags=re.IGNORECASE)
    cleaned = _PRODUCT_WORDS_RE.sub(" ", cleaned)
    words = cleaned.split()
    if len(words) < 2:
        return None
    first, last = words[0], words[1]
    if first.lower() in _SKIP_FIRST_WORDS or len(first) < 2 or len(last) < 2:
        return None
    if not (first[:1].isupper() and last[:1].isupper()):
        return None
    return f"{first} {last}"


def fill_missing_fields(db: Session) -> dict:
    """Fill NULL player/team from the helmet's stored name."""
    candidates = [h.id for h in iter_helmets(db) if not h.player or not h.team]
    players = teams = merged = 0
    unparsed: list[int] = []
    for helmet_id in candidates:
        helmet = db.get(Helmet, helmet_id)
        if helmet is None:
            continue
        if not helmet.player:
            player = guess_player_from_name(helmet.name)
            if player:
                helmet.player = player
                players += 1
            else:
                unparsed.append(helmet.id)
        if not helmet.team:
            team = extract_team_from_name(helmet.name) or extract_team(helmet.name)
            if team:
                helmet.team = team
                teams += 1
        if rekey(db, helmet) == "merged":
            merged += 1
        db.commit()
    if unparsed:
        logger.warning(f"{len(unparsed)} helmets need manual review: {unparsed[:20]}")
    return {"players_filled": players, "teams_filled": teams, "merged": merged, "unparsed": unparsed}


def fix_misfiled_design(db: Session, bad_design: str = "authentic") -> dict:
    """Helmets whose design_type holds a helmet-type word go back to "regular"."""
    helmets = db.query(Helmet).filter(Helmet.design_type == bad_design).order_by(Helmet.id).all()
    merged = 0
    for helmet in helmets:
        helmet.design_type = "regular"
        if rekey(db, helmet) == "merged":
            merged += 1
    db.commit()
    return {"fixed": len(helmets), "merged": merged}


def helmets_without_prices(db: Session) -> list[dict]:
    """Catalog rows that have no price from any source."""
    rows = (
        db.query(Helmet)
        .outerjoin(HelmetPrice, HelmetPrice.helmet_id == Helmet.id)
        .filter(HelmetPrice.id.is_(None))
        .order_by(Helmet.id)
        .all()
    )
    return [{"id": h.id, "player": h.player, "team": h.team, "name": h.name} for h in rows]


CLEANUP_JOBS = {
    "orphans": remove_orphaned_prices,
    "duplicate-prices": remove_duplicate_prices,
    "names": apply_name_corrections,
    "non-players": delete_non_player_helmets,
    "merge-duplicates": merge_duplicate_helmets,
    "fill-missing": fill_missing_fields,
    "misfiled-design": fix_misfiled_design,
}
