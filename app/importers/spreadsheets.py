"""Vendor inventory spreadsheets (.xls/.xlsx/.ods) -> catalog prices.

The vendor is detected from the filename. Each handler maps its sheet layout
onto (player, team, helmet_type, design_type, price) rows and hands them to
``record_vendor_price``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import pandas as pd
from sqlalchemy.orm import Session

from app.parsing import (
    extract_team_from_name,
    normalize_player_name,
    normalize_team,
    parse_design_type,
    parse_helmet_type,
    parse_price,
)
from app.services.importer import record_vendor_price
from app.services.prices import VALID_SOURCES
from app.services.reconciler import HelmetReconciler

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = {".xls", ".xlsx", ".ods"}

DENVER_TABS = ("FS HELMET", "MINI & MIDI HELMET")
GREATSPORTS_TABS = ("Full Size", "Minis", "MIDI")

SOURCE_KEYWORDS = [
    ("denverautographs", ("denver", "breakers")),
    ("fanatics", ("fanatics",)),
    ("rsa", ("rsa", "shoprsa")),
    ("radtke", ("radtke",)),
    ("signaturesports", ("signature",)),
    ("greatsports", ("greatsports", "great-sports", "great_sports")),
    ("pristine", ("pristine",)),
]


@dataclass
class SheetResults:
    added: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class VendorRow:
    player: str
    team: str
    helmet_type: str
    design_type: str
    price: float
    name: Optional[str] = None


def detect_source(filename: str) -> Optional[str]:
    lower = filename.lower()
    for source, keywords in SOURCE_KEYWORDS:
        if any(k in lower for k in keywords):
            return source
    return None


def infer_source(filename: str) -> str:
    """Source for an unrecognised file: its first filename token."""
    detected = detect_source(filename)
    if detected:
        return detected
    return re.split(r"[_\-\s.]", filename)[0].lower()


def cell(row: Any, key: Any) -> str:
    """Cell value as trimmed text; missing and NaN cells become ""."""
    try:
        value = row[key]
    except (KeyError, IndexError):
        return ""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def _raw(row: Any, key: Any) -> Any:
    try:
        value = row[key]
    except (KeyError, IndexError):
        return None
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return value


def read_workbook(path: Path, header: Optional[int] = 0) -> dict[str, pd.DataFrame]:
    return pd.read_excel(path, sheet_name=None, header=header)


# Each row parser returns a VendorRow, or None when the row should be skipped.
RowParser = Callable[[Any, str], Optional[VendorRow]]


def parse_denver_row(row: Any, sheet_name: str) -> Optional[VendorRow]:
    """Positional columns (the sheets are read without a header row).

    FS HELMET: player, team, type, design, price.
    MINI & MIDI HELMET: player, team, (unused), type, price.
    """
    player = normalize_player_name(cell(row, 0))
    price = parse_price(_raw(row, 4))
    if not player or not price:
        return None

    if sheet_name == "FS HELMET":
        type_text, design_text = cell(row, 2), cell(row, 3)
    else:
        type_text, design_text = cell(row, 3), ""

    helmet_type = parse_helmet_type(type_text, sheet_name)
    design_type = parse_design_type(design_text or type_text)
    team = normalize_team(cell(row, 1)) or extract_team_from_name(f"{player} helmet") or ""
    return VendorRow(player, team, helmet_type, design_type, price)


def parse_first_last_row(row: Any, sheet_name: str) -> Optional[VendorRow]:
    """PlayerFirst/PlayerLast/Team/Type/Item rows (Fanatics, Great Sports)."""
    player = f"{cell(row, 'PlayerFirst')} {cell(row, 'PlayerLast')}".strip()
    if not player:
        return None
    price = parse_price(_raw(row, "Retail") or _raw(row, "Price"))
    if not price:
        return None

    item = cell(row, "Item") or cell(row, "Description")
    type_text = cell(row, "Type")
    helmet_type = parse_helmet_type(f"{type_text} {item}", sheet_name)
    design_type = parse_design_type(f"{item} {type_text}")
    team = normalize_team(cell(row, "Team")) or extract_team_from_name(item) or ""
    return VendorRow(player, team, helmet_type, design_type, price, name=f"{player} {team} Autographed {item}".strip())


def parse_signature_row(row: Any, sheet_name: str) -> Optional[VendorRow]:
    player = normalize_player_name(cell(row, "player"))
    if not player:
        return None
    price = parse_price(_raw(row, "Price"))
    if not price:
        return None
    raw_type = cell(row, "helmet_type")
    team = normalize_team(cell(row, "team"))
    return VendorRow(
        player,
        team,
        parse_helmet_type(raw_type),
        parse_design_type(cell(row, "design_type")),
        price,
        name=f"{player} {team} Autographed {raw_type}".strip(),
    )


def detect_columns(columns) -> dict[str, Optional[str]]:
    """Guess player/team/price/type columns from header names."""

    def find(pattern: str) -> Optional[str]:
        return next((c for c in columns if re.search(pattern, str(c), re.IGNORECASE)), None)

    return {
        "player": find(r"player|name"),
        "team": find(r"team"),
        "price": find(r"price|retail|srp|cost"),
        "type": find(r"type|helmet"),
    }


def generic_row_parser(columns: dict[str, Optional[str]]) -> RowParser:
    def parse(row: Any, sheet_name: str) -> Optional[VendorRow]:
        player = normalize_player_name(cell(row, columns["player"]))
        if not player:
            return None
        price = parse_price(_raw(row, columns["price"]))
        if not price:
            return None
        type_text = cell(row, columns["type"]) if columns["type"] else ""
        team = normalize_team(cell(row, columns["team"])) if columns["team"] else ""
        return VendorRow(player, team, parse_helmet_type(type_text, sheet_name), parse_design_type(type_text), price)

    return parse


class SpreadsheetImporter:
    """Import one vendor workbook into ``source``'s price rows."""

    def __init__(self, db: Session, source: str, reconciler: Optional[HelmetReconciler] = None):
        self.db = db
        self.source = source
        self.reconciler = reconciler or HelmetReconciler(db)

    def _sheets(self, path: Path, tabs: Optional[tuple[str, ...]] = None, header: Optional[int] = 0) -> Iterator[tuple[str, pd.DataFrame]]:
        for sheet_name, frame in read_workbook(path, header=header).items():
            if tabs is not None and sheet_name not in tabs:
                continue
            yield sheet_name, frame

    def _record(self, parsed: Optional[VendorRow], results: SheetResults) -> None:
        if parsed is None:
            results.skipped += 1
            return
        outcome, created = record_vendor_price(
            self.db,
            self.reconciler,
            self.source,
            player=parsed.player,
            team=parsed.team or None,
            helmet_type=parsed.helmet_type,
            design_type=parsed.design_type,
            price=parsed.price,
            name=parsed.name,
        )
        if outcome == "error":
            results.errors += 1
        elif created:
            results.added += 1
        else:
            results.updated += 1

    def _import_frame(self, frame: pd.DataFrame, sheet_name: str, parser: RowParser, results: SheetResults) -> None:
        for _, row in frame.iterrows():
            try:
                parsed = parser(row, sheet_name)
            except (TypeError, ValueError) as e:
                logger.error(f"{self.source}: bad row in '{sheet_name}': {e}")
                results.errors += 1
                continue
            self._record(parsed, results)

    def import_denver(self, path: Path) -> SheetResults:
        results = SheetResults()
        for sheet_name, frame in self._sheets(path, DENVER_TABS, header=None):
            self._import_frame(frame.iloc[1:], sheet_name, parse_denver_row, results)
        return results

    def import_fanatics(self, path: Path) -> SheetResults:
        results = SheetResults()
        for sheet_name, frame in self._sheets(path):
            self._import_frame(frame, sheet_name, parse_first_last_row, results)
        return results

    def import_greatsports(self, path: Path) -> SheetResults:
        results = SheetResults()
        for sheet_name, frame in self._sheets(path, GREATSPORTS_TABS):
            self._import_frame(frame, sheet_name, parse_first_last_row, results)
        return results

    def import_signaturesports(self, path: Path) -> SheetResults:
        results = SheetResults()
        sheet_name, frame = next(self._sheets(path))
        self._import_frame(frame, sheet_name, parse_signature_row, results)
        return results

    def import_generic(self, path: Path) -> SheetResults:
        results = SheetResults()
        for sheet_name, frame in self._sheets(path):
            if frame.empty:
                continue
            columns = detect_columns(list(frame.columns))
            if not columns["player"] or not columns["price"]:
                logger.warning(f"Could not detect columns in sheet '{sheet_name}'")
                continue
            self._import_frame(frame, sheet_name, generic_row_parser(columns), results)
        return results


HANDLERS = {
    "denverautographs": SpreadsheetImporter.import_denver,
    "fanatics": SpreadsheetImporter.import_fanatics,
    "greatsports": SpreadsheetImporter.import_greatsports,
    "signaturesports": SpreadsheetImporter.import_signaturesports,
}


def import_file(db: Session, path, reconciler: Optional[HelmetReconciler] = None) -> Optional[dict]:
    """Import one spreadsheet. Returns the result counters, or None if skipped."""
    path = Path(path)
    if path.suffix.lower() not in SPREADSHEET_EXTENSIONS:
        logger.info(f"Skipping non-spreadsheet file: {path.name}")
        return None

    detected = detect_source(path.name)
    source = detected or infer_source(path.name)
    if source not in VALID_SOURCES:
        raise ValueError(
            f"Cannot import {path.name}: source '{source}' is not one of {', '.join(VALID_SOURCES)}; "
            "rename the file after its vendor"
        )
    logger.info(f"Importing {path.name} (source: {detected or 'auto-detect'} -> {source})")

    importer = SpreadsheetImporter(db, source, reconciler)
    handler = HANDLERS.get(detected or "", SpreadsheetImporter.import_generic)
    results = handler(importer, path)

    logger.info(
        f"{path.name}: {results.added} new helmets, {results.updated} updated, "
        f"{results.skipped} skipped, {results.errors} errors"
    )
    return {"status": "success", "file": path.name, "source": source, **results.to_dict()}
