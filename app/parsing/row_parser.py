"""Helpers for vendor spreadsheet rows and free-text catalog names."""

from __future__ import annotations

import math
from typing import Any, Optional

from app.parsing.tables import HelmetTables, first_match, get_tables

ROW_DEFAULT_HELMET_TYPE = "fullsize-replica"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def normalize_team(value: Any, tables: Optional[HelmetTables] = None) -> str:
    """Map "Kansas City Chiefs" style names to the mascot used in the catalog."""
    tables = tables or get_tables()
    team = _text(value)
    if not team:
        return ""
    return tables.franchise_names.get(team.lower(), team)


def normalize_player_name(value: Any) -> str:
    """Turn "Mahomes, Patrick" into "Patrick Mahomes"."""
    name = _text(value)
    if "," in name:
        parts = [p.strip() for p in name.split(",")]
        if len(parts) == 2:
            return f"{parts[1]} {parts[0]}".strip()
    return name


def parse_price(value: Any) -> Optional[float]:
    """Vendor price cell -> positive float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return float(value) if value > 0 else None
    cleaned = str(value).replace("$", "").replace(",", "").strip()
    try:
        price = float(cleaned)
    except ValueError:
        return None
    if math.isnan(price) or price <= 0:
        return None
    return price


def parse_helmet_type(text: Any, sheet_name: str = "", tables: Optional[HelmetTables] = None) -> str:
    """Helmet type from a row's type/item text, falling back to the tab name."""
    tables = tables or get_tables()
    return (
        first_match(tables.helmet_type_rules, _text(text))
        or first_match(tables.helmet_type_rules, sheet_name)
        or ROW_DEFAULT_HELMET_TYPE
    )


def parse_design_type(text: Any, tables: Optional[HelmetTables] = None) -> str:
    tables = tables or get_tables()
    return first_match(tables.design_rules, _text(text)) or "regular"


def extract_team_from_name(text: Any, tables: Optional[HelmetTables] = None) -> Optional[str]:
    """Team from a free-text name: college, NFL, NHL, MLB, then college catch-alls."""
    tables = tables or get_tables()
    return first_match(tables.team_patterns, _text(text))
