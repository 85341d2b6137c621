"""Title and spreadsheet-row parsing."""

from app.parsing.tables import HelmetTables, get_tables
from app.parsing.title_parser import ParsedHelmet, clean_player_name, extract_team, parse_helmet_title
from app.parsing.row_parser import (
    extract_team_from_name,
    normalize_player_name,
    normalize_team,
    parse_design_type,
    parse_helmet_type,
    parse_price,
)

__all__ = [
    "HelmetTables",
    "get_tables",
    "ParsedHelmet",
    "clean_player_name",
    "extract_team",
    "parse_helmet_title",
    "extract_team_from_name",
    "normalize_player_name",
    "normalize_team",
    "parse_design_type",
    "parse_helmet_type",
    "parse_price",
]
