"""Marketplace listing title -> structured helmet candidate.

Each field is resolved by an ordered rule list (see ``tables.py``); the first
rule that matches wins. The parser never raises: fields it cannot resolve
stay ``None`` and the reason is appended to ``issues``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, asdict
from typing import Callable, Optional

from app.parsing.tables import HelmetTables, first_match, get_tables

MIN_TITLE_LENGTH = 10
MIN_PLAYER_LENGTH = 3
MAX_PLAYER_LENGTH = 50

# First [Middle initial] Last [suffix]
_NAME = r"[A-Z][a-z]+(?:\s+[A-Z]\.?)?\s+[A-Z][a-z']+(?:\s+(?:Jr\.|Sr\.|III|II|IV))?"
_NAME_BEFORE_KEYWORD_RE = re.compile(rf"^({_NAME})\s+(?i:autographed|signed)\b")
_LEADING_NAME_RE = re.compile(r"^([A-Z][a-z]+\s+[A-Z][a-z']+)")
_SIGNED_BY_RE = re.compile(r"(?i:signed|autographed)\s+(?i:by)\s+([A-Z][a-z]+\s+[A-Z][a-z']+)")
_FULL_NAME_RE = re.compile(rf"^({_NAME})")


@dataclass
class ParsedHelmet:
    player: Optional[str] = None
    team: Optional[str] = None
    helmet_type: str = "fullsize-authentic"
    design_type: str = "regular"
    auth_company: Optional[str] = None
    is_valid: bool = False
    issues: list[str] = field(default_factory=list)

    @property
    def dedupe_key(self) -> str:
        parts = [self.player, self.team, self.helmet_type, self.design_type]
        return "|".join((p or "").lower() for p in parts)

    def to_dict(self) -> dict:
        return asdict(self)


def _known_player(title: str, tables: HelmetTables) -> Optional[str]:
    lowered = title.lower()
    for name in tables.known_players:
        if name.lower() in lowered:
            return name
    return None


def _regex_strategy(pattern: re.Pattern) -> Callable[[str, HelmetTables], Optional[str]]:
    def strategy(title: str, _tables: HelmetTables) -> Optional[str]:
        match = pattern.search(title)
        return match.group(1) if match else None

    return strategy


# Tried in order until one yields a candidate name.
PLAYER_STRATEGIES: list[Callable[[str, HelmetTables], Optional[str]]] = [
    _known_player,
    _regex_strategy(_NAME_BEFORE_KEYWORD_RE),
    _regex_strategy(_LEADING_NAME_RE),
    _regex_strategy(_SIGNED_BY_RE),
]


def clean_player_name(name: Optional[str], tables: Optional[HelmetTables] = None) -> Optional[str]:
    """Strip product words from an extracted name and reject junk."""
    if not name:
        return None
    tables = tables or get_tables()

    words = "|".join(re.escape(w) for w in tables.player_strip_words)
    cleaned = re.sub(rf"\s+(?:{words})\b", "", name, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()

    parts = cleaned.split(" ")
    if len(parts) < 2 or not parts[0][:1].isupper():
        return None

    lowered = cleaned.lower()
    if any(w in lowered for w in tables.player_blocklist):
        match = _FULL_NAME_RE.match(cleaned)
        if not match:
            return None
        cleaned = match.group(1)

    if len(cleaned) > MAX_PLAYER_LENGTH:
        return None
    return cleaned


def extract_player(title: str, tables: Optional[HelmetTables] = None) -> Optional[str]:
    tables = tables or get_tables()
    for strategy in PLAYER_STRATEGIES:
        candidate = strategy(title, tables)
        if candidate:
            return clean_player_name(candidate, tables)
    return None


def extract_team(text: Optional[str], tables: Optional[HelmetTables] = None) -> Optional[str]:
    """Canonical team for the first alias found in the text."""
    tables = tables or get_tables()
    return first_match(tables.team_rules, text)


def parse_helmet_title(
    title: Optional[str],
    default_type: str = "fullsize-authentic",
    require_helmet_keyword: bool = True,
    tables: Optional[HelmetTables] = None,
) -> ParsedHelmet:
    """Parse a listing title into player/team/type/design/auth fields."""
    tables = tables or get_tables()
    result = ParsedHelmet(helmet_type=default_type)

    if not title or len(title) < MIN_TITLE_LENGTH:
        result.issues.append("Title too short")
        return result

    lowered = title.lower()
    if require_helmet_keyword and "helmet" not in lowered:
        result.issues.append("Not a helmet")
        return result

    if any(phrase in lowered for phrase in tables.reject_phrases):
        result.issues.append("Not signed helmet")
        return result

    result.team = extract_team(title, tables)
    result.helmet_type = first_match(tables.helmet_type_rules, title) or default_type
    result.design_type = first_match(tables.design_rules, title) or "regular"
    result.auth_company = first_match(tables.auth_rules, title)
    result.player = extract_player(title, tables)

    if result.player and len(result.player) >= MIN_PLAYER_LENGTH:
        result.is_valid = True
    else:
        result.player = None
        result.issues.append("Could not extract player name")

    if not result.team:
        result.issues.append("Could not identify team")

    return result
