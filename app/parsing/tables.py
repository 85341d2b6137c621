"""Static lookup tables for helmet parsing.

All team aliases, design keywords, player blocklists and correction tables
live in ``data/helmet_tables.json``. This module loads that asset once and
compiles it into ordered rule lists. Order in the file is priority order:
the first rule that matches wins.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

TABLES_PATH = Path(__file__).parent / "data" / "helmet_tables.json"


@dataclass(frozen=True)
class KeywordRule:
    """Matches when any keyword is a substring of the lowercased text."""

    result: str
    keywords: tuple[str, ...]

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(k in lowered for k in self.keywords)


@dataclass(frozen=True)
class PatternRule:
    """Matches when the compiled regex is found anywhere in the text."""

    result: str
    pattern: re.Pattern

    def matches(self, text: str) -> bool:
        return bool(self.pattern.search(text))


Rule = Union[KeywordRule, PatternRule]


def first_match(rules: Sequence[Rule], text: Optional[str]) -> Optional[str]:
    """Evaluate rules in priority order and return the first result."""
    if not text:
        return None
    for rule in rules:
        if rule.matches(text):
            return rule.result
    return None


@dataclass(frozen=True)
class HelmetTables:
    version: str
    helmet_types: tuple[str, ...]
    design_types: tuple[str, ...]
    team_rules: tuple[KeywordRule, ...]
    franchise_names: dict[str, str]
    helmet_type_rules: tuple[KeywordRule, ...]
    design_rules: tuple[PatternRule, ...]
    auth_rules: tuple[PatternRule, ...]
    reject_phrases: tuple[str, ...]
    known_players: tuple[str, ...]
    player_strip_words: tuple[str, ...]
    player_blocklist: tuple[str, ...]
    team_patterns: tuple[PatternRule, ...]
    name_corrections: dict[str, Optional[str]]
    non_player_patterns: tuple[re.Pattern, ...]

    @property
    def canonical_teams(self) -> list[str]:
        return [r.result for r in self.team_rules]

    def aliases_for(self, team: str) -> tuple[str, ...]:
        for rule in self.team_rules:
            if rule.result == team:
                return rule.keywords
        return ()


def _lowered(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(v.lower() for v in values)


def build_tables(raw: dict) -> HelmetTables:
    """Compile the raw JSON document into rule objects.

    Raises ValueError when a type or design rule yields a value outside the
    declared ``helmet_types``/``design_types``.
    """
    tables = HelmetTables(
        version=str(raw.get("version", "0")),
        helmet_types=tuple(raw["helmet_types"]),
        design_types=tuple(raw["design_types"]),
        team_rules=tuple(
            KeywordRule(result=row["team"], keywords=_lowered(row["aliases"]))
            for row in raw["team_aliases"]
        ),
        franchise_names={k.lower(): v for k, v in raw["franchise_names"].items()},
        helmet_type_rules=tuple(
            KeywordRule(result=row["helmet_type"], keywords=_lowered(row["keywords"]))
            for row in raw["helmet_type_rules"]
        ),
        design_rules=tuple(
            PatternRule(result=row["design_type"], pattern=re.compile(row["pattern"], re.IGNORECASE))
            for row in raw["design_rules"]
        ),
        auth_rules=tuple(
            PatternRule(
                result=row["auth_company"],
                pattern=re.compile(row["pattern"], re.IGNORECASE if row.get("ignore_case") else 0),
            )
            for row in raw["auth_rules"]
        ),
        reject_phrases=_lowered(raw["reject_phrases"]),
        known_players=tuple(raw["known_players"]),
        player_strip_words=tuple(raw["player_strip_words"]),
        player_blocklist=_lowered(raw["player_blocklist"]),
        team_patterns=tuple(
            PatternRule(result=row["team"], pattern=re.compile(row["pattern"], re.IGNORECASE))
            for row in raw["team_patterns"]
        ),
        name_corrections=dict(raw["name_corrections"]),
        non_player_patterns=tuple(
            re.compile(p, re.IGNORECASE) for p in raw["non_player_patterns"]
        ),
    )
    _check_results("helmet type", tables.helmet_type_rules, tables.helmet_types)
    _check_results("design", tables.design_rules, tables.design_types)
    return tables


def _check_results(kind: str, rules: Sequence[Rule], allowed: tuple[str, ...]) -> None:
    unknown = sorted({r.result for r in rules} - set(allowed))
    if unknown:
        raise ValueError(f"Unknown {kind} in rule table: {', '.join(unknown)}")


@lru_cache()
def get_tables(path: Optional[str] = None) -> HelmetTables:
    """Load and cache the lookup tables (defaults to the bundled asset)."""
    table_path = Path(path) if path else TABLES_PATH
    with table_path.open(encoding="utf-8") as fh:
        return build_tables(json.load(fh))
