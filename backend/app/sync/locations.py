"""
Location resolver: Zoho location name → stock-keeping module.

Resolution order:
  1. Exact lookup (keys are case-sensitive; known casing variants are listed).
  2. Lower-cased, trimmed substring match in either direction, scanning the
     table in order. The first matching rule wins, so table order matters.
  3. No match → None. An unmapped location is a valid outcome, not an error.

The table is an immutable tuple of LocationRule, loaded either from the
built-in DEFAULT_LOCATION_RULES or from a JSON file
([{"pattern": "...", "module": "..."}]) named by LOCATION_MAPPING_FILE.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from app.core.config import settings


class ModuleId(str, Enum):
    CENTRAL_KITCHEN = "central-kitchen"
    KUWAIT_CITY = "kuwait-city"
    VIBE_COMPLEX = "vibe-complex"
    MALL_360 = "mall-360"
    TAIBA_KITCHEN = "taiba-kitchen"


@dataclass(frozen=True)
class LocationRule:
    pattern: str
    module: ModuleId


def _rules(module: ModuleId, *patterns: str) -> tuple[LocationRule, ...]:
    return tuple(LocationRule(pattern=p, module=module) for p in patterns)


DEFAULT_LOCATION_RULES: tuple[LocationRule, ...] = (
    *_rules(
        ModuleId.CENTRAL_KITCHEN,
        "TLB central kitchen",
        "TLB Central Kitchen",
        "TLB CENTRAL KITCHEN",
    ),
    *_rules(ModuleId.KUWAIT_CITY, "TLB City", "TLB city", "TLB CITY"),
    *_rules(ModuleId.VIBE_COMPLEX, "TLB vibes", "TLB Vibes", "TLB VIBES"),
    *_rules(
        ModuleId.MALL_360,
        "TLB 360 RNA",
        "TLB 360 rna",
        "TLB 360 Rna",
        "360 Mall",
        "360 mall",
    ),
    *_rules(
        ModuleId.TAIBA_KITCHEN,
        "clinic",
        "Clinic",
        "CLINIC",
        "Taiba Hospital",
        "taiba hospital",
        "TAIBA HOSPITAL",
        "TLB Taiba",
        "TLB TAIBA",
        "TLB taiba",
    ),
)


class LocationResolver:
    """Resolves free-text location names against an ordered rule table."""

    def __init__(
        self,
        rules: Iterable[LocationRule] = DEFAULT_LOCATION_RULES,
        exact_only: bool = False,
    ) -> None:
        self.rules: tuple[LocationRule, ...] = tuple(rules)
        self.exact_only = exact_only
        # First occurrence wins for duplicate patterns
        self._exact: dict[str, ModuleId] = {}
        for rule in self.rules:
            self._exact.setdefault(rule.pattern, rule.module)

    def resolve(self, location_name: Optional[str]) -> Optional[ModuleId]:
        if not location_name:
            return None

        direct = self._exact.get(location_name)
        if direct is not None:
            return direct
        if self.exact_only:
            return None

        needle = location_name.strip().lower()
        if not needle:
            return None
        for rule in self.rules:
            pattern = rule.pattern.strip().lower()
            if needle in pattern or pattern in needle:
                return rule.module
        return None

    def is_mapped(self, location_name: Optional[str]) -> bool:
        return self.resolve(location_name) is not None

    def modules(self) -> list[ModuleId]:
        """Distinct modules in table order."""
        seen: list[ModuleId] = []
        for rule in self.rules:
            if rule.module not in seen:
                seen.append(rule.module)
        return seen

    def locations_for_module(self, module: ModuleId) -> list[str]:
        return [rule.pattern for rule in self.rules if rule.module == module]


def load_location_rules(path: str | Path) -> tuple[LocationRule, ...]:
    """Load an ordered rule table from a JSON list of {pattern, module} objects."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"Location mapping in {path} must be a JSON list")
    rules = []
    for entry in raw:
        pattern = (entry.get("pattern") or "").strip()
        if not pattern:
            raise ValueError(f"Location mapping entry without pattern: {entry!r}")
        rules.append(LocationRule(pattern=pattern, module=ModuleId(entry.get("module"))))
    return tuple(rules)


@lru_cache(maxsize=1)
def get_location_resolver() -> LocationResolver:
    if settings.LOCATION_MAPPING_FILE:
        rules = load_location_rules(settings.LOCATION_MAPPING_FILE)
        logger.info(
            f"Loaded {len(rules)} location rules from {settings.LOCATION_MAPPING_FILE}"
        )
    else:
        rules = DEFAULT_LOCATION_RULES
    return LocationResolver(rules, exact_only=settings.LOCATION_EXACT_ONLY)
