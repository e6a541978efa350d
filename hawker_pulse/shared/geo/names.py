"""
Hawker Pulse - Zone Name Normalization and Alias Resolution

Canonicalizes free-text zone names (Census, URA, hand-typed) so that they can be
matched exactly against the zone registry:

- normalize_name(): Unicode decomposition, punctuation and spacing cleanup,
  upper-casing, plus the domain rules for "SUBZONE" / "- Total" suffixes and
  aggregate rows.
- AliasTable: immutable alias map loaded from configs/aliases.yaml with a
  staging overlay for aliases added at runtime.
- ZoneNameResolver: alias lookup first, then the exact normalized-name index.

Matching is exact: a name that is neither an alias nor an exact zone name is
reported as unmatched rather than guessed.

Usage:
    from hawker_pulse.shared.geo.names import AliasTable, ZoneNameResolver, normalize_name

    aliases = AliasTable.load()
    resolver = ZoneNameResolver({"TM_E": "Tampines East"}, aliases)
    match = resolver.resolve(normalize_name("tampines  east"))
"""

from __future__ import annotations

import logging
import re
import threading
import unicodedata
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from hawker_pulse.shared.config import Settings, get_aliases_path, get_config

logger = logging.getLogger(__name__)

# Names that mark header/aggregate rows rather than a zone
AGGREGATE_NAMES = frozenset({"NUMBER", "TOTAL"})

_TOTAL_SUFFIX = re.compile(r"(\s*-\s*total)+\s*$", re.IGNORECASE)
_SUBZONE_SUFFIX = re.compile(r"(\s+SUBZONE)+$")
_QUOTES = re.compile(r"[\"'`‘’“”]")
_SEPARATORS = re.compile(r"[-/‐-―]")
_WHITESPACE = re.compile(r"\s+")


class Confidence(StrEnum):
    """How a zone name was resolved."""

    ALIAS = "alias"
    DIRECT = "direct"


def normalize_name(raw: Any) -> str | None:
    """
    Normalize a zone name for exact matching.

    Returns None (no match) for blank input and for aggregate/header rows such as
    "Total" or "Number". The function is idempotent.

    Examples:
        >>> normalize_name("  Tampines  East  ")
        'TAMPINES EAST'
        >>> normalize_name("Tampines' East-Central/North")
        'TAMPINES EAST CENTRAL NORTH'
        >>> normalize_name("Bedok North - Total")
        'BEDOK NORTH'
        >>> normalize_name("Total") is None
        True
    """
    if raw is None:
        return None

    text = _TOTAL_SUFFIX.sub("", str(raw))
    text = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = _QUOTES.sub("", text)
    text = _SEPARATORS.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip().upper()
    text = _SUBZONE_SUFFIX.sub("", text)

    if not text or text in AGGREGATE_NAMES:
        return None
    return text


# =============================================================================
# Alias Table
# =============================================================================


class AliasTable:
    """
    Normalized name -> zone ID aliases.

    The base map is read-only for the lifetime of the table. add_alias() writes
    to a staging overlay that is consulted before the base map, so interactive
    fixes never change what a reloaded table would contain.
    """

    def __init__(self, aliases: Mapping[str, str] | None = None, version: Any = None):
        base: dict[str, str] = {}
        for name, zone_id in (aliases or {}).items():
            key = normalize_name(name)
            if key is None:
                logger.warning(f"Ignoring alias with blank or aggregate name: {name!r}")
                continue
            base[key] = str(zone_id)

        self.version = version
        self._base: Mapping[str, str] = MappingProxyType(base)
        self._staging: dict[str, str] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: Path) -> AliasTable:
        """Load an alias table from a versioned YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        table = cls(data.get("aliases") or {}, version=data.get("version"))
        logger.info(
            f"Loaded {len(table.base)} zone aliases from {path}",
            extra={"aliases_path": str(path), "aliases_version": table.version},
        )
        return table

    @classmethod
    def load(cls, config: Settings | None = None) -> AliasTable:
        """Load the configured alias file, or an empty table if it does not exist."""
        path = get_aliases_path(config or get_config())
        if not path.exists():
            logger.warning(f"Alias file not found: {path}; continuing without aliases")
            return cls({})
        return cls.from_file(path)

    @property
    def base(self) -> Mapping[str, str]:
        """The immutable alias map loaded at construction."""
        return self._base

    @property
    def staged(self) -> dict[str, str]:
        """A copy of the runtime staging overlay."""
        with self._lock:
            return dict(self._staging)

    def lookup(self, normalized_name: str | None) -> str | None:
        """Return the zone ID aliased to a normalized name, if any."""
        if normalized_name is None:
            return None
        with self._lock:
            staged = self._staging.get(normalized_name)
        if staged is not None:
            return staged
        return self._base.get(normalized_name)

    def add_alias(self, name: str, zone_id: str) -> str:
        """
        Stage an alias for the rest of this process.

        Returns:
            The normalized key the alias was stored under
        """
        key = normalize_name(name)
        if key is None:
            raise ValueError(f"Cannot alias a blank or aggregate name: {name!r}")
        with self._lock:
            self._staging[key] = zone_id
        logger.info(f"Staged alias {key!r} -> {zone_id}")
        return key

    def clear_staging(self) -> None:
        """Drop all staged aliases."""
        with self._lock:
            self._staging.clear()

    def __contains__(self, normalized_name: object) -> bool:
        return isinstance(normalized_name, str) and self.lookup(normalized_name) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(set(self._base) | set(self._staging))

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(sorted(set(self._base) | set(self._staging)))


# =============================================================================
# Resolver
# =============================================================================


@dataclass(frozen=True)
class MatchResult:
    """Outcome of resolving one normalized name."""

    zone_id: str | None
    confidence: str | None = None
    reason: str | None = None

    @property
    def matched(self) -> bool:
        return self.zone_id is not None


class ZoneNameResolver:
    """
    Resolve normalized names to zone IDs.

    The exact-name index is built once from the zone registry passed in; build a
    new resolver after the registry changes.
    """

    def __init__(self, zones: Mapping[str, str], aliases: AliasTable | None = None):
        """
        Args:
            zones: Mapping of zone ID -> display name
            aliases: Alias table consulted before the name index
        """
        self.aliases = aliases if aliases is not None else AliasTable({})
        self._zone_ids = frozenset(zones)
        self._by_name: dict[str, str] = {}

        for zone_id, name in zones.items():
            key = normalize_name(name)
            if key is None:
                continue
            existing = self._by_name.setdefault(key, zone_id)
            if existing != zone_id:
                logger.warning(
                    f"Duplicate normalized zone name {key!r}: keeping {existing}, ignoring {zone_id}"
                )

    @property
    def zone_count(self) -> int:
        return len(self._zone_ids)

    def resolve(self, normalized_name: str | None) -> MatchResult:
        """
        Resolve a normalized name.

        Aliases win only when they point at a zone that exists in the registry.
        """
        if normalized_name is None:
            return MatchResult(zone_id=None, reason="Blank or aggregate row")

        alias_target = self.aliases.lookup(normalized_name)
        if alias_target is not None and alias_target in self._zone_ids:
            return MatchResult(zone_id=alias_target, confidence=Confidence.ALIAS)

        direct = self._by_name.get(normalized_name)
        if direct is not None:
            return MatchResult(zone_id=direct, confidence=Confidence.DIRECT)

        return MatchResult(
            zone_id=None,
            reason=f"No match for normalized name: '{normalized_name}'",
        )
