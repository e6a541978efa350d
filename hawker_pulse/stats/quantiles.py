"""
Hawker Pulse - Population Quantiles

Choropleth breakpoints over the stored population totals.

quantile_breaks() is a pure function; QuantileService wraps it with a short
TTL cache keyed by bucket count and an MD5 content token so callers holding
an unchanged token can be told the payload is not modified.

Usage:
    from hawker_pulse.stats import QuantileService, quantile_breaks

    quantile_breaks([10, 20, 30, 40, 50], 5)  # [10, 20, 30, 40]

    service = QuantileService(repository)
    response = service.population_quantiles(k=5)
    again = service.population_quantiles(k=5, if_none_match=response.etag)
    assert again.not_modified
"""

from __future__ import annotations

import hashlib
import json
import logging
import statistics
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from hawker_pulse.shared.config import Settings, get_config
from hawker_pulse.shared.errors import InvalidBucketCountError
from hawker_pulse.storage.repository import Repository

logger = logging.getLogger(__name__)


def quantile_breaks(sorted_values: Sequence[float], k: int) -> list[float]:
    """
    k-1 breakpoints splitting an ascending sequence into k buckets.

    breaks[i-1] = sorted_values[ceil(i/k * n) - 1] for i in 1..k-1, with the
    index clamped to [0, n-1].

    Args:
        sorted_values: Values in ascending order
        k: Number of buckets

    Returns:
        Non-decreasing list of k-1 breakpoints, or [] when there are no values
    """
    n = len(sorted_values)
    if n == 0:
        return []

    breaks = []
    for i in range(1, k):
        # Integer ceil(i * n / k)
        index = -(-i * n // k) - 1
        breaks.append(sorted_values[min(max(index, 0), n - 1)])
    return breaks


def content_etag(payload: dict[str, Any]) -> str:
    """MD5 hex digest of a payload's canonical JSON encoding."""
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.md5(encoded.encode("utf-8")).hexdigest()


@dataclass
class QuantileResponse:
    """Population quantiles for one bucket count."""

    k: int
    n: int = 0
    min: float = 0
    max: float = 0
    breaks: list[float] = field(default_factory=list)
    etag: str | None = None
    cache_hit: bool = False
    not_modified: bool = False

    def payload(self) -> dict[str, Any]:
        return {"k": self.k, "n": self.n, "min": self.min, "max": self.max, "breaks": list(self.breaks)}

    def to_dict(self) -> dict[str, Any]:
        if self.not_modified:
            return {"k": self.k, "etag": self.etag, "not_modified": True}
        return {**self.payload(), "etag": self.etag, "cache_hit": self.cache_hit}


@dataclass
class _CacheEntry:
    payload: dict[str, Any]
    etag: str
    stored_at: float


class QuantileService:
    """Cached population quantiles for choropleth rendering."""

    def __init__(
        self,
        repository: Repository,
        config: Settings | None = None,
        ttl_seconds: float | None = None,
    ):
        self.repository = repository
        self.config = config or get_config()
        stats = self.config.stats
        self.ttl_seconds = stats.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.min_k = stats.min_k
        self.max_k = stats.max_k
        self.default_k = stats.default_k
        self._cache: dict[int, _CacheEntry] = {}
        self._lock = threading.Lock()

    def population_quantiles(self, k: int | None = None, if_none_match: str | None = None) -> QuantileResponse:
        """
        Quantile breaks of all population totals.

        Args:
            k: Bucket count (configured default when omitted)
            if_none_match: Token from an earlier response

        Returns:
            QuantileResponse; not_modified=True with no payload when the token
            matches the current content

        Raises:
            InvalidBucketCountError: If k is outside the configured range
        """
        k = self.default_k if k is None else k
        if not self.min_k <= k <= self.max_k:
            raise InvalidBucketCountError(f"k must be between {self.min_k} and {self.max_k}, got {k}")

        entry, cache_hit = self._get_entry(k)

        if if_none_match is not None and if_none_match.strip('"') == entry.etag:
            return QuantileResponse(k=k, etag=entry.etag, cache_hit=cache_hit, not_modified=True)

        payload = entry.payload
        return QuantileResponse(
            k=payload["k"],
            n=payload["n"],
            min=payload["min"],
            max=payload["max"],
            breaks=list(payload["breaks"]),
            etag=entry.etag,
            cache_hit=cache_hit,
        )

    def invalidate(self) -> None:
        """Drop all cached entries, e.g. after a population ingestion run."""
        with self._lock:
            self._cache.clear()

    def _get_entry(self, k: int) -> tuple[_CacheEntry, bool]:
        now = time.monotonic()
        with self._lock:
            entry = self._cache.get(k)
            if entry is not None and now - entry.stored_at < self.ttl_seconds:
                return entry, True

        totals = self.repository.population_totals()
        payload = {
            "k": k,
            "n": len(totals),
            "min": totals[0] if totals else 0,
            "max": totals[-1] if totals else 0,
            "breaks": quantile_breaks(totals, k),
        }
        entry = _CacheEntry(payload=payload, etag=content_etag(payload), stored_at=now)

        with self._lock:
            self._cache[k] = entry

        logger.debug(f"Computed population quantiles for k={k} over {len(totals)} totals")
        return entry, False


def population_summary(repository: Repository) -> dict[str, Any]:
    """Count, min, max, rounded mean and median of the population totals."""
    totals = repository.population_totals()
    if not totals:
        return {"count": 0, "min": 0, "max": 0, "mean": 0, "median": 0}
    return {
        "count": len(totals),
        "min": totals[0],
        "max": totals[-1],
        "mean": round(statistics.fmean(totals)),
        "median": statistics.median(totals),
    }
