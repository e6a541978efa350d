"""
Hawker Pulse - Exceptions

Exception hierarchy shared by the ingestion, scoring and stats layers.
Row-level problems (malformed coordinates, unmatched names) are counted by the
pipelines and never raised; these exceptions mark run-level failures.
"""

from __future__ import annotations


class HawkerPulseError(Exception):
    """Base class for all Hawker Pulse errors."""


class SourceUnavailableError(HawkerPulseError):
    """Raised when neither the remote source nor any local fallback could be read."""

    def __init__(self, dataset: str, attempts: list[str]):
        self.dataset = dataset
        self.attempts = attempts
        super().__init__(
            f"No data source available for {dataset}: " + "; ".join(attempts or ["none configured"])
        )


class PayloadFormatError(HawkerPulseError):
    """Raised when a fetched payload has no recognizable record shape."""


class ScoringError(HawkerPulseError):
    """Raised when a scoring run cannot produce well-defined scores."""


class KernelConfigLockedError(HawkerPulseError):
    """Raised when modifying a kernel config already referenced by a score snapshot."""


class InvalidBucketCountError(HawkerPulseError, ValueError):
    """Raised when a quantile request asks for an unsupported bucket count."""
