"""
Hawker Pulse - Base Ingester

Abstract base class for all dataset ingesters. Provides a consistent interface
for fetching raw records with:
- Remote source first, then local fallback files in configured order
- Unwrapping of the payload shapes Singapore open-data sources publish
- Structured result reporting

Supported payload shapes:
    CKAN datastore      {"result": {"records": [...]}}
    LTA DataMall        {"value": [...]}
    Wrapped list        {"data": [...]}
    GeoJSON             {"type": "FeatureCollection", "features": [...]}
    Bare array          [...]
    CSV                 header row + records

Usage:
    class HawkerCentreIngester(BaseIngester):
        def get_dataset_name(self) -> str:
            return "hawker_centres"

    ingester = HawkerCentreIngester()
    result = ingester.run(execution_date="2025-01-15")
    df = ingester.get_data()
"""

from __future__ import annotations

import io
import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pandas as pd
import requests

from hawker_pulse.shared.config import Settings, get_config, get_source_config, resolve_data_path
from hawker_pulse.shared.errors import PayloadFormatError, SourceUnavailableError

logger = logging.getLogger(__name__)

LOCAL_SOURCE = "local"


@dataclass
class IngestionResult:
    """Result of a fetch operation."""

    dataset: str
    execution_date: str
    rows_fetched: int
    source: str | None = None
    source_path: str | None = None
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for snapshots/logging."""
        return {
            "dataset": self.dataset,
            "execution_date": self.execution_date,
            "rows_fetched": self.rows_fetched,
            "source": self.source,
            "source_path": self.source_path,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
            "error_type": self.error_type,
            "metadata": self.metadata,
        }


# =============================================================================
# Payload Unwrapping
# =============================================================================


def _flatten_feature(feature: Mapping[str, Any]) -> dict[str, Any]:
    return {**(feature.get("properties") or {}), "geometry": feature.get("geometry")}


def unwrap_payload(payload: Any) -> list[dict[str, Any]]:
    """
    Extract the list of records from a decoded JSON payload.

    GeoJSON features are flattened to their properties plus a "geometry" key.

    Raises:
        PayloadFormatError: If no known shape matches
    """
    if isinstance(payload, list):
        return [
            _flatten_feature(item) if isinstance(item, Mapping) and item.get("type") == "Feature" else item
            for item in payload
            if isinstance(item, Mapping)
        ]

    if not isinstance(payload, Mapping):
        raise PayloadFormatError(f"Unsupported payload type: {type(payload).__name__}")

    if payload.get("type") == "FeatureCollection":
        return [_flatten_feature(f) for f in payload.get("features") or []]

    result = payload.get("result")
    if isinstance(result, Mapping) and isinstance(result.get("records"), list):
        return list(result["records"])

    if isinstance(payload.get("value"), list):
        return list(payload["value"])

    if isinstance(payload.get("data"), list):
        return unwrap_payload(payload["data"])

    raise PayloadFormatError(f"Unrecognized payload shape with keys: {sorted(payload)[:10]}")


def records_to_frame(records: list[dict[str, Any]]) -> pd.DataFrame:
    """Build a DataFrame from raw records, keeping values as published."""
    if not records:
        return pd.DataFrame()
    return pd.DataFrame.from_records(records)


def _is_csv(location: str, content_type: str | None = None) -> bool:
    if content_type and "csv" in content_type.lower():
        return True
    return location.lower().split("?")[0].endswith(".csv")


# =============================================================================
# Base Ingester
# =============================================================================


class BaseIngester(ABC):
    """
    Abstract base class for dataset ingestion.

    Subclasses must implement:
    - get_dataset_name(): Return the dataset name (matches a `sources` config key)

    Subclasses may override:
    - get_request_params(): Extra query parameters for the remote request
    - fetch_remote(): Custom remote fetching (e.g. pagination)
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize the ingester.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self.source = get_source_config(self.get_dataset_name(), self.config)
        self.source_used: str | None = None
        self.source_path: str | None = None

    @abstractmethod
    def get_dataset_name(self) -> str:
        """
        Get the dataset name.

        Returns:
            Dataset name (e.g., "population", "bus_stops")
        """
        pass

    def get_request_params(self) -> dict[str, Any]:
        """Query parameters for the remote request."""
        return {}

    # =========================================================================
    # Fetching
    # =========================================================================

    def fetch_data(self) -> pd.DataFrame:
        """
        Fetch raw records from the remote source, else the first readable local file.

        Raises:
            SourceUnavailableError: If every configured source failed
        """
        dataset = self.get_dataset_name()
        attempts: list[str] = []

        if self.source.url:
            try:
                df = self.fetch_remote(self.source.url)
                self.source_used = self.source.url
                self.source_path = None
                return df
            except (requests.RequestException, ValueError, PayloadFormatError) as e:
                logger.warning(
                    f"Remote fetch failed for {dataset}: {e}",
                    extra={"dataset": dataset, "url": self.source.url},
                )
                attempts.append(f"remote {self.source.url}: {e}")

        for local_path in self.source.local_paths:
            path = resolve_data_path(local_path, self.config)
            if not path.exists():
                attempts.append(f"local {path}: not found")
                continue
            try:
                df = self.read_local(path)
            except (OSError, ValueError, PayloadFormatError) as e:
                logger.warning(f"Could not read {path} for {dataset}: {e}")
                attempts.append(f"local {path}: {e}")
                continue
            self.source_used = LOCAL_SOURCE
            self.source_path = str(path)
            return df

        raise SourceUnavailableError(dataset, attempts)

    def fetch_remote(self, url: str) -> pd.DataFrame:
        """Fetch and unwrap a single remote payload."""
        response = self._get(url, self.get_request_params())
        if _is_csv(url, response.headers.get("Content-Type")):
            return pd.read_csv(io.StringIO(response.text), dtype=str)
        return records_to_frame(unwrap_payload(response.json()))

    def read_local(self, path: Path) -> pd.DataFrame:
        """Read a local CSV, JSON or GeoJSON file."""
        if _is_csv(str(path)):
            return pd.read_csv(path, dtype=str)
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
        return records_to_frame(unwrap_payload(payload))

    def _get(self, url: str, params: Mapping[str, Any] | None = None) -> requests.Response:
        logger.info(f"Requesting {url}", extra={"dataset": self.get_dataset_name(), "params": params})
        response = requests.get(
            url,
            params=dict(params or {}),
            headers=self.source.headers,
            timeout=self.source.timeout_seconds,
        )
        if response.status_code != 200:
            raise requests.HTTPError(f"HTTP {response.status_code}: {response.text[:200]}")
        return response

    # =========================================================================
    # Run
    # =========================================================================

    def run(self, execution_date: str | None = None) -> IngestionResult:
        """
        Run the fetch stage.

        Args:
            execution_date: Execution date in YYYY-MM-DD format (defaults to today)

        Returns:
            IngestionResult with details about the fetch
        """
        start_time = time.time()
        dataset_name = self.get_dataset_name()
        execution_date = execution_date or datetime.now(UTC).strftime("%Y-%m-%d")

        logger.info(
            f"Starting ingestion for {dataset_name}",
            extra={"dataset": dataset_name, "execution_date": execution_date},
        )

        try:
            df = self.fetch_data()
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Ingestion failed for {dataset_name}: {e}",
                extra={"dataset": dataset_name, "error": str(e)},
                exc_info=not isinstance(e, SourceUnavailableError),
            )
            self._data = None
            return IngestionResult(
                dataset=dataset_name,
                execution_date=execution_date,
                rows_fetched=0,
                duration_seconds=duration,
                success=False,
                error_message=str(e),
                error_type=type(e).__name__,
                metadata={"attempts": getattr(e, "attempts", [])},
            )

        duration = time.time() - start_time
        result = IngestionResult(
            dataset=dataset_name,
            execution_date=execution_date,
            rows_fetched=len(df),
            source=self.source_used,
            source_path=self.source_path,
            duration_seconds=duration,
            success=True,
            metadata={"columns": [str(c) for c in df.columns]},
        )

        logger.info(
            f"Ingestion complete for {dataset_name}: {len(df)} rows",
            extra=result.to_dict(),
        )

        # Store the dataframe for downstream access
        self._data = df

        return result

    def get_data(self) -> pd.DataFrame | None:
        """Get the most recently fetched data."""
        return getattr(self, "_data", None)
