"""
Hawker Pulse - Base Preprocessor

Abstract base class for all dataset preprocessors. Turns raw source records
into canonical rows with:
- Per-row normalization fanned out over a bounded worker pool
- Per-worker counters merged once at the end of the stage
- Coordinate extraction, CRS detection and SVY21 conversion
- Counting (never raising) of malformed rows

Subclasses implement normalize_row(), which returns a canonical dict, returns
None to skip an aggregate/header row, or raises InvalidRowError for a
malformed row.

Usage:
    class BusStopPreprocessor(BasePreprocessor):
        def get_dataset_name(self) -> str:
            return "bus_stops"

        def normalize_row(self, record: dict) -> dict | None:
            point = self.extract_point(record)
            ...
"""

from __future__ import annotations

import logging
import math
import re
import time
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from hawker_pulse.shared.config import Settings, get_config
from hawker_pulse.shared.geo.coords import (
    DEFAULT_EXTRACTORS,
    CoordinateExtractor,
    extract_coordinates,
    to_float,
)
from hawker_pulse.shared.geo.crs import detect_crs, to_wgs84

logger = logging.getLogger(__name__)

# Keys a normalize_row() result may carry for the stage counters; removed from the row
CRS_KEY = "_crs"
EXTRACTOR_KEY = "_extractor"

_DESCRIPTION_ROW = re.compile(r"<th>(.*?)</th>\s*<td>(.*?)</td>", re.IGNORECASE | re.DOTALL)


class InvalidRowError(Exception):
    """A source row is malformed and must be skipped."""

    def __init__(self, reason: str, sample: str | None = None):
        self.reason = reason
        self.sample = sample
        super().__init__(reason if sample is None else f"{reason}: {sample}")


def clean_str(value: Any) -> str | None:
    """Strip a raw field, mapping None/NaN/blank to None."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def to_int(value: Any) -> int | None:
    """Whole number from a numeric field ("12,340" -> 12340), else None."""
    number = to_float(value)
    if number is None:
        return None
    return math.floor(number)


def first_field(record: Mapping[str, Any], *names: str) -> str | None:
    """Value of the first listed field that is present and non-blank."""
    for name in names:
        value = clean_str(record.get(name))
        if value is not None:
            return value
    return None


def parse_description_table(description: str | None) -> dict[str, str]:
    """
    Key/value pairs from a KML-style "Description" HTML table.

    data.gov.sg GeoJSON exports converted from KML keep feature attributes as
    rows of the form <th>KEY</th> <td>VALUE</td>.
    """
    if not description:
        return {}
    return {key.strip(): value.strip() for key, value in _DESCRIPTION_ROW.findall(description)}


def attribute_lookup(record: Mapping[str, Any]) -> Callable[..., str | None]:
    """Field getter that falls back to the record's Description table."""
    table = parse_description_table(first_field(record, "Description", "description"))

    def lookup(*names: str) -> str | None:
        return first_field(record, *names) or first_field(table, *names)

    return lookup


@dataclass
class StageCounters:
    """Row counters for the normalize stage; one instance per worker."""

    processed: int = 0
    invalid: int = 0
    skipped: int = 0
    errors: int = 0
    crs: Counter = field(default_factory=Counter)
    extractors: Counter = field(default_factory=Counter)
    invalid_reasons: Counter = field(default_factory=Counter)
    invalid_samples: list[str] = field(default_factory=list)
    error_samples: list[str] = field(default_factory=list)

    def merge(self, other: StageCounters, sample_limit: int, error_sample_limit: int) -> None:
        """Fold another worker's counters into this one."""
        self.processed += other.processed
        self.invalid += other.invalid
        self.skipped += other.skipped
        self.errors += other.errors
        self.crs.update(other.crs)
        self.extractors.update(other.extractors)
        self.invalid_reasons.update(other.invalid_reasons)
        room = sample_limit - len(self.invalid_samples)
        self.invalid_samples.extend(other.invalid_samples[: max(room, 0)])
        room = error_sample_limit - len(self.error_samples)
        self.error_samples.extend(other.error_samples[: max(room, 0)])

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "invalid": self.invalid,
            "skipped": self.skipped,
            "errors": self.errors,
            "crs": dict(self.crs),
            "extractors": dict(self.extractors),
            "invalid_reasons": dict(self.invalid_reasons),
            "invalid_samples": list(self.invalid_samples),
            "error_samples": list(self.error_samples),
        }


@dataclass
class PreprocessingResult:
    """Result of a preprocessing operation."""

    dataset: str
    execution_date: str
    rows_input: int
    rows_output: int
    rows_invalid: int = 0
    rows_skipped: int = 0
    errors: int = 0
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None
    counters: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for snapshots/logging."""
        return {
            "dataset": self.dataset,
            "execution_date": self.execution_date,
            "rows_input": self.rows_input,
            "rows_output": self.rows_output,
            "rows_invalid": self.rows_invalid,
            "rows_skipped": self.rows_skipped,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
            "counters": self.counters,
        }


class BasePreprocessor(ABC):
    """
    Abstract base class for dataset preprocessing.

    Subclasses must implement:
    - get_dataset_name(): Return the dataset name
    - normalize_row(): Map one raw record to a canonical row
    """

    extractors: Sequence[CoordinateExtractor] = DEFAULT_EXTRACTORS

    def __init__(self, config: Settings | None = None):
        """
        Initialize the preprocessor.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config if config is not None else get_config()
        self.max_workers = max(1, self.config.ingestion.max_workers)
        self.sample_limit = self.config.ingestion.sample_limit
        self.error_sample_limit = self.config.ingestion.error_sample_limit

    @abstractmethod
    def get_dataset_name(self) -> str:
        """Get the dataset name."""
        pass

    @abstractmethod
    def normalize_row(self, record: dict[str, Any]) -> dict[str, Any] | None:
        """
        Normalize one raw record.

        Returns:
            Canonical row, or None for rows that are not data (headers, totals)

        Raises:
            InvalidRowError: If the row is malformed
        """
        pass

    def run(self, df: pd.DataFrame, execution_date: str) -> PreprocessingResult:
        """
        Run the normalize stage.

        Args:
            df: Raw DataFrame from the ingester
            execution_date: Execution date in YYYY-MM-DD format

        Returns:
            PreprocessingResult with details about the preprocessing
        """
        start_time = time.time()
        dataset_name = self.get_dataset_name()
        rows_input = len(df)

        logger.info(
            f"Starting preprocessing for {dataset_name}",
            extra={"dataset": dataset_name, "execution_date": execution_date, "rows_input": rows_input},
        )

        try:
            records = df.to_dict("records") if rows_input else []
            rows, counters = self.normalize_records(records)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Preprocessing failed for {dataset_name}: {e}",
                extra={"dataset": dataset_name, "error": str(e)},
                exc_info=True,
            )
            return PreprocessingResult(
                dataset=dataset_name,
                execution_date=execution_date,
                rows_input=rows_input,
                rows_output=0,
                duration_seconds=duration,
                success=False,
                error_message=str(e),
            )

        duration = time.time() - start_time
        result = PreprocessingResult(
            dataset=dataset_name,
            execution_date=execution_date,
            rows_input=rows_input,
            rows_output=len(rows),
            rows_invalid=counters.invalid,
            rows_skipped=counters.skipped,
            errors=counters.errors,
            duration_seconds=duration,
            success=True,
            counters=counters.to_dict(),
        )

        logger.info(
            f"Preprocessing complete for {dataset_name}: {rows_input} -> {len(rows)} rows "
            f"({counters.invalid} invalid, {counters.skipped} skipped, {counters.errors} errors)",
            extra=result.to_dict(),
        )

        self._records = rows
        return result

    def get_records(self) -> list[dict[str, Any]]:
        """Get the most recently normalized rows."""
        return list(getattr(self, "_records", []))

    def get_data(self) -> pd.DataFrame | None:
        """Get the most recently normalized rows as a DataFrame."""
        records = getattr(self, "_records", None)
        return None if records is None else pd.DataFrame(records)

    # =========================================================================
    # Row Fan-out
    # =========================================================================

    def normalize_records(
        self, records: Sequence[dict[str, Any]]
    ) -> tuple[list[dict[str, Any]], StageCounters]:
        """
        Normalize records across the worker pool.

        Records are split into contiguous chunks, one per worker; output keeps
        input order and counters are merged after all workers finish.
        """
        if not records:
            return [], StageCounters()

        workers = min(self.max_workers, len(records))
        size = math.ceil(len(records) / workers)
        chunks = [records[i : i + size] for i in range(0, len(records), size)]

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=self.get_dataset_name()) as pool:
            outputs = list(pool.map(self._normalize_chunk, chunks))

        rows: list[dict[str, Any]] = []
        counters = StageCounters()
        for chunk_rows, chunk_counters in outputs:
            rows.extend(chunk_rows)
            counters.merge(chunk_counters, self.sample_limit, self.error_sample_limit)
        return rows, counters

    def _normalize_chunk(
        self, chunk: Sequence[dict[str, Any]]
    ) -> tuple[list[dict[str, Any]], StageCounters]:
        counters = StageCounters()
        rows: list[dict[str, Any]] = []

        for record in chunk:
            try:
                row = self.normalize_row(record)
            except InvalidRowError as e:
                counters.invalid += 1
                counters.invalid_reasons[e.reason] += 1
                if e.sample and len(counters.invalid_samples) < self.sample_limit:
                    counters.invalid_samples.append(e.sample)
                continue
            except Exception as e:
                counters.errors += 1
                if len(counters.error_samples) < self.error_sample_limit:
                    counters.error_samples.append(f"{type(e).__name__}: {e}")
                logger.debug(f"Error normalizing {self.get_dataset_name()} row: {e}", exc_info=True)
                continue

            if row is None:
                counters.skipped += 1
                continue

            crs = row.pop(CRS_KEY, None)
            if crs is not None:
                counters.crs[str(crs)] += 1
            extractor = row.pop(EXTRACTOR_KEY, None)
            if extractor is not None:
                counters.extractors[extractor] += 1

            counters.processed += 1
            rows.append(row)

        return rows, counters

    # =========================================================================
    # Common Preprocessing Utilities
    # =========================================================================

    def extract_point(self, record: Mapping[str, Any], label: str | None = None) -> dict[str, Any]:
        """
        Extract WGS84 lon/lat from a record.

        Returns:
            Dict with lon, lat and the stage counter keys

        Raises:
            InvalidRowError: If no extractor finds usable coordinates
        """
        found = extract_coordinates(record, self.extractors)
        if found is None:
            raise InvalidRowError("missing_coordinates", label)

        coordinates, extractor_name = found
        crs = detect_crs(coordinates.x, coordinates.y)
        lon, lat = to_wgs84(coordinates.x, coordinates.y, crs)
        return {"lon": lon, "lat": lat, CRS_KEY: crs.value, EXTRACTOR_KEY: extractor_name}
