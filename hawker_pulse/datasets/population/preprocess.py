"""
Hawker Pulse - Population Preprocessor

Normalizes census rows into (name, year, total) rows ready for zone matching.

Census tables mix subzone rows with planning-area subtotals ("Bedok - Total")
and header rows ("Number", "Total"). Subtotal suffixes are stripped by name
normalization; rows that are only an aggregate label are skipped, and rows
without a usable total are invalid.
"""

from __future__ import annotations

from typing import Any

from hawker_pulse.datasets.base import BasePreprocessor, InvalidRowError
from hawker_pulse.datasets.base.preprocessor import first_field, to_int
from hawker_pulse.shared.geo.names import normalize_name

NAME_FIELDS = ("Subzone", "subzone", "SUBZONE_N", "name", "area", "location")
TOTAL_FIELDS = ("Total", "Total_Total", "total", "population", "count")
YEAR_FIELDS = ("year", "Year")


class PopulationPreprocessor(BasePreprocessor):
    """Preprocessor for census population rows."""

    def get_dataset_name(self) -> str:
        return "population"

    def normalize_row(self, record: dict[str, Any]) -> dict[str, Any] | None:
        raw_name = first_field(record, *NAME_FIELDS)
        normalized = normalize_name(raw_name)
        if normalized is None:
            return None

        total = to_int(first_field(record, *TOTAL_FIELDS))
        if total is None or total < 0:
            raise InvalidRowError("invalid_total", raw_name)

        year = to_int(first_field(record, *YEAR_FIELDS)) or self.config.ingestion.default_population_year

        return {
            "source_key": first_field(record, "id", "code") or raw_name,
            "raw_name": raw_name,
            "normalized_name": normalized,
            "year": year,
            "total": total,
        }
