"""
Hawker Pulse - Hawker Centre Preprocessor

Normalizes NEA hawker centre records into point rows. Attributes are read from
plain properties or, for KML-derived GeoJSON, the Description table.

Capacity is the number of cooked food stalls (at least 1). Centres that are
closed or not yet built get a non-active status and are left out of supply
when scoring.
"""

from __future__ import annotations

from typing import Any

from hawker_pulse.datasets.base import BasePreprocessor, InvalidRowError, attribute_lookup
from hawker_pulse.datasets.base.preprocessor import to_int
from hawker_pulse.shared.geo.ids import stable_id

ACTIVE = "active"

_STATUS_KEYWORDS = (
    ("construction", "under_construction"),
    ("closed", "closed"),
    ("proposed", "planned"),
    ("planned", "planned"),
)


def map_status(raw_status: str | None) -> str:
    """Canonical status; anything not recognized as inactive is active."""
    if not raw_status:
        return ACTIVE
    lowered = raw_status.lower()
    for keyword, status in _STATUS_KEYWORDS:
        if keyword in lowered:
            return status
    return ACTIVE


class HawkerCentrePreprocessor(BasePreprocessor):
    """Preprocessor for hawker centre points."""

    def get_dataset_name(self) -> str:
        return "hawker_centres"

    def normalize_row(self, record: dict[str, Any]) -> dict[str, Any] | None:
        attribute = attribute_lookup(record)

        name = attribute("NAME", "name", "CENTRE_NAME", "centre_name", "HAWKER_CENTRE_NAME")
        if not name:
            raise InvalidRowError("missing_name")

        point = self.extract_point(record, label=name)
        capacity = to_int(attribute("NUMBER_OF_COOKED_FOOD_STALLS", "no_of_food_stalls"))

        return {
            "id": stable_id(name, point["lon"], point["lat"]),
            "name": name,
            "operator": attribute("OPERATOR", "operator"),
            "address": attribute("ADDRESS", "address", "ADDRESSSTREETNAME", "ADDRESS_STREETNAME"),
            "capacity": max(capacity or 1, 1),
            "status": map_status(attribute("STATUS", "status")),
            **point,
        }
