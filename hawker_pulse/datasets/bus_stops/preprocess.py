"""
Hawker Pulse - Bus Stop Preprocessor

Normalizes LTA bus stop records into point rows keyed by the five-digit bus
stop code. Stops without a description are named by their code.
"""

from __future__ import annotations

from typing import Any

from hawker_pulse.datasets.base import BasePreprocessor, InvalidRowError, first_field
from hawker_pulse.shared.geo.ids import stable_id

DEFAULT_FREQ_WEIGHT = 1.0


class BusStopPreprocessor(BasePreprocessor):
    """Preprocessor for bus stop points."""

    def get_dataset_name(self) -> str:
        return "bus_stops"

    def normalize_row(self, record: dict[str, Any]) -> dict[str, Any] | None:
        stop_code = first_field(record, "BusStopCode", "bus_stop_code", "BUSSTOP_CODE", "CODE", "code")
        if not stop_code:
            raise InvalidRowError("missing_stop_code", first_field(record, "Description", "NAME"))

        point = self.extract_point(record, label=stop_code)
        name = first_field(record, "Description", "description", "NAME", "name") or stop_code

        return {
            "id": stable_id(stop_code, point["lon"], point["lat"]),
            "name": name,
            "stop_code": stop_code,
            "road_name": first_field(record, "RoadName", "road_name", "ROAD_NAME"),
            "freq_weight": DEFAULT_FREQ_WEIGHT,
            **point,
        }
