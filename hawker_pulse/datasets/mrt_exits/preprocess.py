"""
Hawker Pulse - MRT Exit Preprocessor

Normalizes MRT/LRT exit records into point rows. Interchange stations carry
several station codes separated by "/" (e.g. "NS24/NE6/CC1"); the number of
codes is the exit's line count, used as its accessibility weight.
"""

from __future__ import annotations

from typing import Any

from hawker_pulse.datasets.base import BasePreprocessor, InvalidRowError, attribute_lookup
from hawker_pulse.shared.geo.ids import stable_id


def count_lines(station_code: str | None) -> int:
    """Number of lines served, from a "/"-separated station code list."""
    if not station_code:
        return 1
    return max(len([c for c in station_code.split("/") if c.strip()]), 1)


class MrtExitPreprocessor(BasePreprocessor):
    """Preprocessor for MRT exit points."""

    def get_dataset_name(self) -> str:
        return "mrt_exits"

    def normalize_row(self, record: dict[str, Any]) -> dict[str, Any] | None:
        attribute = attribute_lookup(record)

        name = attribute("STN_NAME", "stn_name", "STATION_NAME", "station_name", "NAME", "name")
        if not name:
            raise InvalidRowError("missing_name")

        station_code = attribute("STN_NO", "stn_no", "STATION_CODE", "station_code", "CODE", "code")
        exit_code = attribute("EXIT_CODE", "exit_code", "EXIT", "exit")
        point = self.extract_point(record, label=name)

        key = f"{name} {exit_code}" if exit_code else name
        return {
            "id": stable_id(key, point["lon"], point["lat"]),
            "name": name,
            "station_code": station_code,
            "exit_code": exit_code,
            "line_count": count_lines(station_code),
            **point,
        }
