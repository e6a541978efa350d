"""
Hawker Pulse - Bus Stop Dataset

LTA bus stops (accessibility).

Components:
    - BusStopIngester: Paged LTA DataMall fetch
    - BusStopPreprocessor: Stop code, name, road and coordinates
    - BusStopPipeline: Dedupe by stop code, zone assignment and upsert
"""

from hawker_pulse.datasets.bus_stops.ingest import BusStopIngester
from hawker_pulse.datasets.bus_stops.pipeline import BusStopPipeline
from hawker_pulse.datasets.bus_stops.preprocess import BusStopPreprocessor

__all__ = [
    "BusStopIngester",
    "BusStopPipeline",
    "BusStopPreprocessor",
]
