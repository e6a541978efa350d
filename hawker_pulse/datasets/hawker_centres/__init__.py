"""
Hawker Pulse - Hawker Centre Dataset

NEA hawker centres (supply).

Components:
    - HawkerCentreIngester: Fetches hawker centre points
    - HawkerCentrePreprocessor: Names, capacity, status and coordinates
    - HawkerCentrePipeline: Dedupe, zone assignment and upsert
"""

from hawker_pulse.datasets.hawker_centres.ingest import HawkerCentreIngester
from hawker_pulse.datasets.hawker_centres.pipeline import HawkerCentrePipeline
from hawker_pulse.datasets.hawker_centres.preprocess import HawkerCentrePreprocessor, map_status

__all__ = [
    "HawkerCentreIngester",
    "HawkerCentrePipeline",
    "HawkerCentrePreprocessor",
    "map_status",
]
