"""
Hawker Pulse - Subzone Dataset

URA Master Plan 2019 subzones: the canonical zone registry every other
dataset is matched or assigned against.

Components:
    - SubzoneIngester: Fetches the subzone GeoJSON
    - SubzonePreprocessor: Parses attributes and cleans boundaries
    - SubzonePipeline: Upserts zones and reloads the boundary cache
"""

from hawker_pulse.datasets.subzones.ingest import SubzoneIngester
from hawker_pulse.datasets.subzones.pipeline import SubzonePipeline
from hawker_pulse.datasets.subzones.preprocess import SubzonePreprocessor, map_region, normalize_boundary

__all__ = [
    "SubzoneIngester",
    "SubzonePipeline",
    "SubzonePreprocessor",
    "map_region",
    "normalize_boundary",
]
