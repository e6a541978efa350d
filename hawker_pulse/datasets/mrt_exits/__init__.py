"""
Hawker Pulse - MRT Exit Dataset

LTA MRT/LRT station exits (accessibility).

Components:
    - MrtExitIngester: Fetches exit points
    - MrtExitPreprocessor: Station/exit codes, line count and coordinates
    - MrtExitPipeline: Dedupe per exit, zone assignment and upsert
"""

from hawker_pulse.datasets.mrt_exits.ingest import MrtExitIngester
from hawker_pulse.datasets.mrt_exits.pipeline import MrtExitPipeline
from hawker_pulse.datasets.mrt_exits.preprocess import MrtExitPreprocessor, count_lines

__all__ = [
    "MrtExitIngester",
    "MrtExitPipeline",
    "MrtExitPreprocessor",
    "count_lines",
]
