"""
Hawker Pulse - Base Classes for Datasets

Abstract base classes that all dataset pipelines build on:
- Fetching raw records (BaseIngester)
- Normalizing rows (BasePreprocessor)
- Running the stages and recording the snapshot (BasePipeline)

Usage:
    from hawker_pulse.datasets.base import BaseIngester, BasePreprocessor, PointFeaturePipeline

    class MrtExitIngester(BaseIngester):
        def get_dataset_name(self) -> str:
            return "mrt_exits"
"""

from hawker_pulse.datasets.base.ingester import BaseIngester, IngestionResult, unwrap_payload
from hawker_pulse.datasets.base.pipeline import (
    BasePipeline,
    PipelineResult,
    PointFeaturePipeline,
    ProcessOutcome,
    derive_status,
)
from hawker_pulse.datasets.base.preprocessor import (
    BasePreprocessor,
    InvalidRowError,
    PreprocessingResult,
    StageCounters,
    attribute_lookup,
    first_field,
    parse_description_table,
)

__all__ = [
    "BaseIngester",
    "BasePipeline",
    "BasePreprocessor",
    "IngestionResult",
    "InvalidRowError",
    "PipelineResult",
    "PointFeaturePipeline",
    "PreprocessingResult",
    "ProcessOutcome",
    "StageCounters",
    "attribute_lookup",
    "derive_status",
    "first_field",
    "parse_description_table",
    "unwrap_payload",
]
