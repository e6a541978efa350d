from hawker_pulse.shared.config import Settings, get_config
from hawker_pulse.shared.errors import (
    HawkerPulseError,
    InvalidBucketCountError,
    KernelConfigLockedError,
    PayloadFormatError,
    ScoringError,
    SourceUnavailableError,
)

__all__ = [
    "get_config",
    "Settings",
    "HawkerPulseError",
    "InvalidBucketCountError",
    "KernelConfigLockedError",
    "PayloadFormatError",
    "ScoringError",
    "SourceUnavailableError",
]
