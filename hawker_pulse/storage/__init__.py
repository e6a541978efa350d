"""
Hawker Pulse - Storage

Relational persistence for zones, ingested datasets, audit snapshots and
scores (SQLAlchemy).
"""

from hawker_pulse.storage.database import (
    create_db_engine,
    get_session_factory,
    init_db,
    is_single_connection,
)
from hawker_pulse.storage.models import DatasetKind, Region, SnapshotStatus
from hawker_pulse.storage.repository import Repository, UpsertStats

__all__ = [
    "DatasetKind",
    "Region",
    "Repository",
    "SnapshotStatus",
    "UpsertStats",
    "create_db_engine",
    "get_session_factory",
    "init_db",
    "is_single_connection",
]
