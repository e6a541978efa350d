"""
Hawker Pulse - Database Models

SQLAlchemy 2.0 declarative models for the zone registry, ingested datasets,
audit snapshots and score snapshots. Geometry is stored as GeoJSON (JSON
column) so the schema runs unchanged on SQLite and PostgreSQL.

Tables:
    zones, population, hawker_centres, mrt_exits, bus_stops,
    unmatched_records, ingestion_snapshots, kernel_configs,
    score_snapshots, zone_scores
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(UTC)


class Region(StrEnum):
    """URA planning regions."""

    CENTRAL = "CENTRAL"
    EAST = "EAST"
    NORTH = "NORTH"
    NORTH_EAST = "NORTH_EAST"
    WEST = "WEST"
    UNKNOWN = "UNKNOWN"


class SnapshotStatus(StrEnum):
    """Outcome of an ingestion run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class DatasetKind(StrEnum):
    """Dataset kinds handled by the ingestion pipelines."""

    SUBZONES = "subzones"
    POPULATION = "population"
    HAWKER_CENTRES = "hawker_centres"
    MRT_EXITS = "mrt_exits"
    BUS_STOPS = "bus_stops"


class Base(DeclarativeBase):
    """Declarative base with a plain-dict export."""

    def to_dict(self) -> dict[str, Any]:
        return {column.key: getattr(self, column.key) for column in self.__table__.columns}


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


# =============================================================================
# Zone Registry
# =============================================================================


class Zone(TimestampMixin, Base):
    """Canonical administrative zone (URA subzone)."""

    __tablename__ = "zones"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    region: Mapped[str] = mapped_column(String(16), nullable=False, default=Region.UNKNOWN.value)
    boundary: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("ix_zones_name", "name"),)


class PopulationRecord(Base):
    """Current population total for a zone; only moves forward in year."""

    __tablename__ = "population"

    zone_id: Mapped[str] = mapped_column(ForeignKey("zones.id"), primary_key=True)
    zone_name: Mapped[str] = mapped_column(String(200), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (CheckConstraint("total >= 0", name="ck_population_total_non_negative"),)


# =============================================================================
# Point Features
# =============================================================================


class PointFeatureMixin(TimestampMixin):
    """Columns shared by all point datasets."""

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    zone_id: Mapped[str | None] = mapped_column(ForeignKey("zones.id"), nullable=True, index=True)


class HawkerCentre(PointFeatureMixin, Base):
    """NEA hawker centre (supply)."""

    __tablename__ = "hawker_centres"

    operator: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")


class MrtExit(PointFeatureMixin, Base):
    """MRT/LRT station exit (accessibility)."""

    __tablename__ = "mrt_exits"

    station_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    exit_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    line_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class BusStop(PointFeatureMixin, Base):
    """LTA bus stop (accessibility)."""

    __tablename__ = "bus_stops"

    stop_code: Mapped[str] = mapped_column(String(16), nullable=False)
    road_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    freq_weight: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)


POINT_MODELS: dict[str, type[PointFeatureMixin]] = {
    DatasetKind.HAWKER_CENTRES.value: HawkerCentre,
    DatasetKind.MRT_EXITS.value: MrtExit,
    DatasetKind.BUS_STOPS.value: BusStop,
}


# =============================================================================
# Audit
# =============================================================================


class UnmatchedRecord(Base):
    """Source row that could not be normalized or matched. Insert-only."""

    __tablename__ = "unmatched_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    dataset: Mapped[str] = mapped_column(String(32), nullable=False)
    source_key: Mapped[str | None] = mapped_column(String(200), nullable=True)
    raw_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    normalized_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_unmatched_dataset", "dataset"),)


class IngestionSnapshot(Base):
    """One write-once record per ingestion run."""

    __tablename__ = "ingestion_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    source_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (Index("ix_ingestion_snapshots_kind", "kind", "id"),)


# =============================================================================
# Scoring
# =============================================================================


class KernelConfig(Base):
    """Named scoring parameters. Locked once a score snapshot references it."""

    __tablename__ = "kernel_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    kernel_type: Mapped[str] = mapped_column(String(16), nullable=False, default="gaussian")
    lambda_demand: Mapped[float] = mapped_column(Float, nullable=False)
    lambda_supply: Mapped[float] = mapped_column(Float, nullable=False)
    lambda_mrt: Mapped[float] = mapped_column(Float, nullable=False)
    lambda_bus: Mapped[float] = mapped_column(Float, nullable=False)
    beta_mrt: Mapped[float] = mapped_column(Float, nullable=False)
    beta_bus: Mapped[float] = mapped_column(Float, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (UniqueConstraint("name", name="uq_kernel_configs_name"),)


class ScoreSnapshot(Base):
    """One immutable scoring run."""

    __tablename__ = "score_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kernel_config_id: Mapped[int] = mapped_column(ForeignKey("kernel_configs.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    zone_scores: Mapped[list[ZoneScore]] = relationship(
        back_populates="snapshot", cascade="all, delete-orphan"
    )


class ZoneScore(Base):
    """Per-zone components, composite score and rank within a snapshot."""

    __tablename__ = "zone_scores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(ForeignKey("score_snapshots.id"), nullable=False)
    zone_id: Mapped[str] = mapped_column(ForeignKey("zones.id"), nullable=False)
    raw_demand: Mapped[float] = mapped_column(Float, nullable=False)
    raw_supply: Mapped[float] = mapped_column(Float, nullable=False)
    raw_access: Mapped[float] = mapped_column(Float, nullable=False)
    z_demand: Mapped[float] = mapped_column(Float, nullable=False)
    z_supply: Mapped[float] = mapped_column(Float, nullable=False)
    z_access: Mapped[float] = mapped_column(Float, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    w_demand: Mapped[float] = mapped_column(Float, nullable=False)
    w_supply: Mapped[float] = mapped_column(Float, nullable=False)
    w_access: Mapped[float] = mapped_column(Float, nullable=False)
    percentile: Mapped[float] = mapped_column(Float, nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)

    snapshot: Mapped[ScoreSnapshot] = relationship(back_populates="zone_scores")

    __table_args__ = (
        UniqueConstraint("snapshot_id", "zone_id", name="uq_zone_scores_snapshot_zone"),
        Index("ix_zone_scores_snapshot", "snapshot_id"),
    )
