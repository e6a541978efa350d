"""
Hawker Pulse - Repository

All reads and writes of the pipeline and scoring layers go through this class.
Every public method runs in its own transaction; objects are returned as plain
dicts so nothing outside this module holds a session.

Write rules:
- Zones and point features upsert by their stable ID, one record per transaction.
- Population batches are applied atomically and never move a zone to an older year.
- Unmatched records, ingestion snapshots and score snapshots are insert-only.
- Kernel configs cannot change once a score snapshot references them.

Usage:
    from hawker_pulse.storage import Repository

    repository = Repository.from_config()
    repository.upsert_zones([{"id": "TMSZ01", "name": "Tampines East", ...}])
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from hawker_pulse.shared.config import Settings, get_config
from hawker_pulse.shared.errors import KernelConfigLockedError
from hawker_pulse.storage.database import create_db_engine, get_session_factory, init_db
from hawker_pulse.storage.models import (
    POINT_MODELS,
    BusStop,
    HawkerCentre,
    IngestionSnapshot,
    KernelConfig,
    MrtExit,
    PopulationRecord,
    ScoreSnapshot,
    UnmatchedRecord,
    Zone,
    ZoneScore,
)

logger = logging.getLogger(__name__)

KERNEL_PARAMS = (
    "lambda_demand",
    "lambda_supply",
    "lambda_mrt",
    "lambda_bus",
    "beta_mrt",
    "beta_bus",
)


@dataclass
class UpsertStats:
    """Counts from a batch write."""

    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"inserted": self.inserted, "updated": self.updated, "skipped": self.skipped}


class Repository:
    """Transactional access to the Hawker Pulse tables."""

    def __init__(self, engine: Engine, session_factory: sessionmaker[Session] | None = None):
        self.engine = engine
        self._session_factory = session_factory or get_session_factory(engine)

    @classmethod
    def from_config(cls, config: Settings | None = None, create_schema: bool = True) -> Repository:
        """Build a repository on the configured database."""
        engine = create_db_engine(config or get_config())
        if create_schema:
            init_db(engine)
        return cls(engine)

    # =========================================================================
    # Zones
    # =========================================================================

    def upsert_zones(self, zones: Iterable[Mapping[str, Any]]) -> UpsertStats:
        """Insert or update zones by ID. Zones are never deleted."""
        stats = UpsertStats()
        for zone in zones:
            with self._session_factory.begin() as session:
                existing = session.get(Zone, zone["id"])
                if existing is None:
                    session.add(
                        Zone(
                            id=zone["id"],
                            name=zone["name"],
                            region=zone.get("region") or "UNKNOWN",
                            boundary=zone.get("boundary"),
                        )
                    )
                    stats.inserted += 1
                else:
                    existing.name = zone["name"]
                    existing.region = zone.get("region") or existing.region
                    if zone.get("boundary") is not None:
                        existing.boundary = zone["boundary"]
                    stats.updated += 1
        return stats

    def get_zone_names(self) -> dict[str, str]:
        """Mapping of zone ID -> display name."""
        with self._session_factory() as session:
            rows = session.execute(select(Zone.id, Zone.name).order_by(Zone.id)).all()
        return {zone_id: name for zone_id, name in rows}

    def iter_zone_boundaries(self) -> list[tuple[str, dict[str, Any] | None]]:
        """(zone ID, GeoJSON boundary) pairs in zone ID order."""
        with self._session_factory() as session:
            rows = session.execute(select(Zone.id, Zone.boundary).order_by(Zone.id)).all()
        return [(zone_id, boundary) for zone_id, boundary in rows]

    def list_zones(self) -> list[dict[str, Any]]:
        with self._session_factory() as session:
            return [z.to_dict() for z in session.scalars(select(Zone).order_by(Zone.id))]

    def get_zone(self, zone_id: str) -> dict[str, Any] | None:
        with self._session_factory() as session:
            zone = session.get(Zone, zone_id)
            return zone.to_dict() if zone else None

    # =========================================================================
    # Population
    # =========================================================================

    def apply_population_batch(self, rows: Iterable[Mapping[str, Any]]) -> UpsertStats:
        """
        Apply population rows atomically: all qualifying updates or none.

        A row replaces the current record only when its year is >= the stored
        year. Several rows for one zone collapse to the latest year (last row
        wins on ties).

        Args:
            rows: Dicts with zone_id, zone_name, year, total
        """
        latest: dict[str, Mapping[str, Any]] = {}
        for row in rows:
            current = latest.get(row["zone_id"])
            if current is None or int(row["year"]) >= int(current["year"]):
                latest[row["zone_id"]] = row

        stats = UpsertStats()
        with self._session_factory.begin() as session:
            for zone_id, row in latest.items():
                year, total = int(row["year"]), int(row["total"])
                if total < 0:
                    raise ValueError(f"Negative population total for {zone_id}: {total}")

                existing = session.get(PopulationRecord, zone_id)
                if existing is None:
                    session.add(
                        PopulationRecord(
                            zone_id=zone_id, zone_name=row["zone_name"], year=year, total=total
                        )
                    )
                    stats.inserted += 1
                elif year >= existing.year:
                    existing.zone_name = row["zone_name"]
                    existing.year = year
                    existing.total = total
                    stats.updated += 1
                else:
                    stats.skipped += 1

        logger.info(
            f"Population batch applied: {stats.inserted} inserted, {stats.updated} updated, "
            f"{stats.skipped} kept newer year",
            extra=stats.to_dict(),
        )
        return stats

    def list_population(self) -> list[dict[str, Any]]:
        with self._session_factory() as session:
            stmt = select(PopulationRecord).order_by(PopulationRecord.zone_id)
            return [p.to_dict() for p in session.scalars(stmt)]

    def population_totals(self) -> list[int]:
        """All current population totals, ascending."""
        with self._session_factory() as session:
            stmt = select(PopulationRecord.total).order_by(PopulationRecord.total)
            return [int(total) for total in session.scalars(stmt)]

    # =========================================================================
    # Point Features
    # =========================================================================

    def upsert_point(self, kind: str, record: Mapping[str, Any]) -> bool:
        """
        Insert or update one point feature in its own transaction.

        Returns:
            True if the row was inserted, False if it was updated
        """
        model = POINT_MODELS[kind]
        columns = {c.key for c in model.__table__.columns} - {"created_at", "updated_at"}
        values = {k: v for k, v in record.items() if k in columns}

        with self._session_factory.begin() as session:
            existing = session.get(model, values["id"])
            if existing is None:
                session.add(model(**values))
                return True
            for key, value in values.items():
                setattr(existing, key, value)
            return False

    def list_points(self, kind: str) -> list[dict[str, Any]]:
        model = POINT_MODELS[kind]
        with self._session_factory() as session:
            return [p.to_dict() for p in session.scalars(select(model).order_by(model.id))]

    def list_hawker_centres(self, status: str | None = "active") -> list[dict[str, Any]]:
        with self._session_factory() as session:
            stmt = select(HawkerCentre).order_by(HawkerCentre.id)
            if status is not None:
                stmt = stmt.where(HawkerCentre.status == status)
            return [h.to_dict() for h in session.scalars(stmt)]

    def list_mrt_exits(self) -> list[dict[str, Any]]:
        return self.list_points("mrt_exits")

    def list_bus_stops(self) -> list[dict[str, Any]]:
        return self.list_points("bus_stops")

    # =========================================================================
    # Audit
    # =========================================================================

    def add_unmatched(self, records: Iterable[Mapping[str, Any]]) -> int:
        """Append unmatched records. Returns the number written."""
        entries = [
            UnmatchedRecord(
                dataset=r["dataset"],
                source_key=r.get("source_key"),
                raw_name=r.get("raw_name"),
                normalized_name=r.get("normalized_name"),
                reason=r["reason"],
                details=r.get("details"),
            )
            for r in records
        ]
        if not entries:
            return 0
        with self._session_factory.begin() as session:
            session.add_all(entries)
        return len(entries)

    def list_unmatched(self, dataset: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        with self._session_factory() as session:
            stmt = select(UnmatchedRecord).order_by(UnmatchedRecord.id.desc()).limit(limit)
            if dataset is not None:
                stmt = stmt.where(UnmatchedRecord.dataset == dataset)
            return [u.to_dict() for u in session.scalars(stmt)]

    def record_snapshot(
        self,
        kind: str,
        source_url: str | None,
        started_at: datetime,
        finished_at: datetime,
        status: str,
        meta: Mapping[str, Any],
    ) -> int:
        """Write one ingestion snapshot. Returns its ID."""
        snapshot = IngestionSnapshot(
            kind=kind,
            source_url=source_url,
            started_at=started_at,
            finished_at=finished_at,
            status=status,
            meta=dict(meta),
        )
        with self._session_factory.begin() as session:
            session.add(snapshot)
            session.flush()
            return snapshot.id

    def list_snapshots(self, kind: str | None = None, limit: int = 30) -> list[dict[str, Any]]:
        """Ingestion snapshots, newest first."""
        with self._session_factory() as session:
            stmt = select(IngestionSnapshot).order_by(IngestionSnapshot.id.desc()).limit(limit)
            if kind is not None:
                stmt = stmt.where(IngestionSnapshot.kind == kind)
            return [s.to_dict() for s in session.scalars(stmt)]

    def get_snapshot(self, snapshot_id: int) -> dict[str, Any] | None:
        with self._session_factory() as session:
            snapshot = session.get(IngestionSnapshot, snapshot_id)
            return snapshot.to_dict() if snapshot else None

    # =========================================================================
    # Kernel Configs
    # =========================================================================

    def get_kernel_config(self, name: str) -> dict[str, Any] | None:
        with self._session_factory() as session:
            config = session.scalars(select(KernelConfig).where(KernelConfig.name == name)).first()
            return config.to_dict() if config else None

    def get_or_create_kernel_config(
        self, name: str, params: Mapping[str, float], notes: str | None = None
    ) -> dict[str, Any]:
        """Return the named kernel config, creating it from params if missing."""
        existing = self.get_kernel_config(name)
        if existing is not None:
            return existing

        config = KernelConfig(name=name, notes=notes, **{p: float(params[p]) for p in KERNEL_PARAMS})
        with self._session_factory.begin() as session:
            session.add(config)
        logger.info(f"Created kernel config {name!r}", extra={"kernel_config": name})
        return config.to_dict()

    def update_kernel_config(self, name: str, **params: float) -> dict[str, Any]:
        """
        Change parameters of an unused kernel config.

        Raises:
            KernelConfigLockedError: If any score snapshot references the config
        """
        unknown = set(params) - set(KERNEL_PARAMS) - {"notes"}
        if unknown:
            raise ValueError(f"Unknown kernel parameters: {sorted(unknown)}")

        with self._session_factory.begin() as session:
            config = session.scalars(select(KernelConfig).where(KernelConfig.name == name)).first()
            if config is None:
                raise KeyError(f"Kernel config not found: {name}")
            in_use = session.scalar(
                select(func.count(ScoreSnapshot.id)).where(ScoreSnapshot.kernel_config_id == config.id)
            )
            if in_use:
                raise KernelConfigLockedError(
                    f"Kernel config {name!r} is referenced by {in_use} score snapshot(s)"
                )
            for key, value in params.items():
                setattr(config, key, value)
            return config.to_dict()

    # =========================================================================
    # Score Snapshots
    # =========================================================================

    def create_score_snapshot(
        self,
        kernel_config_id: int,
        zone_scores: Iterable[Mapping[str, Any]],
        meta: Mapping[str, Any] | None = None,
        notes: str | None = None,
    ) -> int:
        """Write a score snapshot and all its zone scores in one transaction."""
        snapshot = ScoreSnapshot(kernel_config_id=kernel_config_id, notes=notes, meta=dict(meta or {}))
        snapshot.zone_scores = [ZoneScore(**dict(score)) for score in zone_scores]
        with self._session_factory.begin() as session:
            session.add(snapshot)
            session.flush()
            return snapshot.id

    def latest_score_snapshot(self) -> dict[str, Any] | None:
        with self._session_factory() as session:
            snapshot = session.scalars(
                select(ScoreSnapshot).order_by(ScoreSnapshot.id.desc()).limit(1)
            ).first()
            return snapshot.to_dict() if snapshot else None

    def list_score_snapshots(self, limit: int = 30) -> list[dict[str, Any]]:
        with self._session_factory() as session:
            stmt = select(ScoreSnapshot).order_by(ScoreSnapshot.id.desc()).limit(limit)
            return [s.to_dict() for s in session.scalars(stmt)]

    def get_zone_scores(self, snapshot_id: int) -> list[dict[str, Any]]:
        """Zone scores of a snapshot, best rank first."""
        with self._session_factory() as session:
            stmt = (
                select(ZoneScore)
                .where(ZoneScore.snapshot_id == snapshot_id)
                .order_by(ZoneScore.rank, ZoneScore.zone_id)
            )
            return [s.to_dict() for s in session.scalars(stmt)]

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def table_counts(self) -> dict[str, int]:
        """Row count of every table."""
        models = {
            "zones": Zone,
            "population": PopulationRecord,
            "hawker_centres": HawkerCentre,
            "mrt_exits": MrtExit,
            "bus_stops": BusStop,
            "unmatched_records": UnmatchedRecord,
            "ingestion_snapshots": IngestionSnapshot,
            "kernel_configs": KernelConfig,
            "score_snapshots": ScoreSnapshot,
            "zone_scores": ZoneScore,
        }
        with self._session_factory() as session:
            return {
                name: int(session.scalar(select(func.count()).select_from(model)) or 0)
                for name, model in models.items()
            }
