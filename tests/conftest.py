"""
Hawker Pulse - Pytest Configuration and Fixtures

Shared fixtures for all tests:
- Configuration fixtures (dev config with a temporary data directory)
- In-memory SQLite repository, empty and seeded with sample zones
- Builders for GeoJSON boundaries, point features and local source files
"""

import json
import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

# Set test environment
os.environ["HP_ENVIRONMENT"] = "dev"

# Four 0.01-degree squares (about 1.1 km) in a 2x2 grid near the city centre
ZONE_ORIGINS = {
    "ZA": ("Alpha Park", 103.80, 1.30),
    "ZB": ("Bravo Heights", 103.81, 1.30),
    "ZC": ("Charlie Grove", 103.80, 1.31),
    "ZD": ("Delta Vale", 103.81, 1.31),
}
ZONE_SIZE = 0.01


# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def configs_dir(project_root: Path) -> Path:
    """Get the configs directory."""
    return project_root / "configs"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def test_config(tmp_path: Path) -> Any:
    """Fresh dev configuration reading local sources from a temporary directory."""
    from hawker_pulse.shared.config import reload_config

    config = reload_config("dev")
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    config.storage.data_dir = str(data_dir)
    config.database.url = "sqlite://"
    config.ingestion.max_workers = 2
    return config


@pytest.fixture
def data_dir(test_config: Any) -> Path:
    """Directory the ingesters read local fallback files from."""
    return Path(test_config.storage.data_dir)


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def repository(test_config: Any) -> Any:
    """Repository on a fresh in-memory SQLite database."""
    from hawker_pulse.storage.database import create_db_engine, init_db
    from hawker_pulse.storage.repository import Repository

    engine = create_db_engine(test_config, url="sqlite://")
    init_db(engine)
    yield Repository(engine)
    engine.dispose()


@pytest.fixture
def sample_zones(make_square: Callable[..., dict[str, Any]]) -> list[dict[str, Any]]:
    """Zone rows for the 2x2 sample grid."""
    return [
        {"id": zone_id, "name": name, "region": "CENTRAL", "boundary": make_square(lon, lat)}
        for zone_id, (name, lon, lat) in ZONE_ORIGINS.items()
    ]


@pytest.fixture
def seeded_repository(repository: Any, sample_zones: list[dict[str, Any]]) -> Any:
    """Repository with the sample zones registered."""
    repository.upsert_zones(sample_zones)
    return repository


@pytest.fixture
def empty_aliases() -> Any:
    """Alias table with no entries."""
    from hawker_pulse.shared.geo.names import AliasTable

    return AliasTable({})


# =============================================================================
# GeoJSON and Source File Builders
# =============================================================================


@pytest.fixture
def make_square() -> Callable[..., dict[str, Any]]:
    """Build a closed square GeoJSON Polygon from its south-west corner."""

    def _make(min_lon: float, min_lat: float, size: float = ZONE_SIZE) -> dict[str, Any]:
        # Rounded so shared edges of neighbouring squares are bit-identical
        max_lon = round(min_lon + size, 6)
        max_lat = round(min_lat + size, 6)
        return {
            "type": "Polygon",
            "coordinates": [
                [
                    [min_lon, min_lat],
                    [max_lon, min_lat],
                    [max_lon, max_lat],
                    [min_lon, max_lat],
                    [min_lon, min_lat],
                ]
            ],
        }

    return _make


@pytest.fixture
def point_feature() -> Callable[..., dict[str, Any]]:
    """Build a GeoJSON Point feature."""

    def _make(lon: float, lat: float, **properties: Any) -> dict[str, Any]:
        return {
            "type": "Feature",
            "properties": properties,
            "geometry": {"type": "Point", "coordinates": [lon, lat]},
        }

    return _make


@pytest.fixture
def write_data_file(data_dir: Path) -> Callable[[str, Any], Path]:
    """Write a local source file (JSON payload or raw text) into the data directory."""

    def _write(name: str, payload: Any) -> Path:
        path = data_dir / name
        text = payload if isinstance(payload, str) else json.dumps(payload)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


# =============================================================================
# Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def cleanup_env() -> Generator[None, None, None]:
    """Restore environment variables and drop cached configs after each test."""
    from hawker_pulse.shared.config import get_config

    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)
    get_config.cache_clear()
