"""
Hawker Pulse - Configuration Loader

Pydantic-based configuration management with:
- Environment-based configuration (dev/prod)
- YAML file loading with inheritance
- Environment variable overrides for secrets and source URLs
- Type validation via Pydantic

Usage:
    from hawker_pulse.shared.config import get_config

    config = get_config()  # Uses HP_ENVIRONMENT env var
    config = get_config("dev")  # Explicit environment

    # Access config values
    url = config.database.url
    radius = config.ingestion.dedupe_radius_m
    source = get_source_config("bus_stops", config)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# Configuration Models
# =============================================================================


class ProjectConfig(BaseModel):
    """Project metadata configuration."""

    name: str = "hawker-pulse"
    version: str = "0.1.0"
    description: str = "Hawker centre opportunity scoring for Singapore subzones"


class DatabaseConfig(BaseModel):
    """Relational store configuration (any SQLAlchemy URL)."""

    url: str = "sqlite:///data/hawker_pulse.db"
    echo: bool = False


class StorageConfig(BaseModel):
    """Local file layout."""

    data_dir: str = "data"
    aliases_file: str = "aliases.yaml"


class SourceConfig(BaseModel):
    """Where one dataset kind is fetched from."""

    url: str | None = None
    local_paths: list[str] = Field(default_factory=list)
    timeout_seconds: int = 60
    headers: dict[str, str] = Field(default_factory=dict)
    page_size: int | None = None


class SourcesConfig(BaseModel):
    """Per-dataset source configuration."""

    subzones: SourceConfig = Field(
        default_factory=lambda: SourceConfig(local_paths=["ura_subzones_2019.geojson"])
    )
    population: SourceConfig = Field(
        default_factory=lambda: SourceConfig(
            local_paths=["census_2020_population.csv", "census_2020_population.json"]
        )
    )
    hawker_centres: SourceConfig = Field(
        default_factory=lambda: SourceConfig(
            local_paths=["nea_hawker_centres.geojson", "nea_hawker_centres.csv"]
        )
    )
    mrt_exits: SourceConfig = Field(
        default_factory=lambda: SourceConfig(local_paths=["mrt_station_exits.geojson"])
    )
    bus_stops: SourceConfig = Field(
        default_factory=lambda: SourceConfig(local_paths=["lta_bus_stops.json"], page_size=500)
    )


class IngestionConfig(BaseModel):
    """Ingestion pipeline tuning."""

    max_workers: int = 4
    dedupe_radius_m: float = 30.0
    boundary_buffer_m: float = 5.0
    match_rate_threshold: float = 0.5
    sample_limit: int = 20
    error_sample_limit: int = 10
    default_population_year: int = 2020


class GeoBoundsConfig(BaseModel):
    """Geographic bounds for Singapore (WGS84)."""

    min_lat: float = 1.1
    max_lat: float = 1.5
    min_lon: float = 103.5
    max_lon: float = 104.1


class KernelDefaultsConfig(BaseModel):
    """Parameters of the default kernel configuration."""

    name: str = "default"
    lambda_demand: float = 1000.0
    lambda_supply: float = 800.0
    lambda_mrt: float = 1200.0
    lambda_bus: float = 600.0
    beta_mrt: float = 1.2
    beta_bus: float = 0.8


class ScoringConfig(BaseModel):
    """Opportunity scoring configuration."""

    zero_mad_policy: Literal["zero_fill", "abort"] = "zero_fill"
    mad_scale: float = 1.4826
    competition_population: float = 10000.0
    competition_floor: float = 0.1
    kernel: KernelDefaultsConfig = Field(default_factory=KernelDefaultsConfig)


class StatsConfig(BaseModel):
    """Quantile / choropleth configuration."""

    cache_ttl_seconds: int = 300
    min_k: int = 2
    max_k: int = 10
    default_k: int = 5


class AlertRoutingConfig(BaseModel):
    """Alert routing configuration."""

    info: list[str] = Field(default_factory=lambda: ["log"])
    warning: list[str] = Field(default_factory=lambda: ["log", "slack"])
    critical: list[str] = Field(default_factory=lambda: ["log", "slack"])


class RateLimitConfig(BaseModel):
    """Rate limit configuration."""

    max_alerts_per_hour: int = 10
    cooldown_minutes: int = 15


class AlertingConfig(BaseModel):
    """Alerting configuration."""

    enabled: bool = True
    routing: AlertRoutingConfig = Field(default_factory=AlertRoutingConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "text"] = "text"


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main configuration class for Hawker Pulse.

    Loads configuration from:
    1. YAML files in configs/environments/
    2. Environment variables (for secrets and overrides)

    Environment variables take precedence over YAML values.
    """

    model_config = SettingsConfigDict(
        env_prefix="HP_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "prod"] = "dev"

    # Configuration sections
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    geo_bounds: GeoBoundsConfig = Field(default_factory=GeoBoundsConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    stats: StatsConfig = Field(default_factory=StatsConfig)
    alerting: AlertingConfig = Field(default_factory=AlertingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Secrets (from environment variables only)
    slack_webhook_url: str | None = Field(default=None, alias="SLACK_WEBHOOK_URL")
    lta_account_key: str | None = Field(default=None, alias="LTA_ACCOUNT_KEY")

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        valid_envs = {"dev", "prod"}
        if v not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {valid_envs}")
        return v


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _get_config_dir() -> Path:
    """Get the configuration directory path."""
    # Repository checkout
    config_dir = Path(__file__).parent.parent.parent / "configs"
    if config_dir.exists():
        return config_dir

    config_dir = Path.cwd() / "configs"
    if config_dir.exists():
        return config_dir

    raise FileNotFoundError(
        "Could not find configs directory. Ensure you're running from the project root."
    )


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents."""
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_config_for_environment(environment: str) -> dict[str, Any]:
    """Load and merge configuration for a specific environment."""
    env_dir = _get_config_dir() / "environments"

    base_config = _load_yaml_file(env_dir / "base.yaml")
    env_config = _load_yaml_file(env_dir / f"{environment}.yaml")
    env_config.pop("_inherit", None)

    merged = _deep_merge(base_config, env_config)
    merged["environment"] = environment

    return merged


@lru_cache(maxsize=4)
def get_config(environment: str | None = None) -> Settings:
    """
    Get configuration for the specified environment.

    Args:
        environment: Environment name (dev, prod).
                    If None, uses HP_ENVIRONMENT env var, defaulting to "dev".

    Returns:
        Settings: Validated configuration object.
    """
    if environment is None:
        environment = os.getenv("HP_ENVIRONMENT", "dev")

    yaml_config = _load_config_for_environment(environment)

    # Create Settings object (also loads env vars)
    return Settings(**yaml_config)


def reload_config(environment: str | None = None) -> Settings:
    """
    Reload configuration, clearing the cache.

    Useful for testing or when config files have changed.
    """
    get_config.cache_clear()
    return get_config(environment)


# =============================================================================
# Convenience Functions
# =============================================================================


def get_source_config(dataset: str, config: Settings | None = None) -> SourceConfig:
    """
    Get the source configuration for a dataset kind.

    The LTA AccountKey secret is injected as a request header for bus stops
    when it is set.
    """
    if config is None:
        config = get_config()

    source: SourceConfig | None = getattr(config.sources, dataset, None)
    if source is None:
        raise KeyError(f"No source configured for dataset: {dataset}")

    if dataset == "bus_stops" and config.lta_account_key and "AccountKey" not in source.headers:
        source = source.model_copy(
            update={"headers": {**source.headers, "AccountKey": config.lta_account_key}}
        )
    return source


def resolve_data_path(path: str, config: Settings | None = None) -> Path:
    """Resolve a data file path against the configured data directory."""
    if config is None:
        config = get_config()

    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return Path(config.storage.data_dir) / candidate


def get_aliases_path(config: Settings | None = None) -> Path:
    """Get the path of the versioned zone alias file."""
    if config is None:
        config = get_config()

    aliases = Path(config.storage.aliases_file)
    if aliases.is_absolute():
        return aliases
    return _get_config_dir() / aliases
