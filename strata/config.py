"""
Configuration for Strata.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)

The confidence constants are product tuning, not invariants: every one of
them can be overridden here.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator


class ExtractionConfig(BaseModel):
    """Claim extraction weights."""

    base_confidence: float = Field(default=0.35, ge=0.0, le=1.0)
    per_signal_weight: float = Field(default=0.12, gt=0.0, le=1.0)
    # MIN_SIGNAL_WEIGHT: claims below this are kept but flagged emerging
    emerging_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    max_confidence: float = Field(default=1.0, gt=0.0, le=1.0)


class RecalibrationConfig(BaseModel):
    """Resonance feedback and cascade configuration."""

    # A single vote never moves more than 15% of the remaining headroom
    fits_rate: float = Field(default=0.08, gt=0.0, le=0.15)
    doesnt_fit_rate: float = Field(default=0.15, gt=0.0, le=0.15)
    drift_threshold: float = Field(default=0.25, gt=0.0)
    retirement_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    material_change_threshold: float = Field(default=0.05, ge=0.0, le=1.0)
    max_conflict_retries: int = Field(default=1, ge=0)


class CompatibilityConfig(BaseModel):
    """Relational comparator configuration."""

    freshness_days: int = Field(default=7, ge=0)
    max_workers: int = Field(default=8, ge=1)
    team_cache_ttl_seconds: int = Field(default=300, ge=0)
    min_team_members: int = Field(default=2, ge=2)


class StoreConfig(BaseModel):
    """Profile store backend configuration."""

    backend: str = "memory"  # memory, sqlite
    sqlite_path: str = "data/strata.db"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    recalibration: RecalibrationConfig = Field(default_factory=RecalibrationConfig)
    compatibility: CompatibilityConfig = Field(default_factory=CompatibilityConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Config":
        if self.recalibration.retirement_threshold > self.extraction.emerging_threshold:
            raise ValueError("retirement_threshold must not exceed emerging_threshold")
        return self

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            STRATA_BASE_CONFIDENCE: Extraction base confidence
            STRATA_PER_SIGNAL_WEIGHT: Confidence added per supporting signal
            STRATA_EMERGING_THRESHOLD: Emerging claim threshold
            STRATA_FITS_RATE: Headroom share added by a "fits" vote
            STRATA_DOESNT_FIT_RATE: Confidence share removed by a "doesnt_fit" vote
            STRATA_DRIFT_THRESHOLD: Cumulative drift that triggers a cascade
            STRATA_RETIREMENT_THRESHOLD: Confidence under which claims retire
            STRATA_FRESHNESS_DAYS: Compatibility cache freshness window
            STRATA_MAX_WORKERS: Team matrix worker pool size
            STRATA_STORE_BACKEND: Store backend (memory, sqlite)
            STRATA_SQLITE_PATH: SQLite database file
            STRATA_LOG_LEVEL: Log level
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None:
                return default
            if value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            extraction=ExtractionConfig(
                base_confidence=get_env("STRATA_BASE_CONFIDENCE", 0.35),
                per_signal_weight=get_env("STRATA_PER_SIGNAL_WEIGHT", 0.12),
                emerging_threshold=get_env("STRATA_EMERGING_THRESHOLD", 0.5),
                max_confidence=get_env("STRATA_MAX_CONFIDENCE", 1.0),
            ),
            recalibration=RecalibrationConfig(
                fits_rate=get_env("STRATA_FITS_RATE", 0.08),
                doesnt_fit_rate=get_env("STRATA_DOESNT_FIT_RATE", 0.15),
                drift_threshold=get_env("STRATA_DRIFT_THRESHOLD", 0.25),
                retirement_threshold=get_env("STRATA_RETIREMENT_THRESHOLD", 0.2),
                material_change_threshold=get_env("STRATA_MATERIAL_CHANGE_THRESHOLD", 0.05),
                max_conflict_retries=get_env("STRATA_MAX_CONFLICT_RETRIES", 1),
            ),
            compatibility=CompatibilityConfig(
                freshness_days=get_env("STRATA_FRESHNESS_DAYS", 7),
                max_workers=get_env("STRATA_MAX_WORKERS", 8),
                team_cache_ttl_seconds=get_env("STRATA_TEAM_CACHE_TTL_SECONDS", 300),
                min_team_members=get_env("STRATA_MIN_TEAM_MEMBERS", 2),
            ),
            store=StoreConfig(
                backend=get_env("STRATA_STORE_BACKEND", "memory"),
                sqlite_path=get_env("STRATA_SQLITE_PATH", "data/strata.db"),
            ),
            logging=LoggingConfig(
                level=get_env("STRATA_LOG_LEVEL", "INFO"),
                log_to_file=get_env("STRATA_LOG_TO_FILE", False),
                log_dir=get_env("STRATA_LOG_DIR", "logs"),
                file_rotation=get_env("STRATA_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("STRATA_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("STRATA_LOG_COMPRESSION", "zip"),
                serialize=get_env("STRATA_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)

        final_dict = {**config_dict}

        # Env sections that differ from defaults win over YAML
        default = cls()
        for section in ("extraction", "recalibration", "compatibility", "store", "logging"):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
