"""
Tests for configuration management.

Tests config loading from:
1. Environment variables
2. YAML files
3. Combined (env overrides YAML)
"""

import pytest
import yaml

from strata.config import Config, ExtractionConfig, RecalibrationConfig
from strata.core.profile_store import InMemoryProfileStore, ProfileStoreFactory, SQLiteProfileStore
from strata.utils.exceptions import ConfigurationError

ENV_KEYS = [
    "STRATA_BASE_CONFIDENCE",
    "STRATA_PER_SIGNAL_WEIGHT",
    "STRATA_DRIFT_THRESHOLD",
    "STRATA_FRESHNESS_DAYS",
    "STRATA_STORE_BACKEND",
    "STRATA_SQLITE_PATH",
    "STRATA_LOG_LEVEL",
    "STRATA_LOG_TO_FILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the caller's environment and any local .env."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class TestConfigDefaults:
    """Test default configuration values."""

    def test_default_config_creation(self):
        config = Config()

        assert config.extraction.base_confidence == 0.35
        assert config.extraction.per_signal_weight == 0.12
        assert config.extraction.emerging_threshold == 0.5

        assert config.recalibration.fits_rate == 0.08
        assert config.recalibration.doesnt_fit_rate == 0.15
        assert config.recalibration.drift_threshold == 0.25
        assert config.recalibration.retirement_threshold == 0.2
        assert config.recalibration.max_conflict_retries == 1

        assert config.compatibility.freshness_days == 7
        assert config.store.backend == "memory"
        assert config.logging.level == "INFO"

    def test_rates_capped(self):
        """Test a single vote cannot move more than 15% of headroom."""
        with pytest.raises(ValueError):
            RecalibrationConfig(fits_rate=0.3)

    def test_retirement_below_emerging(self):
        with pytest.raises(ValueError):
            Config(
                extraction=ExtractionConfig(emerging_threshold=0.3),
                recalibration=RecalibrationConfig(retirement_threshold=0.4),
            )


class TestConfigFromEnv:
    """Test loading from environment variables."""

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("STRATA_BASE_CONFIDENCE", "0.4")
        monkeypatch.setenv("STRATA_DRIFT_THRESHOLD", "0.3")
        monkeypatch.setenv("STRATA_FRESHNESS_DAYS", "3")
        monkeypatch.setenv("STRATA_STORE_BACKEND", "sqlite")
        monkeypatch.setenv("STRATA_LOG_TO_FILE", "yes")

        config = Config.from_env()

        assert config.extraction.base_confidence == 0.4
        assert config.recalibration.drift_threshold == 0.3
        assert config.compatibility.freshness_days == 3
        assert config.store.backend == "sqlite"
        assert config.logging.log_to_file is True

    def test_empty_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("STRATA_PER_SIGNAL_WEIGHT", "")
        assert Config.from_env().extraction.per_signal_weight == 0.12

    def test_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env.test"
        env_file.write_text("STRATA_LOG_LEVEL=DEBUG\n")
        # load_dotenv writes into os.environ; register the key so teardown removes it
        monkeypatch.setenv("STRATA_LOG_LEVEL", "unset")
        monkeypatch.delenv("STRATA_LOG_LEVEL")

        config = Config.from_env(env_file=env_file)
        assert config.logging.level == "DEBUG"


class TestConfigFromYaml:
    """Test loading from YAML files."""

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "strata.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "extraction": {"per_signal_weight": 0.1},
                    "compatibility": {"max_workers": 2},
                }
            )
        )

        config = Config.from_yaml(path)

        assert config.extraction.per_signal_weight == 0.1
        assert config.compatibility.max_workers == 2
        assert config.recalibration.drift_threshold == 0.25

    def test_missing_yaml(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "missing.yaml")

    def test_env_wins_over_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "strata.yaml"
        path.write_text(yaml.safe_dump({"store": {"backend": "sqlite", "sqlite_path": "a.db"}}))
        monkeypatch.setenv("STRATA_DRIFT_THRESHOLD", "0.4")

        config = Config.from_env_or_yaml(yaml_path=path)

        assert config.store.backend == "sqlite"
        assert config.recalibration.drift_threshold == 0.4


class TestProfileStoreFactory:
    def test_memory_backend(self):
        assert isinstance(ProfileStoreFactory.create(Config()), InMemoryProfileStore)

    def test_sqlite_backend(self, tmp_path):
        config = Config(store={"backend": "sqlite", "sqlite_path": str(tmp_path / "x.db")})
        assert isinstance(ProfileStoreFactory.create(config), SQLiteProfileStore)

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ProfileStoreFactory.create(Config(store={"backend": "postgres"}))
        assert exc_info.value.context["backend"] == "postgres"
