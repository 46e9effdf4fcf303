"""
Unit Tests for configuration loading and validation.
"""

import json

import pytest

from perfbench.config import Config, DatabaseConfig
from perfbench.db_clients import MemoryClient, QdrantClient, SqliteClient, create_adapters
from perfbench.errors import CatalogLookupError, ConfigurationError
from perfbench.random_values import DEFAULT_SEED
from perfbench.utils import ConfigValidator, default_config


def write_config(path, data) -> str:
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestConfigLoading:
    """Reading config.json."""

    def test_missing_file_is_created_with_defaults(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        config = Config(str(path))

        assert path.exists()
        assert json.loads(path.read_text(encoding="utf-8")) == default_config()
        assert config.seed == DEFAULT_SEED
        assert config.output_dir == "results"
        assert config.benchmark_settings["entity_count"] == 10000
        assert config.qdrant == DatabaseConfig(host="localhost", port=6333, collection="perfbench")
        assert config.sqlite.database == "perfbench.sqlite3"

    def test_partial_file_is_completed(self, tmp_path) -> None:
        path = write_config(tmp_path / "config.json", {
            "qdrant": {"host": "vectors.internal"},
            "benchmark_settings": {"entity_count": 50},
        })
        config = Config(path)
        assert config.qdrant.host == "vectors.internal"
        assert config.qdrant.port == 6333
        assert config.benchmark_settings["entity_count"] == 50
        assert config.benchmark_settings["backends"] == ["memory", "sqlite"]

    def test_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            Config(str(path))

    def test_invalid_values_are_reported(self, tmp_path) -> None:
        path = write_config(tmp_path / "config.json", {
            "qdrant": {"port": 70000},
            "benchmark_settings": {"entity_count": 0, "backends": ["oracle"]},
        })
        with pytest.raises(ConfigurationError) as excinfo:
            Config(path)
        message = str(excinfo.value)
        assert "Invalid port range for qdrant" in message
        assert "Invalid entity_count" in message
        assert "Unknown backend in benchmark_settings: oracle" in message

    def test_database_config_for_unknown_backend(self, tmp_path) -> None:
        config = Config(str(tmp_path / "config.json"))
        with pytest.raises(ConfigurationError):
            config.database_config("oracle")


class TestRunConfigResolution:
    """Turning settings and overrides into a RunConfig."""

    @pytest.fixture
    def config(self, tmp_path) -> Config:
        return Config(write_config(tmp_path / "config.json", {
            "benchmark_settings": {"entity_count": 40, "test_types": ["crud", "query-id"]},
        }))

    def test_settings_from_file(self, config: Config) -> None:
        run_config = config.run_config()
        assert run_config.entity_count == 40
        assert [t.short_name for t in run_config.test_types] == ["crud", "query-id"]
        assert run_config.backends == ("memory", "sqlite")

    def test_arguments_override_file(self, config: Config) -> None:
        run_config = config.run_config(backends=["sqlite"], test_types=["delete-all"], entity_count=3)
        assert run_config.entity_count == 3
        assert [t.short_name for t in run_config.test_types] == ["delete-all"]
        assert run_config.backends == ("sqlite",)

    def test_unknown_test_type(self, config: Config) -> None:
        with pytest.raises(CatalogLookupError):
            config.run_config(test_types=["query-float"])

    def test_non_positive_count_override(self, config: Config) -> None:
        with pytest.raises(ConfigurationError):
            config.run_config(entity_count=0)


class TestAdapterRegistration:
    """Building adapters from the configuration."""

    def test_default_backends(self, tmp_path) -> None:
        adapters = create_adapters(Config(str(tmp_path / "config.json")))
        assert list(adapters) == ["memory", "sqlite"]
        assert isinstance(adapters["memory"], MemoryClient)
        assert isinstance(adapters["sqlite"], SqliteClient)

    def test_explicit_selection(self, tmp_path) -> None:
        adapters = create_adapters(Config(str(tmp_path / "config.json")), ["qdrant", "memory"])
        assert list(adapters) == ["qdrant", "memory"]
        assert isinstance(adapters["qdrant"], QdrantClient)
        assert adapters["qdrant"].base_url == "http://localhost:6333"

    def test_unknown_backend(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="oracle"):
            create_adapters(Config(str(tmp_path / "config.json")), ["oracle"])


class TestConfigValidator:
    """Validation rules on raw config data."""

    def test_defaults_are_valid(self) -> None:
        assert ConfigValidator.validate_config(default_config()) == []

    def test_missing_sections(self) -> None:
        issues = ConfigValidator.validate_config({})
        assert "Missing configuration for memory" in issues
        assert "Missing benchmark_settings configuration" in issues

    def test_unknown_keys(self) -> None:
        data = default_config()
        data["sqlite"]["journal"] = "wal"
        assert "Unknown keys for sqlite: journal" in ConfigValidator.validate_config(data)

    def test_username_is_not_a_setting(self) -> None:
        data = default_config()
        data["qdrant"]["username"] = "admin"
        assert "Unknown keys for qdrant: username" in ConfigValidator.validate_config(data)

    def test_seed_must_fit_64_bits(self) -> None:
        data = default_config()
        data["benchmark_settings"]["seed"] = 2 ** 64
        issues = ConfigValidator.validate_config(data)
        assert any("seed" in issue for issue in issues)

    def test_test_types_must_be_names(self) -> None:
        data = default_config()
        data["benchmark_settings"]["test_types"] = "crud"
        issues = ConfigValidator.validate_config(data)
        assert "test_types in benchmark_settings must be a list of names" in issues

    def test_fix_common_issues_does_not_mutate_input(self) -> None:
        data = {"memory": {}}
        fixed = ConfigValidator.fix_common_issues(data)
        assert data == {"memory": {}}
        assert fixed["benchmark_settings"] == default_config()["benchmark_settings"]
