"""
Configuration management for the persistence benchmark harness
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from perfbench.catalog import CATALOG, TestCatalog
from perfbench.errors import ConfigurationError
from perfbench.models import RunConfig
from perfbench.random_values import DEFAULT_SEED
from perfbench.utils import ConfigValidator, default_config

logger = logging.getLogger(__name__)


@dataclass
class DatabaseConfig:
    """Database configuration data class"""
    host: str = "localhost"
    port: int = 0
    password: str = ""
    database: str = ""
    collection: str = "perfbench"


class Config:
    """Configuration manager"""

    def __init__(self, config_path: str = "config.json"):
        self.config_path = config_path
        self._load_config()

    def _load_config(self):
        """Load configuration from file"""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except FileNotFoundError:
            config_data = default_config()
            self._save_config(config_data)
            logger.info(f"Wrote default configuration to {self.config_path}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{self.config_path} is not valid JSON: {e}") from e

        config_data = ConfigValidator.fix_common_issues(config_data)
        issues = ConfigValidator.validate_config(config_data)
        if issues:
            raise ConfigurationError(
                f"Invalid configuration in {self.config_path}: " + "; ".join(issues)
            )

        self.memory = DatabaseConfig(**config_data['memory'])
        self.sqlite = DatabaseConfig(**config_data['sqlite'])
        self.qdrant = DatabaseConfig(**config_data['qdrant'])
        self.benchmark_settings: Dict[str, Any] = config_data['benchmark_settings']

    def _save_config(self, config_data: Dict[str, Any]):
        """Save configuration to file"""
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(config_data, f, indent=2, ensure_ascii=False)

    @property
    def seed(self) -> int:
        return self.benchmark_settings.get('seed', DEFAULT_SEED)

    @property
    def output_dir(self) -> str:
        return self.benchmark_settings.get('output_dir', 'results')

    def database_config(self, backend: str) -> DatabaseConfig:
        try:
            return getattr(self, backend)
        except AttributeError:
            raise ConfigurationError(f"No configuration section for backend {backend!r}") from None

    def run_config(self, backends: Optional[Iterable[str]] = None,
                   test_types: Optional[Iterable[str]] = None,
                   entity_count: Optional[int] = None,
                   catalog: TestCatalog = CATALOG) -> RunConfig:
        """Resolve the run selection; arguments override the file settings

        Unknown test types raise CatalogLookupError here, before anything runs.
        """
        settings = self.benchmark_settings
        if test_types is None:
            test_types = settings.get('test_types') or ()
        if backends is None:
            backends = settings.get('backends') or ()
        if entity_count is None:
            entity_count = settings['entity_count']

        return RunConfig(
            entity_count=entity_count,
            test_types=tuple(catalog.by_short_name(name) for name in test_types),
            backends=tuple(backends),
        )
