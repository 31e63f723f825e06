"""Configuration loader for proxy-rules."""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from proxy_rules.models import RuleEngineConfig


DEFAULT_DATA_DIR = Path.home() / ".proxy-rules"
DEFAULT_CONFIG_FILE = "config.yaml"
DEFAULT_RULES_FILE = "rules.yaml"
DEFAULT_LOG_FILE = "proxy-rules.log"

DEBUG_ENV = "PROXY_RULES_DEBUG"
LOG_LEVEL_ENV = "PROXY_RULES_LOG_LEVEL"


def _env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


class Config:
    """proxy-rules configuration."""

    def __init__(self, data_dir: Path | None = None):
        self.data_dir = data_dir or DEFAULT_DATA_DIR
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.config_file = self.data_dir / DEFAULT_CONFIG_FILE
        self.log_file = self.data_dir / DEFAULT_LOG_FILE

        # Load .env from data directory (project-scoped)
        env_file = self.data_dir / ".env"
        load_dotenv(env_file)

        self._config: dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        """Load configuration from YAML file."""
        if self.config_file.exists():
            with open(self.config_file) as f:
                self._config = yaml.safe_load(f) or {}
        else:
            self._config = self._default_config()
            self._save()

    def _save(self) -> None:
        """Save configuration to YAML file."""
        with open(self.config_file, "w") as f:
            yaml.safe_dump(self._config, f, default_flow_style=False)

    def _default_config(self) -> dict[str, Any]:
        """Return default configuration."""
        return {
            "version": "1.0",
            "rules_file": DEFAULT_RULES_FILE,
            "default_rule_sets": ["local-development"],
            "enable_cache": True,
            "cache_ttl": 60000,
            "max_rules": 1000,
            "enforce_max_rules": False,
            "enable_stats": True,
            "debug": False,
            "log_level": "INFO",
        }

    @property
    def rules_file(self) -> Path:
        """Rules file; relative paths resolve against the data directory."""
        path = Path(self._config.get("rules_file", DEFAULT_RULES_FILE)).expanduser()
        return path if path.is_absolute() else self.data_dir / path

    @property
    def default_rule_sets(self) -> list[str]:
        return list(self._config.get("default_rule_sets", []))

    @property
    def enable_cache(self) -> bool:
        return bool(self._config.get("enable_cache", True))

    @property
    def cache_ttl(self) -> int:
        return int(self._config.get("cache_ttl", 60000))

    @property
    def max_rules(self) -> int:
        return int(self._config.get("max_rules", 1000))

    @property
    def enforce_max_rules(self) -> bool:
        return bool(self._config.get("enforce_max_rules", False))

    @property
    def enable_stats(self) -> bool:
        return bool(self._config.get("enable_stats", True))

    @property
    def debug(self) -> bool:
        """Debug flag from config, or the environment when set there."""
        return bool(self._config.get("debug")) or _env_flag(os.environ.get(DEBUG_ENV))

    @property
    def log_level(self) -> str:
        return os.environ.get(LOG_LEVEL_ENV) or self._config.get("log_level", "INFO")

    def engine_config(self) -> RuleEngineConfig:
        """Build the engine settings from this configuration."""
        return RuleEngineConfig(
            enable_cache=self.enable_cache,
            cache_ttl=self.cache_ttl,
            max_rules=self.max_rules,
            enforce_max_rules=self.enforce_max_rules,
            enable_stats=self.enable_stats,
            debug=self.debug,
        )

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load()
