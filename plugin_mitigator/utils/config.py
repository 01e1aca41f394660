"""
Configuration management for the plugin mitigator.

Settings come from built-in defaults, overlaid by a YAML file, overlaid by
``MITIGATOR_*`` environment variables, and finally by explicit overrides
from the caller (the CLI flags). Values are validated after every layer.
"""

from __future__ import annotations

import copy
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from .exceptions import ConfigurationError
from .logger import get_logger

logger = get_logger("config")


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _search_paths() -> List[Path]:
    """Locations tried, in order, when no config file is given."""
    return [
        Path(__file__).resolve().parent.parent.parent / "config.yaml",
        Path.home() / ".plugin_mitigator" / "config.yaml",
        Path.cwd() / "config.yaml",
    ]


def _deep_merge(base: Dict[str, Any], layer: Dict[str, Any]) -> None:
    for key, value in layer.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


class Config:
    """
    Layered, dot-addressable configuration.

    Example:
        config.get("family_sweep.threshold")  # -> 3
        config.plugins_dir                    # -> <abspath>/wp-content/plugins

    Thread-safe singleton; use ``init_config`` to load a different file.
    """

    _instance: Optional[Config] = None
    _lock: threading.Lock = threading.Lock()

    DEFAULTS: Dict[str, Any] = {
        "paths": {
            "abspath": ".",
            "plugins_dir": None,  # <abspath>/wp-content/plugins
            "self_dir": "msp-malware-mitigator",
        },
        "scheduler": {
            "cooldown_seconds": 3600,
        },
        "matcher": {
            "min_hits": 2,
        },
        "neutralizer": {
            "script_extensions": ["php"],
        },
        "family_sweep": {
            "enabled": True,
            "threshold": 3,
            "max_files": 250,
            "max_bytes": 61440,
            "extensions": ["php", "json", "phtml"],
        },
        "profiles": {
            "file": None,
        },
        "visibility": {
            "placeholder_for_empty": False,
        },
        "database": {
            "path": "~/.plugin_mitigator/options.db",
        },
        "logging": {
            "debug": False,
            "level": "INFO",
            "file": None,
            "format": "pretty",
        },
    }

    # env var -> (config key, converter)
    ENV_MAPPINGS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
        "MITIGATOR_ABSPATH": ("paths.abspath", str),
        "MITIGATOR_PLUGINS_DIR": ("paths.plugins_dir", str),
        "MITIGATOR_PROFILES_FILE": ("profiles.file", str),
        "MITIGATOR_DB_PATH": ("database.path", str),
        "MITIGATOR_DEBUG": ("logging.debug", _to_bool),
        "MITIGATOR_LOG_LEVEL": ("logging.level", str),
        "MITIGATOR_COOLDOWN": ("scheduler.cooldown_seconds", int),
    }

    PATH_KEYS = (
        "paths.abspath",
        "paths.plugins_dir",
        "profiles.file",
        "database.path",
        "logging.file",
    )

    # key -> smallest accepted value
    MINIMUMS: Dict[str, int] = {
        "scheduler.cooldown_seconds": 0,
        "matcher.min_hits": 1,
        "family_sweep.threshold": 1,
        "family_sweep.max_files": 1,
        "family_sweep.max_bytes": 1,
    }

    LIST_KEYS = (
        "neutralizer.script_extensions",
        "family_sweep.extensions",
    )

    def __new__(cls, config_path: Optional[Path] = None) -> Config:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._config = {}
                    instance._config_path = None
                    instance._initialized = False
                    cls._instance = instance
        return cls._instance

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """
        Load defaults, the YAML file and environment overrides.

        Args:
            config_path: YAML file to load; the search paths are used when None

        Raises:
            ConfigurationError: If an explicit file is missing, a file is
                not a valid YAML mapping, or a value is out of range
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            self._config: Dict[str, Any] = copy.deepcopy(self.DEFAULTS)
            self._config_path: Optional[Path] = self._resolve_path(config_path)

            if self._config_path is not None:
                _deep_merge(self._config, self._read_file(self._config_path))
                logger.info(f"Configuration loaded from: {self._config_path}")
            else:
                logger.warning("No config file found, using defaults")

            self._apply_env_overrides()
            self._finalize()
            self._initialized: bool = True

    @staticmethod
    def _resolve_path(config_path: Optional[Path]) -> Optional[Path]:
        if config_path is not None:
            path = Path(config_path)
            if not path.is_file():
                raise ConfigurationError(f"Config file not found: {path}")
            return path

        for candidate in _search_paths():
            try:
                if candidate.is_file():
                    return candidate
            except OSError:
                continue
        return None

    @staticmethod
    def _read_file(path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {path}")
        return data

    def _apply_env_overrides(self) -> None:
        for env_var, (key, convert) in self.ENV_MAPPINGS.items():
            raw = os.environ.get(env_var)
            if not raw:
                continue
            try:
                self.set(key, convert(raw))
            except ValueError:
                raise ConfigurationError(f"Invalid value for {env_var}: {raw!r}", config_key=key)
            logger.debug(f"Config override from env: {key}")

    def _finalize(self) -> None:
        """Expand path keys and validate bounded settings."""
        for key in self.PATH_KEYS:
            value = self.get(key)
            if isinstance(value, str) and value:
                self.set(key, os.path.expandvars(os.path.expanduser(value)))

        for key, minimum in self.MINIMUMS.items():
            value = self.get(key)
            if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
                raise ConfigurationError(
                    f"'{key}' must be an integer >= {minimum}, got {value!r}",
                    config_key=key,
                )

        for key in self.LIST_KEYS:
            if not isinstance(self.get(key), list):
                raise ConfigurationError(f"'{key}' must be a list", config_key=key)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Value at a dot-separated key, or default when missing or None.

        Args:
            key: e.g. "scheduler.cooldown_seconds"
            default: Returned when the key is absent
        """
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict) or node.get(part) is None:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a dot-separated key, creating intermediate sections."""
        *sections, leaf = key.split(".")
        node = self._config
        for part in sections:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[leaf] = value

    def get_section(self, section: str) -> Dict[str, Any]:
        return self.get(section, {})

    def apply_overrides(self, overrides: Dict[str, Any]) -> None:
        """
        Apply dot-notation overrides on top of everything loaded so far.

        None values are skipped so unset CLI flags keep the configured value.
        """
        for key, value in overrides.items():
            if value is not None:
                self.set(key, value)
        self._finalize()

    @property
    def abspath(self) -> Path:
        """Content root every profile file target is relative to."""
        return Path(self.get("paths.abspath", "."))

    @property
    def plugins_dir(self) -> Path:
        """Plugins root; defaults to the standard location under abspath."""
        configured = self.get("paths.plugins_dir")
        if configured:
            return Path(configured)
        return self.abspath / "wp-content" / "plugins"

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)


_config: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Process-wide configuration, loaded from the search paths on first use."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = Config()
    return _config


def init_config(config_path: Optional[Path] = None) -> Config:
    """
    Replace the process-wide configuration.

    Args:
        config_path: YAML file to load; the search paths are used when None
    """
    global _config
    with _config_lock:
        Config._instance = None
        _config = Config(config_path)
    return _config
