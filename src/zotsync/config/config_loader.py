"""
Configuration loader for the sync engine.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from ..core.errors import ConfigurationError
from ..core.models import Library


logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "zotero": {
        "api_key": "",
        "base_url": "https://api.zotero.org",
        "timeout": 30,
        "max_retries": 3,
        "page_size": 100,
        "rate_limit_delay": 0.0,
    },
    "store": {
        "dir": ".zotsync",
    },
    "vault": {
        "dir": ".",
        "folder": "References",
    },
    "sync": {
        "cooldown_seconds": 60.0,
        "generator_timeout_seconds": 10.0,
        "max_workers": 4,
        "interval_seconds": 0.0,  # 0 = no periodic sync
    },
    "libraries": [],
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class SyncConfig:
    """
    Configuration for the sync engine.

    Loads a YAML configuration file on top of the defaults and applies
    environment variable overrides (a .env file is honored).
    """

    def __init__(self, config_path: Optional[Path] = None, load_env_file: bool = True):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
            load_env_file: Whether to read a .env file into the environment
        """
        if load_env_file:
            load_dotenv()
        self.config_path = Path(config_path) if config_path else None
        self.config = _merge(DEFAULT_CONFIG, self._load_config()) if self.config_path else copy.deepcopy(DEFAULT_CONFIG)
        self._apply_env_overrides()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise ConfigurationError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid config file {self.config_path}: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigurationError(f"Config file {self.config_path} must contain a mapping")
        return config

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        overrides = {
            "ZOTERO_API_KEY": ("zotero", "api_key"),
            "ZOTSYNC_STORE_DIR": ("store", "dir"),
            "ZOTSYNC_VAULT_DIR": ("vault", "dir"),
            "ZOTSYNC_FOLDER": ("vault", "folder"),
        }
        for env_var, (section, key) in overrides.items():
            value = os.environ.get(env_var)
            if value:
                self.config.setdefault(section, {})[key] = value

    def get_zotero_config(self) -> Dict[str, Any]:
        """Get Zotero API configuration."""
        return self.config.get("zotero", {})

    def get_sync_config(self) -> Dict[str, Any]:
        """Get sync runner configuration."""
        return self.config.get("sync", {})

    @property
    def api_key(self) -> str:
        return self.get("zotero.api_key", "") or ""

    @property
    def store_dir(self) -> Path:
        return Path(self.get("store.dir", ".zotsync"))

    @property
    def vault_dir(self) -> Path:
        return Path(self.get("vault.dir", "."))

    @property
    def folder(self) -> str:
        return self.get("vault.folder", "References")

    def require_api_key(self) -> str:
        """
        Return the API key.

        Raises:
            ConfigurationError if it is not configured
        """
        if not self.api_key:
            raise ConfigurationError("Zotero API key is not configured (set ZOTERO_API_KEY)")
        return self.api_key

    def get_libraries(self) -> List[Library]:
        """Get configured libraries."""
        libraries = []
        for entry in self.config.get("libraries") or []:
            try:
                libraries.append(Library.from_dict(entry))
            except (KeyError, TypeError) as e:
                raise ConfigurationError(f"Invalid library entry {entry!r}: {e}") from e
        return libraries

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default
