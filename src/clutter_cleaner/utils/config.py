"""Configuration management for photo-clutter-cleaner."""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from clutter_cleaner.core.models import DeletionPolicy, FetchTier

logger = logging.getLogger(__name__)

_MISSING = object()


class Config:
    """Manages user configuration and settings."""

    DEFAULT_CONFIG_DIR = Path.home() / ".photo-clutter-cleaner"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"

    DEFAULT_SETTINGS: Dict[str, Any] = {
        "fetch": {
            "limit": 5,  # Max concurrently in-flight fetches
            "tier": "original",  # original, fast
            "allow_network": False,
            "thumbnail_size": 256,  # Bounding box for the fast tier (local)
        },
        "deletion": {
            "policy": "delete_all",  # delete_all, keep_newest, keep_oldest
            "use_recycle_bin": True,
        },
        "platforms": {
            "google_drive": {
                "credentials_file": None,
                "token_file": None,
            },
        },
    }

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to config file (default: ~/.photo-clutter-cleaner/config.json)
        """
        self.config_file = Path(config_file) if config_file else self.DEFAULT_CONFIG_FILE
        self.settings: Dict[str, Any] = {}
        self.load()

    @property
    def config_dir(self) -> Path:
        return self.config_file.parent

    def load(self) -> None:
        """Load configuration from file or create with defaults."""
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    self.settings = json.load(f)
                logger.debug(f"Loaded configuration from {self.config_file}")
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid config file: {e}. Using defaults.")
                self.settings = copy.deepcopy(self.DEFAULT_SETTINGS)
        else:
            logger.info("No config file found. Creating with defaults.")
            self.settings = copy.deepcopy(self.DEFAULT_SETTINGS)
            self.save()

    def save(self) -> None:
        """Save configuration to file."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(self.settings, f, indent=2)
        logger.debug(f"Saved configuration to {self.config_file}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Keys missing from the file fall back to the built-in defaults before
        ``default`` is used.

        Args:
            key: Configuration key (supports dot notation, e.g., 'fetch.limit')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._lookup(self.settings, key)
        if value is _MISSING:
            value = self._lookup(self.DEFAULT_SETTINGS, key)
        if value is _MISSING or value is None:
            return default
        return value

    @staticmethod
    def _lookup(settings: Dict[str, Any], key: str) -> Any:
        value: Any = settings
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                return _MISSING
            value = value[k]
        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key (supports dot notation)
            value: Value to set
        """
        keys = key.split(".")
        target = self.settings
        for k in keys[:-1]:
            if k not in target or not isinstance(target[k], dict):
                target[k] = {}
            target = target[k]
        target[keys[-1]] = value
        self.save()

    def fetch_limit(self) -> int:
        """Admission-control limit for concurrent fetches."""
        limit = self.get("fetch.limit", 5)
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            logger.warning(f"Invalid fetch.limit '{limit}', using 5")
            return 5
        if limit < 1:
            logger.warning(f"fetch.limit must be at least 1, got {limit}; using 5")
            return 5
        return limit

    def fetch_tier(self) -> FetchTier:
        tier = self.get("fetch.tier", "original")
        try:
            return FetchTier(str(tier).lower())
        except ValueError:
            logger.warning(f"Unknown fetch tier '{tier}', using original")
            return FetchTier.ORIGINAL

    def deletion_policy(self) -> DeletionPolicy:
        policy = self.get("deletion.policy", "delete_all")
        try:
            return DeletionPolicy(str(policy).lower())
        except ValueError:
            logger.warning(f"Unknown deletion policy '{policy}', using delete_all")
            return DeletionPolicy.DELETE_ALL

    def get_staging_dir(self) -> Path:
        """Get the staging directory path."""
        return self.config_dir / "staging"

    def get_operations_log(self) -> Path:
        """Get the operations log file path."""
        return self.config_dir / "operations.log"

    def get_drive_credentials_file(self) -> Path:
        configured = self.get("platforms.google_drive.credentials_file")
        return Path(configured) if configured else self.config_dir / "credentials.json"

    def get_drive_token_file(self) -> Path:
        configured = self.get("platforms.google_drive.token_file")
        return Path(configured) if configured else self.config_dir / "token.json"
