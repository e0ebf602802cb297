"""
Configuration loader for portal.yml.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from portal.config.models import PortalSettings
from portal.config.settings import get_env

logger = logging.getLogger("portal-client")

# Configuration paths
CONFIG_PATH = Path(get_env("config_path", "~/.config/portal") or "~/.config/portal").expanduser()
PORTAL_CONFIG_FILE = CONFIG_PATH / "portal.yml"


class PortalConfig:
    """Manages client configuration from YAML file and environment."""

    _typed_config: PortalSettings | None = None

    @classmethod
    def load(cls, path: Path | str | None = None) -> PortalSettings:
        """
        Load configuration: defaults < portal.yml < environment.

        Args:
            path: Optional YAML file (defaults to PORTAL_CONFIG_FILE)

        Returns:
            Validated settings
        """
        config_file = Path(path).expanduser() if path else PORTAL_CONFIG_FILE
        defaults = PortalSettings().model_dump()
        config = defaults

        if not config_file.exists():
            logger.info(f"Portal config not found, using defaults: {config_file}")
        else:
            try:
                with open(config_file, "r") as f:
                    file_config = yaml.safe_load(f) or {}
                config = cls._deep_merge(defaults, file_config)
                logger.info(f"Loaded portal config from {config_file}")
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Error loading portal config: {e}")

        config = cls._deep_merge(config, cls._env_overrides())
        cls._typed_config = PortalSettings.model_validate(config)
        return cls._typed_config

    @classmethod
    def _env_overrides(cls) -> dict:
        """Collect settings overridden through environment variables."""
        overrides: dict = {}
        base_url = get_env("portal_base_url")
        if base_url:
            overrides["api"] = {"base_url": base_url}
        level = get_env("log_level")
        if level:
            overrides["logging"] = {"level": level.upper()}
        return overrides

    @classmethod
    def _deep_merge(cls, base: dict, override: dict) -> dict:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = cls._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @classmethod
    def settings(cls) -> PortalSettings:
        """Get typed configuration, loading it on first use."""
        if cls._typed_config is None:
            cls.load()
        assert cls._typed_config is not None
        return cls._typed_config

    @classmethod
    def reset(cls) -> None:
        """Forget the cached settings."""
        cls._typed_config = None
