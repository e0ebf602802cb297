"""Configuration module for the Workspace Portal client."""

from portal.config.settings import (
    API_PREFIX,
    POLL_INTERVAL_MS,
    SESSION_MARKER,
    INSTANCE_MARKER,
    get_env,
)
from portal.config.models import PortalSettings
from portal.config.loader import (
    PortalConfig,
    CONFIG_PATH,
    PORTAL_CONFIG_FILE,
)

__all__ = [
    "API_PREFIX",
    "POLL_INTERVAL_MS",
    "SESSION_MARKER",
    "INSTANCE_MARKER",
    "get_env",
    "PortalSettings",
    "PortalConfig",
    "CONFIG_PATH",
    "PORTAL_CONFIG_FILE",
]
