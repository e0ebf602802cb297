"""
Constants and settings for the Workspace Portal client.
"""

import os

# =============================================================================
# API
# =============================================================================

API_PREFIX = "/_hakoniwa/api"

CONFIGURATION_ENDPOINT = "configuration"
SESSION_ENDPOINT = "auth/me"
ANONYMOUS_LOGIN_ENDPOINT = "auth/anonymous"
LOGOUT_ENDPOINT = "auth/logout"
INSTANCES_ENDPOINT = "instances"
INSTANCE_TYPES_ENDPOINT = "instance-types"

# Provider path segment for /auth/<provider>/authorize
IDENTITY_PROVIDER = "oidc"

# =============================================================================
# Polling
# =============================================================================

POLL_INTERVAL_MS = 3000

# =============================================================================
# Session markers (cookies, path-scoped)
# =============================================================================

SESSION_MARKER = "hakoniwa_session"
INSTANCE_MARKER = "hakoniwa_instance_id"
MARKER_PATH = "/"

# =============================================================================
# User-facing messages
# =============================================================================

MSG_CONNECTION_FAILED = "Failed to connect to server"
MSG_LOGIN_FAILED = "Login failed"
MSG_MAX_INSTANCES = "Maximum number of instances reached. Please try again later."
MSG_CREATE_FAILED = "Failed to create instance"

MSG_PERSISTENCE_DISABLED_GLOBAL = "Persistent storage is disabled by the administrator"
MSG_PERSISTENCE_REQUIRES_IDENTITY = "Persistent storage is only available for authenticated users"
MSG_PERSISTENCE_TYPE_UNSUPPORTED = "This instance type does not support persistent storage"


def get_env(key: str, default: str = None, required: bool = False) -> str:
    """
    Retrieve a setting from the environment.

    Args:
        key: Setting key (``base-url`` reads ``BASE_URL``)
        default: Default value
        required: Whether the value is required

    Returns:
        Setting value

    Raises:
        ValueError: If required value is missing
    """
    env_key = key.upper().replace("-", "_")
    value = os.environ.get(env_key, default)
    if required and not value:
        raise ValueError(f"Required configuration missing: {key}")
    return value
