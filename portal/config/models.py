"""
Pydantic models for client configuration.

Mirrors portal.yml, providing typed access to all settings via
PortalConfig.settings().
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from portal.config.settings import API_PREFIX, POLL_INTERVAL_MS


class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    base_url: str = "http://localhost:8080"
    prefix: str = API_PREFIX
    # None keeps the transport default (no timeout)
    timeout: float | None = None


class PollingConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    interval_ms: int = POLL_INTERVAL_MS


class ResilienceConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    failure_threshold: int = 5
    recovery_timeout: float = 30.0


class SessionConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cookie_file: str = "~/.config/portal/cookies.txt"


class MetricsConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    port: int = 9108


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    level: str = "INFO"


class PortalSettings(BaseModel):
    """Root settings model mirroring portal.yml structure."""

    model_config = ConfigDict(extra="ignore")

    api: ApiConfig = ApiConfig()
    polling: PollingConfig = PollingConfig()
    resilience: ResilienceConfig = ResilienceConfig()
    session: SessionConfig = SessionConfig()
    metrics: MetricsConfig = MetricsConfig()
    logging: LoggingConfig = LoggingConfig()
