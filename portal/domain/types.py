"""
Typed data structures for the workspace API.
"""

from __future__ import annotations

import enum
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger("portal-client")


class InstanceStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    TERMINATING = "terminating"


class UserKind(str, enum.Enum):
    EXTERNAL_IDENTITY = "openid_connect"
    ANONYMOUS = "anonymous"


class AuthMethod(str, enum.Enum):
    EXTERNAL_IDENTITY = "oidc"
    ANONYMOUS = "anonymous"


class User(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: str
    kind: UserKind = Field(alias="type")


class InstanceSummary(BaseModel):
    """Instance attached to the session (at most one)."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    status: InstanceStatus
    address: str | None = Field(default=None, alias="pod_ip")


class Session(BaseModel):
    """Server-asserted identity plus at most one instance summary."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    user: User
    instance: InstanceSummary | None = None

    @classmethod
    def from_payload(cls, data: Any) -> Session | None:
        """
        Parse an ``auth/me`` payload.

        A payload without a user is no session at all.

        Raises:
            pydantic.ValidationError: If the user or instance is malformed
        """
        if not isinstance(data, dict) or not data.get("user"):
            return None
        return cls.model_validate(data)


class Instance(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: str
    name: str
    type: str
    status: InstanceStatus
    address: str | None = Field(default=None, alias="pod_ip")


class InstanceType(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    name: str
    description: str | None = None
    logo_url: str | None = None
    persistable: bool = False


class Configuration(BaseModel):
    """Portal configuration published by the server (read-only)."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    title: str = "Hakoniwa"
    message: str = ""
    logo_url: str = ""
    terms_of_service_url: str | None = None
    privacy_policy_url: str | None = None
    auth_methods: frozenset[AuthMethod] = frozenset({AuthMethod.ANONYMOUS})
    identity_provider_name: str = Field(default="OpenID Connect", alias="oidc_name")
    auto_login: bool = Field(default=False, alias="auth_auto_login")
    persistence_enabled: bool = Field(default=True, alias="enable_persistence")

    # Declared by the server but not supported here; still counted as choices
    unknown_auth_methods: frozenset[str] = frozenset()

    @model_validator(mode="before")
    @classmethod
    def _split_methods(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not data.get("auth_methods"):
            return data
        known = {m.value for m in AuthMethod}
        names = [m.value if isinstance(m, AuthMethod) else str(m) for m in data["auth_methods"]]
        unknown = [name for name in names if name not in known]
        for name in unknown:
            logger.warning(f"Ignoring unknown auth method '{name}'")
        return {
            **data,
            "auth_methods": [name for name in names if name in known],
            "unknown_auth_methods": unknown,
        }

    @field_validator("auth_methods", mode="before")
    @classmethod
    def _no_methods(cls, value: Any) -> Any:
        return frozenset() if value is None else value

    @property
    def declared_method_count(self) -> int:
        """Number of distinct login methods the server offers, supported or not."""
        return len(self.auth_methods) + len(self.unknown_auth_methods)


class InstanceListing(BaseModel):
    """An instance joined with its catalog entry, if the catalog knows it."""

    model_config = ConfigDict(frozen=True)

    instance: Instance
    type_info: InstanceType | None = None

    @property
    def type_name(self) -> str:
        return self.type_info.name if self.type_info else self.instance.type
