"""
Pure decision policies: auto-login and persistent-storage eligibility.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from portal.config.settings import (
    MSG_PERSISTENCE_DISABLED_GLOBAL,
    MSG_PERSISTENCE_REQUIRES_IDENTITY,
    MSG_PERSISTENCE_TYPE_UNSUPPORTED,
)
from portal.domain.types import AuthMethod, Configuration, InstanceType, Session, User, UserKind


# =============================================================================
# Auto-login
# =============================================================================

def decide_auto_login(
    config: Configuration | None,
    *,
    session: Session | None,
    loading: bool,
    has_error: bool,
    entry_error: bool,
) -> AuthMethod | None:
    """
    Decide whether the sole configured login method should fire on its own.

    Returns:
        The method to invoke, or None when the user must choose (or nothing
        is to be done)
    """
    if config is None or not config.auto_login:
        return None
    if loading or session is not None or has_error or entry_error:
        return None
    # Unsupported methods still count: two declared methods is a user choice
    if config.declared_method_count != 1 or not config.auth_methods:
        return None
    return next(iter(config.auth_methods))


# =============================================================================
# Persistent storage eligibility
# =============================================================================

class DenialReason(str, enum.Enum):
    DISABLED_GLOBALLY = "disabled_globally"
    REQUIRES_AUTHENTICATED_IDENTITY = "requires_authenticated_identity"
    TYPE_NOT_PERSISTABLE = "type_not_persistable"

    @property
    def message(self) -> str:
        return _DENIAL_MESSAGES[self]


_DENIAL_MESSAGES = {
    DenialReason.DISABLED_GLOBALLY: MSG_PERSISTENCE_DISABLED_GLOBAL,
    DenialReason.REQUIRES_AUTHENTICATED_IDENTITY: MSG_PERSISTENCE_REQUIRES_IDENTITY,
    DenialReason.TYPE_NOT_PERSISTABLE: MSG_PERSISTENCE_TYPE_UNSUPPORTED,
}


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    reason: DenialReason | None = None


def persistence_eligibility(
    config: Configuration | None,
    user: User | None,
    selected_type: InstanceType | None,
) -> Eligibility:
    """
    Whether the persistent-storage option may be offered.

    Checks run in priority order so exactly one reason is reported:
    global switch, then identity kind, then type capability.
    """
    if config is None or not config.persistence_enabled:
        return Eligibility(False, DenialReason.DISABLED_GLOBALLY)
    if user is None or user.kind != UserKind.EXTERNAL_IDENTITY:
        return Eligibility(False, DenialReason.REQUIRES_AUTHENTICATED_IDENTITY)
    if selected_type is None or not selected_type.persistable:
        return Eligibility(False, DenialReason.TYPE_NOT_PERSISTABLE)
    return Eligibility(True)
