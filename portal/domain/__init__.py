"""Domain module: wire types, gateway and pure decision logic."""

from portal.domain.errors import (
    PortalError,
    FetchError,
    UnreachableError,
    RequestFailedError,
    ActionError,
)
from portal.domain.types import (
    AuthMethod,
    Configuration,
    Instance,
    InstanceListing,
    InstanceStatus,
    InstanceSummary,
    InstanceType,
    Session,
    User,
    UserKind,
)
from portal.domain.gateway import FetchGateway
from portal.domain.lifecycle import Reconciliation, ViewKind, ViewState, reconcile
from portal.domain.policies import (
    DenialReason,
    Eligibility,
    decide_auto_login,
    persistence_eligibility,
)
from portal.domain.navigator import Navigator

__all__ = [
    "PortalError",
    "FetchError",
    "UnreachableError",
    "RequestFailedError",
    "ActionError",
    "AuthMethod",
    "Configuration",
    "Instance",
    "InstanceListing",
    "InstanceStatus",
    "InstanceSummary",
    "InstanceType",
    "Session",
    "User",
    "UserKind",
    "FetchGateway",
    "Reconciliation",
    "ViewKind",
    "ViewState",
    "reconcile",
    "DenialReason",
    "Eligibility",
    "decide_auto_login",
    "persistence_eligibility",
    "Navigator",
]
