"""
Lifecycle reconciliation: session + local state -> view state and polling.

``reconcile`` is a pure function. The view state is never stored; callers
recompute it from the latest inputs every time one of them changes.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from portal.config.settings import MSG_CONNECTION_FAILED, POLL_INTERVAL_MS
from portal.domain.types import InstanceStatus, Session


class ViewKind(str, enum.Enum):
    CONNECTING = "connecting"
    UNAUTHENTICATED = "unauthenticated"
    PENDING_INSTANCE = "pending_instance"
    DASHBOARD = "dashboard"
    CREATE = "create"
    ERROR = "error"


@dataclass(frozen=True)
class ViewState:
    kind: ViewKind
    status: InstanceStatus | None = None
    message: str | None = None

    def to_dict(self) -> dict:
        d: dict = {"view": self.kind.value}
        if self.status is not None:
            d["status"] = self.status.value
        if self.message is not None:
            d["message"] = self.message
        return d


@dataclass(frozen=True)
class Reconciliation:
    """Outcome of one reconciliation pass.

    ``reload`` is terminal: the instance is ready and the client hands off
    to it. ``view`` then still holds the last meaningful state for display.
    """

    view: ViewState
    should_poll: bool = False
    poll_interval_ms: int = 0
    reload: bool = False


CONNECTING = ViewState(ViewKind.CONNECTING)
UNAUTHENTICATED = ViewState(ViewKind.UNAUTHENTICATED)
DASHBOARD = ViewState(ViewKind.DASHBOARD)
CREATE = ViewState(ViewKind.CREATE)


def reconcile(
    session: Session | None,
    has_error: bool,
    *,
    error_message: str | None = None,
    loading: bool = False,
    create_view: bool = False,
    interval_ms: int = POLL_INTERVAL_MS,
) -> Reconciliation:
    """
    Compute the view state and session polling decision.

    Args:
        session: Current session (None when unauthenticated)
        has_error: Whether an error is currently recorded
        error_message: Message shown by the error view
        loading: True until the first session fetch has completed
        create_view: True while the user is on the create view
        interval_ms: Poll interval for polling states

    Returns:
        Reconciliation
    """
    status = session.instance.status if session and session.instance else None

    # A ready instance supersedes everything, stale errors included
    if status == InstanceStatus.RUNNING:
        return Reconciliation(view=ViewState(ViewKind.PENDING_INSTANCE, status=status), reload=True)

    if session is None:
        if loading and not has_error:
            return Reconciliation(view=CONNECTING)
        if has_error:
            message = error_message or MSG_CONNECTION_FAILED
            return Reconciliation(view=ViewState(ViewKind.ERROR, message=message))
        return Reconciliation(view=UNAUTHENTICATED)

    if status in (InstanceStatus.PENDING, InstanceStatus.TERMINATING):
        return Reconciliation(
            view=ViewState(ViewKind.PENDING_INSTANCE, status=status),
            should_poll=True,
            poll_interval_ms=interval_ms,
        )

    if create_view:
        return Reconciliation(view=CREATE)
    return Reconciliation(view=DASHBOARD, should_poll=True, poll_interval_ms=interval_ms)
