"""Services module: session tracking, polling, scheduling and actions."""

from portal.services.scheduler import EventLoop, PeriodicTask
from portal.services.session_tracker import SessionTracker
from portal.services.instance_poller import InstancePoller
from portal.services.ui_state import UiState
from portal.services.actions import InstanceActions

__all__ = [
    "EventLoop",
    "PeriodicTask",
    "SessionTracker",
    "InstancePoller",
    "UiState",
    "InstanceActions",
]
