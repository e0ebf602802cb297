"""
Session tracking: the single owner of the current session.
"""

from __future__ import annotations

import logging
from typing import Callable

from pydantic import ValidationError

from portal.config.settings import MSG_CONNECTION_FAILED, SESSION_ENDPOINT
from portal.domain.errors import FetchError
from portal.domain.gateway import FetchGateway
from portal.domain.types import InstanceStatus, Session

logger = logging.getLogger("portal-client")

Subscriber = Callable[["SessionTracker"], None]


class SessionTracker:
    """Holds the current session; the only writer of that value.

    Knows how to fetch once. When to fetch again is decided by whoever
    subscribes to it.
    """

    def __init__(self, gateway: FetchGateway):
        self.gateway = gateway
        self.session: Session | None = None
        self.last_error: str | None = None
        self.loaded = False
        self._subscribers: list[Subscriber] = []

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    @property
    def instance_status(self) -> InstanceStatus | None:
        if self.session and self.session.instance:
            return self.session.instance.status
        return None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback run after every refresh.

        Returns:
            Function removing the subscription
        """
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    def refresh(self) -> Session | None:
        """
        Fetch the session once and notify subscribers.

        A failed fetch keeps the previously known session and records
        the connection-failure message instead.

        Returns:
            The session after the refresh
        """
        try:
            data = self.gateway.call(SESSION_ENDPOINT)
            session = Session.from_payload(data)
        except FetchError as e:
            logger.warning(f"Session refresh failed: {e}")
            self.last_error = MSG_CONNECTION_FAILED
        except ValidationError as e:
            logger.error(f"Session payload rejected (schema mismatch): {e.errors(include_url=False)}")
            self.last_error = MSG_CONNECTION_FAILED
        else:
            if session != self.session:
                logger.info(f"Session changed: {self._describe(self.session)} -> {self._describe(session)}")
            self.session = session
            self.last_error = None

        self.loaded = True
        self._notify()
        return self.session

    def reset(self) -> None:
        """Forget the session (logout); subscribers are not notified."""
        self.session = None
        self.last_error = None

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self)

    @staticmethod
    def _describe(session: Session | None) -> str:
        if session is None:
            return "none"
        status = session.instance.status.value if session.instance else "no-instance"
        return f"{session.user.kind.value}/{status}"
