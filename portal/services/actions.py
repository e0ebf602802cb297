"""
User-triggered actions against the workspace API.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from pydantic import ValidationError

from portal.config.settings import (
    ANONYMOUS_LOGIN_ENDPOINT,
    IDENTITY_PROVIDER,
    INSTANCES_ENDPOINT,
    LOGOUT_ENDPOINT,
    MARKER_PATH,
    MSG_CREATE_FAILED,
    MSG_LOGIN_FAILED,
    MSG_MAX_INSTANCES,
)
from portal.domain.errors import ActionError, FetchError, RequestFailedError
from portal.domain.gateway import FetchGateway
from portal.domain.navigator import Navigator
from portal.domain.types import Instance
from portal.observability import ACTION_FAILURES
from portal.services.instance_poller import InstancePoller
from portal.services.session_tracker import SessionTracker
from portal.services.ui_state import UiState

logger = logging.getLogger("portal-client")


class InstanceActions:
    """Login, logout and instance operations.

    Failures are caught here and turned into messages on ``ui``; nothing
    raised by an action reaches the polling loop.
    """

    def __init__(
        self,
        gateway: FetchGateway,
        tracker: SessionTracker,
        poller: InstancePoller,
        navigator: Navigator,
        ui: UiState,
    ):
        self.gateway = gateway
        self.tracker = tracker
        self.poller = poller
        self.navigator = navigator
        self.ui = ui

    # =========================================================================
    # Authentication
    # =========================================================================

    def login_anonymous(self) -> bool:
        """
        Log in as a guest, then refresh the session without waiting for a tick.

        Returns:
            True on success
        """
        self.ui.auth_error = None
        try:
            self.gateway.call(ANONYMOUS_LOGIN_ENDPOINT, method="POST", unauthenticated_ok=False)
        except FetchError as e:
            logger.error(f"Anonymous login failed: {e}")
            ACTION_FAILURES.labels(action="login").inc()
            self.ui.auth_error = MSG_LOGIN_FAILED
            return False
        logger.info("Anonymous login succeeded")
        self.tracker.refresh()
        return True

    def login_external(self) -> None:
        """Send the browser to the identity provider."""
        url = self.gateway.url_for(f"auth/{IDENTITY_PROVIDER}/authorize")
        logger.info("Redirecting to identity provider")
        self.navigator.redirect(url)

    def logout(self) -> None:
        """
        Log out. Best effort, always terminal: whatever the server says,
        local markers are cleared and the client reloads.
        """
        try:
            self.gateway.call(LOGOUT_ENDPOINT, method="POST")
        except FetchError as e:
            logger.warning(f"Logout request failed, clearing local session anyway: {e}")
        finally:
            self.gateway.clear_session_markers()
            self.poller.reset()
            self.tracker.reset()
            logger.info("Logged out")
            self.navigator.reload()

    # =========================================================================
    # Instances
    # =========================================================================

    @contextmanager
    def _creating(self) -> Iterator[None]:
        """Hold the in-flight flag for the duration of a create request."""
        self.ui.creating = True
        try:
            yield
        finally:
            self.ui.creating = False

    def create_instance(self, type_id: str, persistent: bool) -> Instance | None:
        """
        Create an instance and return to the dashboard on success.

        Args:
            type_id: Instance type identifier
            persistent: Request persistent storage

        Returns:
            The created instance, or None on failure (message in
            ``ui.create_error``)
        """
        self.ui.create_error = None
        try:
            with self._creating():
                instance = self._post_instance(type_id, persistent)
        except ActionError as e:
            logger.error(f"Instance creation failed ({type_id}): {e.message}")
            ACTION_FAILURES.labels(action="create").inc()
            self.ui.create_error = e.message
            return None

        logger.info(f"Instance {instance.id} created (type={type_id}, persistent={persistent})")
        self.poller.refresh()
        self.ui.close_create()
        return instance

    def _post_instance(self, type_id: str, persistent: bool) -> Instance:
        try:
            data = self.gateway.call(
                INSTANCES_ENDPOINT,
                method="POST",
                body={"type": type_id, "persistent": persistent},
                unauthenticated_ok=False,
            )
            if data is None:
                raise ActionError("create", MSG_CREATE_FAILED)
            return Instance.model_validate(data)
        except RequestFailedError as e:
            if e.capacity_exceeded:
                raise ActionError("create", MSG_MAX_INSTANCES) from e
            raise ActionError("create", MSG_CREATE_FAILED) from e
        except (FetchError, ValidationError) as e:
            raise ActionError("create", MSG_CREATE_FAILED) from e

    def delete_instance(self, instance_id: str) -> bool:
        """
        Delete an instance. Failures are logged, never shown.

        Returns:
            True on success
        """
        try:
            self.gateway.call(
                f"{INSTANCES_ENDPOINT}/{instance_id}", method="DELETE", unauthenticated_ok=False
            )
        except FetchError as e:
            logger.error(f"Failed to delete instance {instance_id}: {e}")
            ACTION_FAILURES.labels(action="delete").inc()
            return False
        logger.info(f"Instance {instance_id} deleted")
        self.poller.refresh()
        return True

    def open_instance(self, instance_id: str) -> None:
        """Route the next page load to *instance_id* and go there."""
        self.gateway.set_instance_marker(instance_id)
        logger.info(f"Opening instance {instance_id}")
        self.navigator.redirect(f"{self.gateway.base_url}{MARKER_PATH}")
