"""
Lightweight DI container for portal services.

Everything is built lazily from :class:`PortalSettings`; tests replace
individual services by assigning the private attributes.
"""

from __future__ import annotations

import os
from http.cookiejar import LWPCookieJar
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from portal.config.models import PortalSettings
    from portal.domain.gateway import FetchGateway
    from portal.domain.navigator import Navigator
    from portal.services.actions import InstanceActions
    from portal.services.instance_poller import InstancePoller
    from portal.services.scheduler import EventLoop
    from portal.services.session_tracker import SessionTracker
    from portal.services.ui_state import UiState


class ServiceContainer:
    """Lightweight service container holding one page load's services."""

    def __init__(self, settings: PortalSettings, navigator: Navigator) -> None:
        self.settings = settings
        self.navigator = navigator
        self._cookie_jar: LWPCookieJar | None = None
        self._loop: EventLoop | None = None
        self._gateway: FetchGateway | None = None
        self._tracker: SessionTracker | None = None
        self._poller: InstancePoller | None = None
        self._ui: UiState | None = None
        self._actions: InstanceActions | None = None

    @property
    def cookie_jar(self) -> LWPCookieJar:
        if self._cookie_jar is None:
            path = Path(self.settings.session.cookie_file).expanduser()
            jar = LWPCookieJar(str(path))
            if path.exists():
                jar.load(ignore_discard=True)
            self._cookie_jar = jar
        return self._cookie_jar

    def save_cookies(self) -> None:
        """Persist the session markers for the next invocation."""
        if self._cookie_jar is None:
            return
        path = Path(self.settings.session.cookie_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        self._cookie_jar.save(ignore_discard=True)
        # The session marker is a credential: owner-only
        os.chmod(path, 0o600)

    @property
    def loop(self) -> EventLoop:
        if self._loop is None:
            from portal.services.scheduler import EventLoop

            self._loop = EventLoop()
        return self._loop

    @property
    def gateway(self) -> FetchGateway:
        if self._gateway is None:
            import requests

            from portal.domain.gateway import FetchGateway
            from portal.resilience import CircuitBreaker

            api = self.settings.api
            resilience = self.settings.resilience
            self._gateway = FetchGateway(
                api.base_url,
                prefix=api.prefix,
                timeout=api.timeout,
                cookies=self.cookie_jar,
                circuit_breaker=CircuitBreaker(
                    name="api",
                    failure_threshold=resilience.failure_threshold,
                    recovery_timeout=resilience.recovery_timeout,
                    failure_types=(requests.ConnectionError, requests.Timeout),
                ),
            )
        return self._gateway

    @property
    def tracker(self) -> SessionTracker:
        if self._tracker is None:
            from portal.services.session_tracker import SessionTracker

            self._tracker = SessionTracker(self.gateway)
        return self._tracker

    @property
    def poller(self) -> InstancePoller:
        if self._poller is None:
            from portal.services.instance_poller import InstancePoller

            self._poller = InstancePoller(
                self.gateway,
                self.loop,
                interval_ms=self.settings.polling.interval_ms,
            )
        return self._poller

    @property
    def ui(self) -> UiState:
        if self._ui is None:
            from portal.services.ui_state import UiState

            self._ui = UiState()
        return self._ui

    @property
    def actions(self) -> InstanceActions:
        if self._actions is None:
            from portal.services.actions import InstanceActions

            self._actions = InstanceActions(
                self.gateway,
                self.tracker,
                self.poller,
                self.navigator,
                self.ui,
            )
        return self._actions

    def shutdown(self) -> None:
        """Stop every timer and persist cookies."""
        if self._poller is not None:
            self._poller.stop()
        if self._loop is not None:
            self._loop.stop()
        self.save_cookies()
