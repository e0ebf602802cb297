"""
Workspace Portal application and console entry point.

``PortalApp`` is one page load of the portal: it fetches the configuration,
follows the session, applies every reconciliation decision (timers,
instance polling, reload) and fires auto-login when it is unambiguous.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import ValidationError

from portal.config.loader import PortalConfig
from portal.config.models import PortalSettings
from portal.config.settings import CONFIGURATION_ENDPOINT, MSG_LOGIN_FAILED
from portal.container import ServiceContainer
from portal.domain.errors import FetchError
from portal.domain.lifecycle import Reconciliation, ViewKind, ViewState, reconcile
from portal.domain.policies import Eligibility, decide_auto_login, persistence_eligibility
from portal.domain.types import AuthMethod, Configuration, Instance, InstanceListing, Session
from portal.observability import VIEW_STATE, setup_json_logging, start_metrics_server
from portal.services.scheduler import PeriodicTask

logger = logging.getLogger("portal-client")


# =============================================================================
# Portal Application
# =============================================================================

class PortalApp:
    """One page load of the portal."""

    def __init__(self, container: ServiceContainer, auto_login: bool = True):
        """
        Initialize the application.

        Args:
            container: Services for this page load
            auto_login: Whether the auto-login policy is evaluated at all
        """
        self.container = container
        self.navigator = container.navigator
        self.tracker = container.tracker
        self.poller = container.poller
        self.actions = container.actions
        self.ui = container.ui
        self.config: Configuration | None = None
        self.handed_off = False
        self._auto_login_enabled = auto_login
        self._auto_login_fired = False
        self._reconciliation: Reconciliation | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._session_task = PeriodicTask(
            container.loop,
            "session",
            self.tracker.refresh,
            container.settings.polling.interval_ms,
        )

    # =========================================================================
    # Derived state
    # =========================================================================

    @property
    def session(self) -> Session | None:
        return self.tracker.session

    @property
    def error_message(self) -> str | None:
        return self.ui.auth_error or self.tracker.last_error

    @property
    def reconciliation(self) -> Reconciliation:
        if self._reconciliation is None:
            return self._reconcile()
        return self._reconciliation

    @property
    def view(self) -> ViewState:
        return self.reconciliation.view

    def listing(self) -> list[InstanceListing]:
        return self.poller.listing()

    def eligibility(self) -> Eligibility:
        """Persistent-storage eligibility for the current selection."""
        user = self.session.user if self.session else None
        selected = self.poller.instance_type(self.ui.selected_type_id)
        return persistence_eligibility(self.config, user, selected)

    # =========================================================================
    # Startup
    # =========================================================================

    def boot(self, entry_url: str | None = None) -> ViewState:
        """
        Load the portal: entry URL, configuration, first session fetch.

        Returns:
            The view after the first reconciliation
        """
        if entry_url:
            self._consume_entry_error(entry_url)
        self.config = self._fetch_configuration()
        self._unsubscribe = self.tracker.subscribe(lambda _tracker: self.recompute())
        self.tracker.refresh()
        return self.view

    def _consume_entry_error(self, entry_url: str) -> None:
        """Show a provider-side login error and strip it from the address."""
        parts = urlsplit(entry_url)
        params = parse_qsl(parts.query, keep_blank_values=True)
        errors = [value for key, value in params if key == "error"]
        if not errors:
            return
        code = errors[0]
        logger.warning(f"Login error reported by identity provider: {code}")
        self.ui.entry_error = code
        self.ui.auth_error = f"{MSG_LOGIN_FAILED}: {code}" if code else MSG_LOGIN_FAILED
        query = urlencode([(key, value) for key, value in params if key != "error"])
        self.navigator.replace_url(urlunsplit(parts._replace(query=query)))

    def _fetch_configuration(self) -> Configuration | None:
        try:
            data = self.container.gateway.call(CONFIGURATION_ENDPOINT)
            config = Configuration.model_validate(data or {})
        except (FetchError, ValidationError) as e:
            logger.error(f"Could not load portal configuration: {e}")
            return None
        methods = sorted(m.value for m in config.auth_methods)
        logger.info(f"Configuration loaded: {config.title} (auth: {methods}, auto-login: {config.auto_login})")
        return config

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def _reconcile(self) -> Reconciliation:
        return reconcile(
            self.session,
            bool(self.error_message),
            error_message=self.error_message,
            loading=not self.tracker.loaded,
            create_view=self.ui.create_view,
            interval_ms=self.container.settings.polling.interval_ms,
        )

    def recompute(self) -> Reconciliation:
        """Recompute the view from scratch and apply its timer decisions."""
        previous = self._reconciliation
        rec = self._reconcile()
        self._reconciliation = rec
        VIEW_STATE.state(rec.view.kind.value)
        if previous is None or previous.view != rec.view:
            logger.info(f"View: {rec.view.to_dict()}")

        if rec.reload:
            self._stop_timers()
            self.handed_off = True
            logger.info("Instance is running, reloading into it")
            self.navigator.reload()
            return rec

        if rec.should_poll:
            self._session_task.reschedule(rec.poll_interval_ms)
            self._session_task.start()
        else:
            self._session_task.stop()

        session = self.session
        if session is None:
            self.poller.reset()
        elif rec.view.kind == ViewKind.DASHBOARD:
            self.poller.start(session.user.id)
        else:
            self.poller.stop()

        self._maybe_auto_login()
        return rec

    def _maybe_auto_login(self) -> None:
        if not self._auto_login_enabled or self._auto_login_fired:
            return
        method = decide_auto_login(
            self.config,
            session=self.session,
            loading=not self.tracker.loaded,
            has_error=bool(self.error_message),
            entry_error=self.ui.entry_error is not None,
        )
        if method is None:
            return
        self._auto_login_fired = True
        logger.info(f"Auto-login with the only configured method: {method.value}")
        if method == AuthMethod.ANONYMOUS:
            self.actions.login_anonymous()
            self.recompute()
        else:
            self._stop_timers()
            self.actions.login_external()

    def _stop_timers(self) -> None:
        self._session_task.stop()
        self.poller.stop()

    # =========================================================================
    # User operations
    # =========================================================================

    def login_anonymous(self) -> bool:
        ok = self.actions.login_anonymous()
        self.recompute()
        return ok

    def login_external(self) -> None:
        self._stop_timers()
        self.actions.login_external()

    def logout(self) -> None:
        self._stop_timers()
        self.actions.logout()

    def retry(self) -> None:
        """Manual recovery from the error view: full reload."""
        self._stop_timers()
        self.navigator.reload()

    def refresh_instances(self) -> list[InstanceListing]:
        """Fetch catalog (if needed) and instance list right now."""
        if not self.poller.catalog_loaded:
            self.poller.load_catalog()
        self.poller.refresh()
        return self.listing()

    def show_create(self) -> None:
        self.ui.open_create()
        if not self.poller.catalog_loaded:
            self.poller.load_catalog()
        self.recompute()

    def show_dashboard(self) -> None:
        self.ui.close_create()
        self.recompute()

    def select_type(self, type_id: str) -> None:
        self.ui.select_type(type_id)

    def set_persistent(self, enabled: bool) -> bool:
        """
        Tick or untick the persistent-storage option.

        Returns:
            False if the option is not offered for the current selection
        """
        if enabled and not self.eligibility().allowed:
            self.ui.persistent = False
            return False
        self.ui.persistent = enabled
        return True

    def create(self) -> Instance | None:
        """Create an instance from the current selection."""
        type_id = self.ui.selected_type_id
        if type_id is None:
            logger.warning("Create requested without a selected instance type")
            return None
        persistent = self.ui.persistent and self.eligibility().allowed
        instance = self.actions.create_instance(type_id, persistent)
        self.recompute()
        return instance

    def delete(self, instance_id: str) -> bool:
        return self.actions.delete_instance(instance_id)

    def open(self, instance_id: str) -> None:
        self._stop_timers()
        self.actions.open_instance(instance_id)

    # =========================================================================
    # Loop
    # =========================================================================

    def run(self) -> None:
        """Run the timers until a reload, a redirect or nothing is left to poll."""
        self.container.loop.run()

    def shutdown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._stop_timers()
        self.container.shutdown()


# =============================================================================
# Console surface
# =============================================================================

class ConsoleNavigator:
    """Navigator for the console: records where the portal wants to go."""

    def __init__(self, url: str | None = None):
        self.url = url
        self.reload_requested = False
        self.redirect_url: str | None = None
        self.on_leave: Callable[[], None] | None = None

    def reload(self) -> None:
        self.reload_requested = True
        self._leave()

    def redirect(self, url: str) -> None:
        self.redirect_url = url
        self._leave()

    def replace_url(self, url: str) -> None:
        self.url = url

    def _leave(self) -> None:
        if self.on_leave is not None:
            self.on_leave()


def _build(settings: PortalSettings, entry_url: str | None = None,
           auto_login: bool = False) -> tuple[PortalApp, ConsoleNavigator]:
    navigator = ConsoleNavigator(entry_url)
    container = ServiceContainer(settings, navigator)
    navigator.on_leave = container.loop.stop
    return PortalApp(container, auto_login=auto_login), navigator


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, default=str))


def _listing_dict(item: InstanceListing) -> dict:
    d = item.instance.model_dump(mode="json")
    d["type_name"] = item.type_name
    return d


def _cmd_watch(args: argparse.Namespace, settings: PortalSettings) -> int:
    if settings.metrics.enabled:
        start_metrics_server(settings.metrics.port)

    entry_url = args.entry_url
    while True:
        app, navigator = _build(settings, entry_url, auto_login=True)
        try:
            app.boot(entry_url)
            app.run()
        except KeyboardInterrupt:
            logger.info("Interrupted")
            return 130
        finally:
            app.shutdown()

        if app.handed_off:
            instance = app.session.instance if app.session else None
            print(instance.address if instance and instance.address else settings.api.base_url)
            return 0
        if navigator.redirect_url:
            print(navigator.redirect_url)
            return 0
        if navigator.reload_requested:
            # Reload keeps the address bar, which no longer carries the error
            entry_url = navigator.url
            continue
        _print_json(app.view.to_dict())
        return 1 if app.view.kind == ViewKind.ERROR else 0


def _cmd_status(args: argparse.Namespace, settings: PortalSettings) -> int:
    app, _ = _build(settings, args.entry_url)
    try:
        view = app.boot(args.entry_url)
        session = app.session
        _print_json({
            **view.to_dict(),
            "session": session.model_dump(mode="json") if session else None,
            "error": app.error_message,
        })
    finally:
        app.shutdown()
    return 1 if view.kind == ViewKind.ERROR else 0


def _cmd_login(args: argparse.Namespace, settings: PortalSettings) -> int:
    app, navigator = _build(settings)
    try:
        app.boot()
        if app.session is not None:
            _print_json(app.view.to_dict())
            return 0
        if args.external:
            app.login_external()
            print(navigator.redirect_url)
            return 0
        ok = app.login_anonymous()
        _print_json(app.view.to_dict())
        return 0 if ok else 1
    finally:
        app.shutdown()


def _cmd_logout(args: argparse.Namespace, settings: PortalSettings) -> int:
    app, _ = _build(settings)
    try:
        app.boot()
        app.logout()
    finally:
        app.shutdown()
    return 0


def _cmd_list(args: argparse.Namespace, settings: PortalSettings) -> int:
    app, _ = _build(settings)
    try:
        app.boot()
        if app.session is None:
            _print_json(app.view.to_dict())
            return 1
        _print_json([_listing_dict(item) for item in app.refresh_instances()])
    finally:
        app.shutdown()
    return 0


def _cmd_create(args: argparse.Namespace, settings: PortalSettings) -> int:
    app, _ = _build(settings)
    try:
        app.boot()
        if app.session is None:
            _print_json(app.view.to_dict())
            return 1
        app.show_create()
        app.select_type(args.type)
        if args.persistent and not app.set_persistent(True):
            reason = app.eligibility().reason
            print(f"warning: {reason.message if reason else 'persistent storage unavailable'}", file=sys.stderr)
        instance = app.create()
        if instance is None:
            print(app.ui.create_error, file=sys.stderr)
            return 1
        _print_json(instance.model_dump(mode="json"))
    finally:
        app.shutdown()
    return 0


def _cmd_delete(args: argparse.Namespace, settings: PortalSettings) -> int:
    app, _ = _build(settings)
    try:
        app.boot()
        ok = app.delete(args.id)
    finally:
        app.shutdown()
    return 0 if ok else 1


def _cmd_open(args: argparse.Namespace, settings: PortalSettings) -> int:
    app, navigator = _build(settings)
    try:
        app.boot()
        app.open(args.id)
        print(navigator.redirect_url)
    finally:
        app.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="portal", description="Workspace Portal client")
    p.add_argument("--config", help="Path to portal.yml")
    p.add_argument("--base-url", help="Server origin (overrides portal.yml)")
    p.add_argument("--log-level", help="Log level (overrides portal.yml)")
    sp = p.add_subparsers(dest="cmd", required=True)

    pw = sp.add_parser("watch", help="Follow the session until the instance is ready")
    pw.add_argument("--entry-url", help="Address the portal was opened with")
    pw.set_defaults(func=_cmd_watch)

    ps = sp.add_parser("status", help="Print the current view as JSON")
    ps.add_argument("--entry-url", help="Address the portal was opened with")
    ps.set_defaults(func=_cmd_status)

    pl = sp.add_parser("login", help="Log in (guest by default)")
    pl.add_argument("--external", action="store_true", help="Use the identity provider")
    pl.set_defaults(func=_cmd_login)

    po = sp.add_parser("logout", help="Log out and clear local markers")
    po.set_defaults(func=_cmd_logout)

    pi = sp.add_parser("list", help="List instances")
    pi.set_defaults(func=_cmd_list)

    pc = sp.add_parser("create", help="Create an instance")
    pc.add_argument("type", help="Instance type id")
    pc.add_argument("--persistent", action="store_true", help="Request persistent storage")
    pc.set_defaults(func=_cmd_create)

    pd = sp.add_parser("delete", help="Delete an instance")
    pd.add_argument("id", help="Instance id")
    pd.set_defaults(func=_cmd_delete)

    pn = sp.add_parser("open", help="Select an instance and print its address")
    pn.add_argument("id", help="Instance id")
    pn.set_defaults(func=_cmd_open)

    ns = p.parse_args(argv)
    settings = PortalConfig.load(ns.config)
    if ns.base_url:
        settings = settings.model_copy(update={
            "api": settings.api.model_copy(update={"base_url": ns.base_url}),
        })
    setup_json_logging(level=ns.log_level or settings.logging.level)
    return int(ns.func(ns, settings))


if __name__ == "__main__":
    sys.exit(main())
