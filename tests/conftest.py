"""
Shared pytest fixtures for the portal test suite.
"""

import os

import pytest

# ---------------------------------------------------------------------------
# Environment stubs – must be set BEFORE any portal module is imported so
# that module-level config paths never point at the developer's home.
# ---------------------------------------------------------------------------

os.environ.setdefault("CONFIG_PATH", "/tmp/portal-tests/config")

from portal.app import ConsoleNavigator, PortalApp  # noqa: E402
from portal.config.models import PortalSettings  # noqa: E402
from portal.container import ServiceContainer  # noqa: E402
from portal.domain.errors import RequestFailedError  # noqa: E402
from portal.domain.gateway import FetchGateway  # noqa: E402
from portal.resilience import CircuitBreaker  # noqa: E402
from portal.services.scheduler import EventLoop  # noqa: E402

BASE_URL = "http://portal.test"


# ---------------------------------------------------------------------------
# Clock and event loop
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, delay):
        self.now += delay


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def loop(clock):
    """EventLoop driven by the fake clock."""
    return EventLoop(timefunc=clock, delayfunc=clock.sleep)


@pytest.fixture
def advance(loop, clock):
    """advance(seconds): move the clock forward and run every due tick."""
    def _advance(seconds):
        clock.now += seconds
        loop.run_pending()
    return _advance


# ---------------------------------------------------------------------------
# Workspace API stand-in
# ---------------------------------------------------------------------------

class FakeApi:
    """Scripted responses for FetchGateway.call, keyed by (method, endpoint).

    A value may be a payload, an exception instance (raised), a callable
    taking the request body, or ``UNAUTHENTICATED`` (a 401, normalized the
    way the gateway does it).
    """

    UNAUTHENTICATED = object()

    def __init__(self):
        self.routes = {}
        self.calls = []

    def set(self, endpoint, result, method="GET"):
        self.routes[(method, endpoint)] = result

    def count(self, endpoint, method="GET"):
        return sum(1 for m, e, _ in self.calls if (m, e) == (method, endpoint))

    def __call__(self, endpoint, method="GET", body=None, unauthenticated_ok=True):
        self.calls.append((method, endpoint, body))
        result = self.routes.get((method, endpoint))
        if result is self.UNAUTHENTICATED:
            if unauthenticated_ok:
                return None
            raise RequestFailedError(endpoint, 401)
        if isinstance(result, BaseException):
            raise result
        if callable(result):
            return result(body)
        return result


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def gateway(api, mocker):
    """Real FetchGateway whose call() is answered by the FakeApi."""
    gw = FetchGateway(BASE_URL, circuit_breaker=CircuitBreaker(name="test-api"))
    mocker.patch.object(gw, "call", side_effect=api)
    return gw


# ---------------------------------------------------------------------------
# Payload factories
# ---------------------------------------------------------------------------

class Payloads:
    """Wire payloads as the server sends them."""

    @staticmethod
    def session(status=None, kind="anonymous", user_id="u1", address=None):
        data = {"user": {"id": user_id, "type": kind}}
        if status is not None:
            data["instance"] = {"status": status, "pod_ip": address}
        return data

    @staticmethod
    def config(methods=("anonymous",), auto_login=False, persistence=True, **extra):
        data = {
            "title": "Hakoniwa",
            "message": "Welcome",
            "logo_url": "/logo.svg",
            "auth_methods": list(methods),
            "oidc_name": "Corporate SSO",
            "auth_auto_login": auto_login,
            "enable_persistence": persistence,
        }
        data.update(extra)
        return data

    @staticmethod
    def instance(instance_id="i1", type_id="ubuntu", status="pending", name=None):
        return {
            "id": instance_id,
            "name": name or f"{type_id}-{instance_id}",
            "type": type_id,
            "status": status,
            "pod_ip": None,
        }

    @staticmethod
    def instance_type(type_id="ubuntu", persistable=False, name=None):
        return {
            "id": type_id,
            "name": name or type_id.capitalize(),
            "description": f"{type_id} desktop",
            "logo_url": f"/logos/{type_id}.svg",
            "persistable": persistable,
        }


@pytest.fixture
def payloads():
    return Payloads


# ---------------------------------------------------------------------------
# Settings, container, application
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    return PortalSettings(
        api={"base_url": BASE_URL},
        session={"cookie_file": str(tmp_path / "cookies.txt")},
    )


@pytest.fixture
def navigator():
    return ConsoleNavigator()


@pytest.fixture
def container(settings, navigator, gateway, loop):
    """ServiceContainer wired to the fake API and the fake-clock loop."""
    c = ServiceContainer(settings, navigator)
    c._gateway = gateway
    c._loop = loop
    navigator.on_leave = loop.stop
    return c


@pytest.fixture
def make_app(container):
    """make_app(auto_login=True): PortalApp over the test container."""
    def _make(auto_login=True):
        return PortalApp(container, auto_login=auto_login)
    return _make
