"""
Tests for portal.domain.gateway (FetchGateway).
"""

from unittest.mock import MagicMock

import pytest
import requests
from requests.cookies import create_cookie

from portal.config.settings import INSTANCE_MARKER, SESSION_MARKER
from portal.domain.errors import RequestFailedError, UnreachableError
from portal.domain.gateway import FetchGateway
from portal.resilience import CircuitBreaker, CircuitState


def _response(status=200, payload=None, content=b"{}", bad_json=False):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.content = content
    if bad_json:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def http_gateway():
    return FetchGateway(
        "http://portal.test/",
        circuit_breaker=CircuitBreaker(
            name="gw-test",
            failure_threshold=2,
            recovery_timeout=60,
            failure_types=(requests.ConnectionError, requests.Timeout),
        ),
    )


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------

class TestUrls:

    def test_url_for_joins_prefix(self, http_gateway):
        assert http_gateway.url_for("auth/me") == "http://portal.test/_hakoniwa/api/auth/me"

    def test_url_for_strips_leading_slash(self, http_gateway):
        assert http_gateway.url_for("/instances") == "http://portal.test/_hakoniwa/api/instances"

    def test_custom_prefix(self):
        gw = FetchGateway("http://portal.test", prefix="api/v1/")
        assert gw.url_for("instances") == "http://portal.test/api/v1/instances"


# ---------------------------------------------------------------------------
# Response normalization
# ---------------------------------------------------------------------------

class TestCall:

    def test_ok_returns_decoded_json(self, http_gateway, mocker):
        """200 → decoded payload."""
        mocker.patch.object(http_gateway.http, "request", return_value=_response(200, {"id": "i1"}))
        assert http_gateway.call("instances") == {"id": "i1"}

    def test_request_parameters(self, http_gateway, mocker):
        """Method, URL, JSON body and timeout are passed through."""
        http_gateway.timeout = 5.0
        req = mocker.patch.object(http_gateway.http, "request", return_value=_response(201, {"id": "i1"}))

        http_gateway.call("instances", method="POST", body={"type": "ubuntu", "persistent": False})

        req.assert_called_once_with(
            "POST",
            "http://portal.test/_hakoniwa/api/instances",
            timeout=5.0,
            json={"type": "ubuntu", "persistent": False},
        )

    def test_401_is_no_session(self, http_gateway, mocker):
        """401 is not an error: the caller gets None."""
        mocker.patch.object(http_gateway.http, "request", return_value=_response(401))
        assert http_gateway.call("auth/me") is None

    def test_401_on_action_is_failure(self, http_gateway, mocker):
        """Actions opt out of the no-session reading: 401 raises."""
        mocker.patch.object(http_gateway.http, "request", return_value=_response(401, content=b""))
        with pytest.raises(RequestFailedError) as exc:
            http_gateway.call("auth/anonymous", method="POST", unauthenticated_ok=False)
        assert exc.value.status_code == 401

    def test_503_raises_capacity_exceeded(self, http_gateway, mocker):
        mocker.patch.object(http_gateway.http, "request", return_value=_response(503))
        with pytest.raises(RequestFailedError) as exc:
            http_gateway.call("instances", method="POST", body={})
        assert exc.value.status_code == 503
        assert exc.value.capacity_exceeded is True

    def test_500_raises_request_failed(self, http_gateway, mocker):
        mocker.patch.object(http_gateway.http, "request", return_value=_response(500))
        with pytest.raises(RequestFailedError) as exc:
            http_gateway.call("auth/me")
        assert exc.value.endpoint == "auth/me"
        assert exc.value.capacity_exceeded is False

    def test_no_content_returns_none(self, http_gateway, mocker):
        mocker.patch.object(http_gateway.http, "request", return_value=_response(204, content=b""))
        assert http_gateway.call("instances/i1", method="DELETE") is None

    def test_empty_body_returns_none(self, http_gateway, mocker):
        mocker.patch.object(http_gateway.http, "request", return_value=_response(200, content=b""))
        assert http_gateway.call("auth/anonymous", method="POST") is None

    def test_non_json_body_raises(self, http_gateway, mocker):
        mocker.patch.object(http_gateway.http, "request", return_value=_response(200, content=b"<html>", bad_json=True))
        with pytest.raises(RequestFailedError):
            http_gateway.call("auth/me")

    def test_connection_error_is_unreachable(self, http_gateway, mocker):
        mocker.patch.object(http_gateway.http, "request", side_effect=requests.ConnectionError("refused"))
        with pytest.raises(UnreachableError):
            http_gateway.call("auth/me")

    def test_timeout_is_unreachable(self, http_gateway, mocker):
        mocker.patch.object(http_gateway.http, "request", side_effect=requests.Timeout("slow"))
        with pytest.raises(UnreachableError):
            http_gateway.call("auth/me")


# ---------------------------------------------------------------------------
# Circuit breaker integration
# ---------------------------------------------------------------------------

class TestCircuit:

    def test_open_circuit_skips_network(self, http_gateway, mocker):
        """After the threshold the transport is not touched and the error stays Unreachable."""
        req = mocker.patch.object(http_gateway.http, "request", side_effect=requests.ConnectionError("down"))

        for _ in range(2):
            with pytest.raises(UnreachableError):
                http_gateway.call("auth/me")
        assert http_gateway._circuit.state == CircuitState.OPEN

        with pytest.raises(UnreachableError):
            http_gateway.call("auth/me")
        assert req.call_count == 2

    def test_http_errors_do_not_trip(self, http_gateway, mocker):
        """A server that answers, even with 500, is reachable."""
        mocker.patch.object(http_gateway.http, "request", return_value=_response(500))
        for _ in range(5):
            with pytest.raises(RequestFailedError):
                http_gateway.call("auth/me")
        assert http_gateway._circuit.state == CircuitState.CLOSED


# ---------------------------------------------------------------------------
# Session markers
# ---------------------------------------------------------------------------

class TestMarkers:

    def _names(self, gw):
        return {c.name for c in gw.cookies}

    def test_set_instance_marker(self, http_gateway):
        http_gateway.set_instance_marker("i42")
        cookie = next(c for c in http_gateway.cookies if c.name == INSTANCE_MARKER)
        assert cookie.value == "i42"
        assert cookie.path == "/"
        assert cookie.domain == "portal.test"

    def test_set_instance_marker_replaces_previous(self, http_gateway):
        http_gateway.set_instance_marker("i1")
        http_gateway.set_instance_marker("i2")
        values = [c.value for c in http_gateway.cookies if c.name == INSTANCE_MARKER]
        assert values == ["i2"]

    def test_clear_session_markers(self, http_gateway):
        """Both markers go; unrelated cookies stay."""
        http_gateway.cookies.set_cookie(create_cookie(SESSION_MARKER, "s3cr3t", domain="portal.test", path="/"))
        http_gateway.cookies.set_cookie(create_cookie("theme", "dark", domain="portal.test", path="/"))
        http_gateway.set_instance_marker("i1")

        http_gateway.clear_session_markers()

        assert self._names(http_gateway) == {"theme"}

    def test_clear_without_markers_is_noop(self, http_gateway):
        http_gateway.clear_session_markers()
        assert self._names(http_gateway) == set()

    def test_external_cookie_jar(self):
        """A provided jar (e.g. the persisted LWP jar) backs the session."""
        from http.cookiejar import LWPCookieJar

        jar = LWPCookieJar()
        gw = FetchGateway("http://portal.test", cookies=jar)
        gw.set_instance_marker("i1")
        assert gw.cookies is jar
        assert INSTANCE_MARKER in {c.name for c in jar}
