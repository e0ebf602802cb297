"""
Fetch gateway: the single path from the client to the workspace API.
"""

from __future__ import annotations

import logging
from http.cookiejar import CookieJar
from typing import Any
from urllib.parse import urlsplit

import requests
from requests.cookies import create_cookie

from portal.config.settings import (
    API_PREFIX,
    INSTANCE_MARKER,
    MARKER_PATH,
    SESSION_MARKER,
)
from portal.domain.errors import RequestFailedError, UnreachableError
from portal.observability import API_REQUESTS
from portal.resilience import CircuitBreaker, CircuitOpenError

logger = logging.getLogger("portal-client")


class FetchGateway:
    """Client for the workspace API.

    Normalizes every response: 401 is "no session" (``None``), any other
    non-success status raises :class:`RequestFailedError`, and transport
    failures raise :class:`UnreachableError`. No retries happen here.
    """

    def __init__(
        self,
        base_url: str,
        prefix: str = API_PREFIX,
        timeout: float | None = None,
        cookies: CookieJar | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: Server origin, e.g. ``https://desk.example.org``
            prefix: API path prefix
            timeout: Per-request timeout in seconds (None: transport default)
            cookies: Optional cookie jar holding the session markers
            circuit_breaker: Optional pre-built CircuitBreaker
        """
        self.base_url = base_url.rstrip("/")
        self.prefix = "/" + prefix.strip("/")
        self.timeout = timeout
        self.http = requests.Session()
        if cookies is not None:
            self.http.cookies = cookies
        self._circuit = circuit_breaker or CircuitBreaker(
            name="api", failure_types=(requests.ConnectionError, requests.Timeout)
        )

    @property
    def cookies(self) -> CookieJar:
        return self.http.cookies

    def url_for(self, endpoint: str) -> str:
        """Absolute URL of an API endpoint."""
        return f"{self.base_url}{self.prefix}/{endpoint.lstrip('/')}"

    def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        unauthenticated_ok: bool = True,
    ) -> Any:
        """
        Issue one request and normalize the response.

        Args:
            endpoint: Path relative to the API prefix (``auth/me``)
            method: HTTP method
            body: Optional JSON body
            unauthenticated_ok: Whether 401 means "no session" (None) rather
                than a failed request; actions pass False

        Returns:
            Decoded JSON, or None for 401 and empty responses

        Raises:
            UnreachableError: Server could not be reached
            RequestFailedError: Non-success status (401 too, unless
                ``unauthenticated_ok``)
        """
        url = self.url_for(endpoint)
        kwargs: dict[str, Any] = {"timeout": self.timeout}
        if body is not None:
            kwargs["json"] = body

        try:
            resp = self._circuit.call(self.http.request, method, url, **kwargs)
        except CircuitOpenError as e:
            API_REQUESTS.labels(endpoint=endpoint, outcome="circuit_open").inc()
            raise UnreachableError(str(e)) from e
        except requests.RequestException as e:
            API_REQUESTS.labels(endpoint=endpoint, outcome="unreachable").inc()
            logger.warning(f"{method} {endpoint} unreachable: {e}")
            raise UnreachableError(f"{method} {endpoint}: {e}") from e

        if resp.status_code == 401:
            API_REQUESTS.labels(endpoint=endpoint, outcome="unauthenticated").inc()
            if not unauthenticated_ok:
                raise RequestFailedError(endpoint, resp.status_code)
            return None

        if not resp.ok:
            API_REQUESTS.labels(endpoint=endpoint, outcome="failed").inc()
            raise RequestFailedError(endpoint, resp.status_code)

        API_REQUESTS.labels(endpoint=endpoint, outcome="ok").inc()
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            logger.warning(f"{method} {endpoint} returned a non-JSON body")
            raise RequestFailedError(endpoint, resp.status_code) from e

    # ------------------------------------------------------------------
    # Session markers
    # ------------------------------------------------------------------

    def set_instance_marker(self, instance_id: str) -> None:
        """Remember which instance the server should route to."""
        self.http.cookies.set_cookie(create_cookie(
            INSTANCE_MARKER,
            instance_id,
            domain=urlsplit(self.base_url).hostname or "",
            path=MARKER_PATH,
        ))

    def clear_session_markers(self) -> None:
        """Drop the session and selected-instance markers."""
        for name in (SESSION_MARKER, INSTANCE_MARKER):
            for cookie in list(self.http.cookies):
                if cookie.name == name and cookie.path == MARKER_PATH:
                    self.http.cookies.clear(cookie.domain, cookie.path, cookie.name)
