"""
Tests for portal.domain.lifecycle (reconcile).
"""

import pytest

from portal.config.settings import MSG_CONNECTION_FAILED, POLL_INTERVAL_MS
from portal.domain.lifecycle import ViewKind, ViewState, reconcile
from portal.domain.types import InstanceStatus, Session


def _session(payloads, status=None):
    return Session.from_payload(payloads.session(status=status))


# ---------------------------------------------------------------------------
# No session
# ---------------------------------------------------------------------------

class TestWithoutSession:

    def test_connecting_before_first_fetch(self):
        rec = reconcile(None, False, loading=True)
        assert rec.view.kind == ViewKind.CONNECTING
        assert rec.should_poll is False
        assert rec.reload is False

    def test_unauthenticated(self):
        rec = reconcile(None, False)
        assert rec.view.kind == ViewKind.UNAUTHENTICATED
        assert rec.should_poll is False

    def test_error_default_message(self):
        rec = reconcile(None, True)
        assert rec.view == ViewState(ViewKind.ERROR, message=MSG_CONNECTION_FAILED)
        assert rec.should_poll is False

    def test_error_custom_message(self):
        rec = reconcile(None, True, error_message="Login failed")
        assert rec.view.message == "Login failed"

    def test_error_wins_over_loading(self):
        """An error during the first load is shown, not the spinner."""
        rec = reconcile(None, True, loading=True)
        assert rec.view.kind == ViewKind.ERROR

    def test_create_flag_ignored_without_session(self):
        assert reconcile(None, False, create_view=True).view.kind == ViewKind.UNAUTHENTICATED


# ---------------------------------------------------------------------------
# With session
# ---------------------------------------------------------------------------

class TestWithSession:

    def test_dashboard_polls(self, payloads):
        rec = reconcile(_session(payloads), False)
        assert rec.view.kind == ViewKind.DASHBOARD
        assert rec.should_poll is True
        assert rec.poll_interval_ms == POLL_INTERVAL_MS

    def test_create_view_does_not_poll(self, payloads):
        rec = reconcile(_session(payloads), False, create_view=True)
        assert rec.view.kind == ViewKind.CREATE
        assert rec.should_poll is False

    @pytest.mark.parametrize("status", ["pending", "terminating"])
    def test_transitional_status_polls(self, payloads, status):
        rec = reconcile(_session(payloads, status), False, create_view=True, interval_ms=500)
        assert rec.view == ViewState(ViewKind.PENDING_INSTANCE, status=InstanceStatus(status))
        assert rec.should_poll is True
        assert rec.poll_interval_ms == 500

    def test_running_reloads(self, payloads):
        rec = reconcile(_session(payloads, "running"), False)
        assert rec.reload is True
        assert rec.should_poll is False
        assert rec.view.status == InstanceStatus.RUNNING

    def test_running_supersedes_error(self, payloads):
        """A stale error never blocks the hand-off to a ready instance."""
        rec = reconcile(_session(payloads, "running"), True, error_message="Failed to connect to server")
        assert rec.reload is True

    def test_stale_error_with_session_keeps_dashboard(self, payloads):
        """A failed poll keeps showing the last known session."""
        rec = reconcile(_session(payloads), True)
        assert rec.view.kind == ViewKind.DASHBOARD

    def test_pure(self, payloads):
        """Identical inputs give identical outputs."""
        session = _session(payloads, "pending")
        assert reconcile(session, False) == reconcile(session, False)


class TestViewState:

    def test_to_dict(self):
        assert ViewState(ViewKind.PENDING_INSTANCE, status=InstanceStatus.PENDING).to_dict() == {
            "view": "pending_instance",
            "status": "pending",
        }
        assert ViewState(ViewKind.ERROR, message="x").to_dict() == {"view": "error", "message": "x"}
