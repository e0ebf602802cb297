"""
Observability module: Prometheus metrics and structured JSON logging.

- Client metrics (API calls, view state, instances, poll ticks)
- JSON structured logging via python-json-logger
- Masking of session cookies and tokens in log messages
- Optional /metrics HTTP endpoint for long-running ``watch`` sessions
"""

import logging
import re
import sys

from prometheus_client import Counter, Enum, Gauge, start_http_server

# =============================================================================
# Prometheus Metrics
# =============================================================================

API_REQUESTS = Counter(
    "portal_api_requests_total",
    "Requests issued to the workspace API",
    ["endpoint", "outcome"],
)

VIEW_STATE = Enum(
    "portal_view_state",
    "Current reconciled view state",
    states=["connecting", "unauthenticated", "pending_instance", "dashboard", "create", "error"],
)

INSTANCES = Gauge(
    "portal_instances",
    "Number of instances in the last well-formed instance list",
)

POLL_TICKS = Counter(
    "portal_poll_ticks_total",
    "Periodic task ticks executed",
    ["task"],
)

ACTION_FAILURES = Counter(
    "portal_action_failures_total",
    "User-triggered actions that failed",
    ["action"],
)


def start_metrics_server(port: int) -> None:
    """Expose /metrics on *port* (background thread owned by prometheus_client)."""
    start_http_server(port)
    logging.getLogger("portal-client").info(f"Metrics endpoint listening on :{port}")


# =============================================================================
# JSON Structured Logging
# =============================================================================

class SensitiveDataFilter(logging.Filter):
    """Filter to mask session markers and tokens in log messages."""

    SENSITIVE_PATTERNS = [
        (re.compile(r'hakoniwa_session["\']?\s*[:=]\s*["\']?[^"\'};\s]+', re.I), 'hakoniwa_session=***'),
        (re.compile(r'token["\']?\s*[:=]\s*["\']?[^"\'};\s]+', re.I), 'token=***'),
        (re.compile(r'\bcode["\']?\s*[:=]\s*["\']?[^"\'&};\s]+', re.I), 'code=***'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            for pattern, replacement in self.SENSITIVE_PATTERNS:
                record.msg = pattern.sub(replacement, record.msg)
        return True


def setup_json_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with JSON structured output.

    Uses python-json-logger's JsonFormatter on stderr and attaches the
    SensitiveDataFilter to the handler so every logger is covered.
    """
    from pythonjsonlogger.json import JsonFormatter

    handler = logging.StreamHandler(sys.stderr)
    formatter = JsonFormatter(
        fmt="%(timestamp)s %(name)s %(levelname)s %(message)s",
        rename_fields={"levelname": "level", "asctime": "timestamp"},
        timestamp=True,
    )
    handler.setFormatter(formatter)
    handler.addFilter(SensitiveDataFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
