"""
Instance polling service for the dashboard.
"""

from __future__ import annotations

import logging

from pydantic import TypeAdapter, ValidationError

from portal.config.settings import INSTANCE_TYPES_ENDPOINT, INSTANCES_ENDPOINT, POLL_INTERVAL_MS
from portal.domain.errors import FetchError
from portal.domain.gateway import FetchGateway
from portal.domain.types import Instance, InstanceListing, InstanceType
from portal.observability import INSTANCES
from portal.services.scheduler import EventLoop, PeriodicTask

logger = logging.getLogger("portal-client")

_instances_adapter = TypeAdapter(list[Instance])
_types_adapter = TypeAdapter(list[InstanceType])


class InstancePoller:
    """Keeps the user's instance list and the type catalog fresh.

    The list is refetched on every tick; the catalog once per session.
    """

    def __init__(self, gateway: FetchGateway, loop: EventLoop, interval_ms: int = POLL_INTERVAL_MS):
        """
        Initialize the poller.

        Args:
            gateway: Fetch gateway
            loop: Event loop hosting the periodic task
            interval_ms: List refresh period in milliseconds
        """
        self.gateway = gateway
        self.instances: list[Instance] = []
        self.catalog: dict[str, InstanceType] = {}
        self.catalog_loaded = False
        self.last_error: str | None = None
        self._catalog_owner: str | None = None
        self._task = PeriodicTask(loop, "instances", self._poll, interval_ms)

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self, user_id: str) -> None:
        """
        Start polling for *user_id*; fetches at once.

        A different user than the catalog was loaded for drops the
        previous session's data first.
        """
        if self._catalog_owner != user_id:
            self.reset()
            self._catalog_owner = user_id
        if not self._task.running:
            logger.info("Instance polling started")
        self._task.start(immediate=True)

    def stop(self) -> None:
        if self._task.running:
            logger.info("Instance polling stopped")
        self._task.stop()

    def reset(self) -> None:
        """Forget everything fetched for the current session."""
        self.stop()
        self.instances = []
        self.catalog = {}
        self.catalog_loaded = False
        self.last_error = None
        self._catalog_owner = None
        INSTANCES.set(0)

    def refresh(self) -> None:
        """Fetch the instance list now, outside the regular cadence."""
        self._fetch_instances()

    def listing(self) -> list[InstanceListing]:
        """Instances joined with their catalog entry (None for unknown types)."""
        return [
            InstanceListing(instance=inst, type_info=self.catalog.get(inst.type))
            for inst in self.instances
        ]

    def instance_type(self, type_id: str | None) -> InstanceType | None:
        if type_id is None:
            return None
        return self.catalog.get(type_id)

    def load_catalog(self) -> bool:
        """
        Fetch the instance-type catalog.

        Returns:
            True if the catalog is loaded
        """
        try:
            data = self.gateway.call(INSTANCE_TYPES_ENDPOINT)
            if data is None:
                return False
            types = _types_adapter.validate_python(data)
        except FetchError as e:
            logger.warning(f"Instance type catalog unavailable: {e}")
            return False
        except ValidationError as e:
            logger.error(f"Instance type catalog rejected (schema mismatch): {e.errors(include_url=False)}")
            return False
        self.catalog = {t.id: t for t in types}
        self.catalog_loaded = True
        logger.info(f"Loaded {len(self.catalog)} instance types")
        return True

    def _poll(self) -> None:
        if not self.catalog_loaded:
            self.load_catalog()
        self._fetch_instances()

    def _fetch_instances(self) -> None:
        try:
            data = self.gateway.call(INSTANCES_ENDPOINT)
            if data is None:
                # 401: the session tracker will notice; keep what we have
                return
            instances = _instances_adapter.validate_python(data)
        # Keep the last well-formed list; absence is only trusted from a good response
        except FetchError as e:
            logger.warning(f"Instance list refresh failed: {e}")
            self.last_error = str(e)
            return
        except ValidationError as e:
            logger.error(f"Instance list rejected (schema mismatch): {e.errors(include_url=False)}")
            self.last_error = "schema mismatch"
            return
        self.instances = instances
        self.last_error = None
        INSTANCES.set(len(instances))
