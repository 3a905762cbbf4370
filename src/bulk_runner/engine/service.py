"""Process-wide owner of the bulk operation controllers."""

from __future__ import annotations

import logging
import threading

from bulk_runner.config import Settings
from bulk_runner.engine.controller import TaskQueueController
from bulk_runner.engine.models import RunKind

logger = logging.getLogger(__name__)

LANE_BULK = "bulk"
LANE_IMPORT = "import"
LANE_CAMPAIGN = "campaign"

_LANE_BY_KIND = {
    RunKind.DELETE: LANE_BULK,
    RunKind.EXPORT: LANE_BULK,
    RunKind.IMPORT: LANE_IMPORT,
    RunKind.DISPATCH: LANE_CAMPAIGN,
}


class BulkOperationService:
    """Long-lived service holding one controller per lane.

    Create it once per process and keep it for the process lifetime; views and
    commands subscribe to its controllers instead of owning run state. Runs on
    different lanes proceed independently; runs on one lane never interleave.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self._lock = threading.Lock()
        self._controllers: dict[str, TaskQueueController] = {}
        self._closed = False

    def controller(self, lane: str) -> TaskQueueController:
        with self._lock:
            if self._closed:
                raise RuntimeError("BulkOperationService is shut down.")
            controller = self._controllers.get(lane)
            if controller is None:
                controller = TaskQueueController(lane, settings=self.settings.engine)
                self._controllers[lane] = controller
            return controller

    def for_kind(self, kind: RunKind) -> TaskQueueController:
        return self.controller(_LANE_BY_KIND[kind])

    def lanes(self) -> list[str]:
        with self._lock:
            return sorted(self._controllers)

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop every active run and wait for lanes to exit."""

        with self._lock:
            self._closed = True
            controllers = list(self._controllers.values())
        for controller in controllers:
            controller.shutdown(timeout)
        logger.info("Bulk operation service shut down (%d lanes)", len(controllers))
