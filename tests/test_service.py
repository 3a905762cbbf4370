from __future__ import annotations

import threading

import allure
import pytest

from bulk_runner.config import EngineSettings, Settings
from bulk_runner.engine.models import RunKind, RunStatus, WorkItem
from bulk_runner.engine.presets import delete_options, dispatch_options, import_options
from bulk_runner.engine.service import (
    LANE_BULK,
    LANE_CAMPAIGN,
    LANE_IMPORT,
    BulkOperationService,
)
from bulk_runner.engine.throttle import FixedSmallDelay, RandomizedJitterDelay

pytestmark = [
    allure.epic("Bulk Engine"),
    allure.feature("Operation Service"),
]


def _service() -> BulkOperationService:
    return BulkOperationService(
        Settings(
            engine=EngineSettings(
                pause_poll_seconds=0.01,
                throttle_tick_seconds=0.01,
                auto_hide_seconds=0,
            ),
        ),
    )


def test_controllers_are_created_once_per_lane() -> None:
    service = _service()

    assert service.controller(LANE_BULK) is service.controller(LANE_BULK)
    assert service.for_kind(RunKind.DELETE) is service.controller(LANE_BULK)
    assert service.for_kind(RunKind.IMPORT) is service.controller(LANE_IMPORT)
    assert service.for_kind(RunKind.DISPATCH) is service.controller(LANE_CAMPAIGN)
    assert service.lanes() == [LANE_BULK, LANE_CAMPAIGN, LANE_IMPORT]
    service.shutdown()


def test_runs_on_different_lanes_proceed_independently() -> None:
    service = _service()
    release = threading.Event()
    reached = threading.Event()

    def _blocking(_item: WorkItem) -> None:
        reached.set()
        assert release.wait(timeout=5)

    bulk = service.controller(LANE_BULK)
    imports = service.controller(LANE_IMPORT)
    bulk.start([WorkItem(id="1", label="a")], _blocking, delete_options("products"))
    assert reached.wait(timeout=5)

    imports.start([WorkItem(id="1", label="b")], lambda _item: None, import_options("customers"))
    assert imports.wait(timeout=5).status == RunStatus.COMPLETED
    assert bulk.snapshot().status == RunStatus.RUNNING

    release.set()
    assert bulk.wait(timeout=5).status == RunStatus.COMPLETED
    service.shutdown()


def test_shutdown_closes_service() -> None:
    service = _service()
    service.controller(LANE_BULK)

    service.shutdown()

    with pytest.raises(RuntimeError, match="shut down"):
        service.controller(LANE_BULK)


def test_presets_pick_throttle_and_messages() -> None:
    deleting = delete_options("products")
    importing = import_options("customers")
    sending = dispatch_options()

    assert isinstance(deleting.throttle, FixedSmallDelay)
    assert deleting.kind == RunKind.DELETE
    assert deleting.success_message == "Deleted successfully"
    assert importing.kind == RunKind.IMPORT
    assert importing.success_message == "Imported successfully"
    assert isinstance(sending.throttle, RandomizedJitterDelay)
    assert sending.throttle.min_seconds == 15
    assert sending.throttle.max_seconds == 40
    assert sending.kind == RunKind.DISPATCH
    assert sending.subject_domain == "customers"
