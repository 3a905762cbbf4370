"""Task queue controller: lifecycle commands for one single-lane run at a time."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from uuid import uuid4

from bulk_runner.config import START_POLICIES, EngineSettings
from bulk_runner.engine.control import CancellationToken
from bulk_runner.engine.errors import (
    DuplicateItemError,
    EmptyQueueError,
    RunActiveError,
    RunFatalError,
)
from bulk_runner.engine.lane import ExecutionLane, LaneOutcome, Operation, RunOptions
from bulk_runner.engine.models import ACTIVE_STATUSES, RunSnapshot, RunStatus, WorkItem
from bulk_runner.engine.progress import Observer, ProgressSink

logger = logging.getLogger(__name__)


class TaskQueueController:
    """Owns run state and the lane thread for one logical queue.

    Runs are started in a daemon thread so the caller returns immediately and
    the run keeps going after the caller is gone. Commands only flip shared
    flags; the lane honours them at its next checkpoint. Whether a run is
    active is read from the run status, never from the thread.
    """

    def __init__(
        self,
        name: str = "bulk",
        *,
        settings: EngineSettings | None = None,
        sink: ProgressSink | None = None,
    ) -> None:
        self.name = name
        self.settings = settings or EngineSettings()
        self.sink = sink or ProgressSink()
        self._start_lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._token = CancellationToken()
        self._thread: threading.Thread | None = None
        self._lane: ExecutionLane | None = None
        self._hide_timer: threading.Timer | None = None

    # -- commands --------------------------------------------------------------

    def start(
        self,
        items: Iterable[WorkItem],
        operation: Operation,
        options: RunOptions,
    ) -> str:
        """Initialise a run over ``items`` and start consuming it in the background.

        Returns the run id. Raises :class:`EmptyQueueError` for an empty list and
        :class:`RunActiveError` when a run is active under the ``reject`` policy.
        """

        work_items = list(items)
        if not work_items:
            raise EmptyQueueError
        _ensure_unique_ids(work_items)

        policy = options.on_active or self.settings.on_active
        if policy not in START_POLICIES:
            raise ValueError(f"Unknown start policy: {policy!r}")

        with self._start_lock:
            if self.sink.status in ACTIVE_STATUSES:
                if policy != "force":
                    raise RunActiveError(self.sink.run_id)
                if self._on_lane_thread():
                    logger.warning(
                        "Cannot force-stop run %s from its own lane thread",
                        self.sink.run_id,
                    )
                    raise RunActiveError(self.sink.run_id)
                logger.warning(
                    "Force-stopping run %s on %s before starting a new one",
                    self.sink.run_id,
                    self.name,
                )
                self._stop_and_join()

            self._cancel_hide_timer()
            run_id = uuid4().hex
            token = CancellationToken()
            self.sink.begin(
                run_id=run_id,
                kind=options.kind,
                subject_domain=options.subject_domain,
                items=work_items,
            )
            lane = ExecutionLane(
                sink=self.sink,
                token=token,
                operation=operation,
                options=options,
                timing=self.settings,
                total=len(work_items),
            )
            self._token = token
            self._lane = lane
            self._thread = threading.Thread(
                target=self._drive,
                args=(lane,),
                daemon=True,
                name=f"{self.name}-lane-{run_id[:8]}",
            )
            self._thread.start()

        logger.info(
            "Started %s run %s on %s: %d items (domain=%s, throttle=%r)",
            options.kind.value,
            run_id,
            self.name,
            len(work_items),
            options.subject_domain,
            options.throttle,
        )
        return run_id

    def pause(self) -> bool:
        """Request a pause; effective only while running."""

        if self.sink.status != RunStatus.RUNNING:
            return False
        self._token.pause()
        # The lane may already have published the pause at a checkpoint.
        self.sink.compare_and_set_status(RunStatus.RUNNING, RunStatus.PAUSED)
        return True

    def resume(self) -> bool:
        """Clear a pause; effective only while paused."""

        if self.sink.status != RunStatus.PAUSED:
            return False
        self._token.resume()
        self.sink.compare_and_set_status(RunStatus.PAUSED, RunStatus.RUNNING)
        return True

    def stop(self) -> bool:
        """Request a stop; the lane halts at its next checkpoint."""

        if self.sink.status not in ACTIVE_STATUSES:
            return False
        self._token.stop()
        logger.info("Stop requested for run %s on %s", self.sink.run_id, self.name)
        return True

    def toggle_visibility(self) -> bool:
        """Flip the progress indicator; hiding a finished run resets it. Returns new visibility."""

        snapshot = self.sink.snapshot()
        if snapshot.visible and snapshot.is_terminal:
            self._reset()
            return False
        self.sink.set_visible(not snapshot.visible)
        return not snapshot.visible

    def dismiss(self) -> bool:
        """Clear a finished run back to idle."""

        if not self.sink.snapshot().is_terminal:
            return False
        self._reset()
        return True

    # -- observation -----------------------------------------------------------

    def snapshot(self) -> RunSnapshot:
        return self.sink.snapshot()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        return self.sink.subscribe(observer)

    @property
    def is_active(self) -> bool:
        return self.sink.status in ACTIVE_STATUSES

    def wait(self, timeout: float | None = None) -> RunSnapshot:
        """Block until the current lane finishes and return the final snapshot.

        Re-raises the fatal error of a run that aborted. Raises ``TimeoutError``
        if the lane is still running after ``timeout`` seconds. Called from an
        observer on the lane thread it returns without waiting.
        """

        thread = self._thread
        if thread is not None and not self._on_lane_thread():
            thread.join(timeout)
            if thread.is_alive():
                raise TimeoutError(f"Run {self.sink.run_id} still active after {timeout}s")
        lane = self._lane
        fatal = lane.fatal if lane is not None else None
        if fatal is not None:
            if isinstance(fatal, RunFatalError):
                raise fatal
            raise RunFatalError(f"Run {self.sink.run_id} aborted: {fatal}") from fatal
        return self.sink.snapshot()

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop any active run and wait for its lane to exit."""

        with self._start_lock:
            self._cancel_hide_timer()
            if self._lane_alive():
                self._stop_and_join(timeout)

    # -- internals -------------------------------------------------------------

    def _drive(self, lane: ExecutionLane) -> None:
        outcome: LaneOutcome = lane.run()
        if outcome.status == RunStatus.COMPLETED and lane.run_id is not None:
            self._schedule_hide(lane.run_id)

    def _lane_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _on_lane_thread(self) -> bool:
        return self._thread is threading.current_thread()

    def _stop_and_join(self, timeout: float | None = None) -> None:
        self._token.stop()
        thread = self._thread
        if thread is None or self._on_lane_thread():
            return
        thread.join(self.settings.join_timeout_seconds if timeout is None else timeout)
        if thread.is_alive():
            raise RunActiveError(self.sink.run_id)

    def _schedule_hide(self, run_id: str) -> None:
        delay = self.settings.auto_hide_seconds
        if delay <= 0:
            return
        with self._timer_lock:
            # A newer run may have begun while this lane was winding down.
            if self.sink.run_id != run_id:
                return
            timer = threading.Timer(
                delay,
                self.sink.set_visible,
                args=(False,),
                kwargs={"run_id": run_id},
            )
            timer.daemon = True
            self._hide_timer = timer
            timer.start()

    def _cancel_hide_timer(self) -> None:
        with self._timer_lock:
            if self._hide_timer is not None:
                self._hide_timer.cancel()
                self._hide_timer = None

    def _reset(self) -> None:
        self._cancel_hide_timer()
        self._lane = None
        self.sink.reset()


def _ensure_unique_ids(items: list[WorkItem]) -> None:
    seen: set[str] = set()
    for item in items:
        if item.id in seen:
            raise DuplicateItemError(item.id)
        seen.add(item.id)
