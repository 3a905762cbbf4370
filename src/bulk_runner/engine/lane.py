"""Sequential execution lane driving one run from start to terminal status."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from bulk_runner.config import EngineSettings
from bulk_runner.engine.cache import CacheReconciliationHook
from bulk_runner.engine.control import CancellationToken
from bulk_runner.engine.errors import RunFatalError
from bulk_runner.engine.models import (
    ItemStatus,
    LogOutcome,
    RunKind,
    RunStatus,
    WorkItem,
)
from bulk_runner.engine.progress import ProgressSink
from bulk_runner.engine.throttle import FixedSmallDelay, ThrottlePolicy

logger = logging.getLogger(__name__)

Operation = Callable[[WorkItem], Any]

STOP_MESSAGE = "Run stopped by user"


@dataclass(slots=True)
class RunOptions:
    """How a run treats its items: strategy, pacing and side effects."""

    kind: RunKind
    subject_domain: str
    throttle: ThrottlePolicy = field(default_factory=FixedSmallDelay)
    cache_hook: CacheReconciliationHook = field(default_factory=CacheReconciliationHook)
    preflight: Callable[[], None] | None = None
    on_active: str | None = None
    success_message: str = "Processed successfully"


@dataclass(slots=True)
class LaneOutcome:
    status: RunStatus
    fatal: BaseException | None = None


class ExecutionLane:
    """Consumes items strictly in order, one operation at a time.

    Checkpoints: before each item (stop, then pause), and every tick of the
    throttle wait. An in-flight operation always runs to completion.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        sink: ProgressSink,
        token: CancellationToken,
        operation: Operation,
        options: RunOptions,
        timing: EngineSettings,
        total: int,
    ) -> None:
        self.sink = sink
        self.token = token
        self.operation = operation
        self.options = options
        self.timing = timing
        self.total = total
        self.run_id = sink.run_id
        self.fatal: BaseException | None = None
        self._current_index: int | None = None

    def run(self) -> LaneOutcome:
        """Drive the run; never raises. Fatal errors are returned in the outcome."""

        try:
            return LaneOutcome(status=self._run())
        except Exception as error:  # noqa: BLE001
            logger.exception("Run %s aborted", self.run_id)
            self._finish_fatal(error)
            return LaneOutcome(status=RunStatus.FAILED, fatal=error)

    def _run(self) -> RunStatus:
        if self.options.preflight is not None:
            self.options.preflight()

        for index in range(self.total):
            if self.token.stopped:
                return self._finish_stopped()
            if not self.token.wait_while_paused(
                self.timing.pause_poll_seconds,
                on_pause=self._on_pause,
                on_resume=self._on_resume,
            ):
                return self._finish_stopped()

            self._process(index)

            if index < self.total - 1 and not self.token.stopped:
                delay = self.options.throttle.next_delay()
                if delay > 0 and not self.token.sleep(
                    delay,
                    tick_seconds=self.timing.throttle_tick_seconds,
                    poll_seconds=self.timing.pause_poll_seconds,
                    on_pause=self._on_pause,
                    on_resume=self._on_resume,
                ):
                    return self._finish_stopped()

        if self.token.stopped:
            return self._finish_stopped()
        return self._finish_exhausted()

    def _process(self, index: int) -> None:
        item = self.sink.mark_processing(index)
        self._current_index = index
        try:
            self.operation(item)
        except RunFatalError:
            raise
        except Exception as error:  # noqa: BLE001
            message = str(error) or type(error).__name__
            logger.warning("Item %s (%s) failed: %s", item.id, item.label, message)
            self.sink.mark_error(index, message)
        else:
            self.sink.mark_success(index, self.options.success_message)
            self.options.cache_hook.on_item_success(
                self.options.kind,
                self.options.subject_domain,
                item,
            )
        self._current_index = None

    def _on_pause(self) -> None:
        self.sink.compare_and_set_status(RunStatus.RUNNING, RunStatus.PAUSED)

    def _on_resume(self) -> None:
        self.sink.compare_and_set_status(RunStatus.PAUSED, RunStatus.RUNNING)

    # -- terminal transitions --------------------------------------------------
    # The cache is reconciled before the terminal status is published; nothing
    # touches the sink after finish() since a new run may begin right away.

    def _finish_stopped(self) -> RunStatus:
        self.sink.log_system(LogOutcome.ERROR, STOP_MESSAGE)
        self._reconcile_cache()
        self.sink.finish(RunStatus.STOPPED)
        logger.info("Run %s stopped by user", self.run_id)
        return RunStatus.STOPPED

    def _finish_exhausted(self) -> RunStatus:
        snapshot = self.sink.snapshot()
        succeeded = snapshot.succeeded
        failed = snapshot.failed
        status = RunStatus.FAILED if succeeded == 0 and failed > 0 else RunStatus.COMPLETED
        outcome = LogOutcome.SUCCESS if status == RunStatus.COMPLETED else LogOutcome.ERROR
        self.sink.log_system(outcome, f"Run finished: {succeeded} succeeded, {failed} failed")
        self._reconcile_cache()
        self.sink.finish(status)
        logger.info(
            "Run %s %s: succeeded=%d failed=%d",
            self.run_id,
            status.value,
            succeeded,
            failed,
        )
        return status

    def _finish_fatal(self, error: BaseException) -> None:
        message = str(error) or type(error).__name__
        self.fatal = error
        try:
            if self._current_index is not None:
                current = self.sink.item(self._current_index)
                if current.status == ItemStatus.PROCESSING:
                    self.sink.mark_error(self._current_index, message)
            self.sink.abandon_pending()
            self.sink.log_system(LogOutcome.ERROR, f"Fatal error: {message}")
            self._reconcile_cache()
        finally:
            self.sink.finish(RunStatus.FAILED, error_message=message)

    def _reconcile_cache(self) -> None:
        self.options.cache_hook.on_run_finished(
            self.options.kind,
            self.options.subject_domain,
            self.sink.succeeded_ids(),
        )
