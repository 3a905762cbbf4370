"""Run state holder with per-item status, event log and observers."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime

from bulk_runner.engine.models import (
    SYSTEM_LABEL,
    ItemStatus,
    LogEntry,
    LogOutcome,
    RunKind,
    RunSnapshot,
    RunStatus,
    WorkItem,
)

logger = logging.getLogger(__name__)

Observer = Callable[[RunSnapshot], None]

_ALLOWED_ITEM_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.PROCESSING, ItemStatus.NOT_ATTEMPTED}),
    ItemStatus.PROCESSING: frozenset({ItemStatus.SUCCESS, ItemStatus.ERROR}),
    ItemStatus.SUCCESS: frozenset(),
    ItemStatus.ERROR: frozenset(),
    ItemStatus.NOT_ATTEMPTED: frozenset(),
}


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class ProgressSink:
    """Single source of truth for one controller's run state.

    Written by the controller and its lane, read by observers through
    snapshots. Every mutation notifies subscribers with a fresh snapshot.
    Deliveries run on the mutating thread one at a time, newest last, so
    observers should return quickly and never wait on the lane.
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._lock = threading.RLock()
        self._delivery_lock = threading.RLock()
        self._version = 0
        self._delivered_version = 0
        self._clock = clock
        self._observers: list[Observer] = []
        self._reset_fields()

    def _reset_fields(self) -> None:
        self._run_id: str | None = None
        self._kind: RunKind | None = None
        self._subject_domain: str | None = None
        self._status = RunStatus.IDLE
        self._items: list[WorkItem] = []
        self._progress = 0
        self._current_label = ""
        self._log: list[LogEntry] = []
        self._error_message: str | None = None
        self._visible = False
        self._started_at: datetime | None = None
        self._finished_at: datetime | None = None

    # -- observers -------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer``; return a callable that unregisters it."""

        with self._lock:
            self._observers.append(observer)

        def _unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return _unsubscribe

    def _notify(self) -> None:
        # Snapshots are taken and delivered under one lock so observers see them in order.
        # A newer delivery made re-entrantly from an observer supersedes the rest of this one.
        with self._delivery_lock:
            with self._lock:
                self._version += 1
                snapshot = self._snapshot_locked()
                observers = list(self._observers)
            for observer in observers:
                if self._delivered_version > snapshot.version:
                    return
                self._delivered_version = snapshot.version
                try:
                    observer(snapshot)
                except Exception:  # noqa: BLE001
                    logger.exception("Run observer %r failed", observer)

    # -- reads -----------------------------------------------------------------

    @property
    def status(self) -> RunStatus:
        with self._lock:
            return self._status

    @property
    def run_id(self) -> str | None:
        with self._lock:
            return self._run_id

    def item(self, index: int) -> WorkItem:
        """Return a copy of the item at ``index``."""
        with self._lock:
            return self._items[index].copy()

    def snapshot(self) -> RunSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> RunSnapshot:
        return RunSnapshot(
            run_id=self._run_id,
            kind=self._kind,
            subject_domain=self._subject_domain,
            status=self._status,
            items=tuple(item.copy() for item in self._items),
            progress=self._progress,
            total=len(self._items),
            current_label=self._current_label,
            log=tuple(self._log),
            error_message=self._error_message,
            visible=self._visible,
            started_at=self._started_at,
            finished_at=self._finished_at,
            version=self._version,
        )

    # -- lifecycle -------------------------------------------------------------

    def begin(
        self,
        *,
        run_id: str,
        kind: RunKind,
        subject_domain: str,
        items: list[WorkItem],
    ) -> None:
        with self._lock:
            self._reset_fields()
            self._run_id = run_id
            self._kind = kind
            self._subject_domain = subject_domain
            self._items = [
                WorkItem(id=item.id, label=item.label, payload=dict(item.payload))
                for item in items
            ]
            self._status = RunStatus.RUNNING
            self._visible = True
            self._started_at = self._clock()
        self._notify()

    def reset(self) -> None:
        with self._lock:
            self._reset_fields()
        self._notify()

    def set_status(self, status: RunStatus) -> None:
        with self._lock:
            if self._status == status:
                return
            self._status = status
        self._notify()

    def compare_and_set_status(self, expected: RunStatus, status: RunStatus) -> bool:
        """Move to ``status`` only if currently ``expected``."""

        with self._lock:
            if self._status != expected:
                return False
            self._status = status
        self._notify()
        return True

    def set_visible(self, visible: bool, *, run_id: str | None = None) -> bool:
        """Set visibility; when ``run_id`` is given, only for that run."""

        with self._lock:
            if run_id is not None and self._run_id != run_id:
                return False
            if self._visible == visible:
                return True
            self._visible = visible
        self._notify()
        return True

    def finish(self, status: RunStatus, *, error_message: str | None = None) -> None:
        with self._lock:
            self._status = status
            self._current_label = ""
            self._finished_at = self._clock()
            if error_message is not None:
                self._error_message = error_message
        self._notify()

    # -- items -----------------------------------------------------------------

    def _transition(self, index: int, status: ItemStatus) -> WorkItem:
        item = self._items[index]
        if status not in _ALLOWED_ITEM_TRANSITIONS[item.status]:
            raise RuntimeError(
                f"Illegal item transition for {item.id!r}: {item.status.value} -> {status.value}",
            )
        item.status = status
        return item

    def mark_processing(self, index: int) -> WorkItem:
        with self._lock:
            item = self._transition(index, ItemStatus.PROCESSING)
            self._current_label = item.label
            result = item.copy()
        self._notify()
        return result

    def mark_success(self, index: int, message: str) -> None:
        with self._lock:
            item = self._transition(index, ItemStatus.SUCCESS)
            self._progress += 1
            self._append_locked(item.label, LogOutcome.SUCCESS, message, system=False)
        self._notify()

    def mark_error(self, index: int, message: str) -> None:
        with self._lock:
            item = self._transition(index, ItemStatus.ERROR)
            item.error_detail = message
            self._progress += 1
            self._append_locked(item.label, LogOutcome.ERROR, message, system=False)
        self._notify()

    def abandon_pending(self) -> int:
        """Mark every still-pending item as not attempted. Returns how many."""

        with self._lock:
            abandoned = 0
            for index, item in enumerate(self._items):
                if item.status == ItemStatus.PENDING:
                    self._transition(index, ItemStatus.NOT_ATTEMPTED)
                    abandoned += 1
        if abandoned:
            self._notify()
        return abandoned

    def succeeded_ids(self) -> list[str]:
        with self._lock:
            return [item.id for item in self._items if item.status == ItemStatus.SUCCESS]

    # -- log -------------------------------------------------------------------

    def log_system(self, outcome: LogOutcome, message: str) -> None:
        with self._lock:
            self._append_locked(SYSTEM_LABEL, outcome, message, system=True)
        self._notify()

    def _append_locked(
        self,
        label: str,
        outcome: LogOutcome,
        message: str,
        *,
        system: bool,
    ) -> None:
        self._log.append(
            LogEntry(
                timestamp=self._clock(),
                subject_label=label,
                outcome=outcome,
                message=message,
                system=system,
            ),
        )
