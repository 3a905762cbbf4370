"""Domain models for bulk runs, work items and the event log."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class RunKind(str, Enum):
    """What a run does to its items."""

    DELETE = "delete"
    IMPORT = "import"
    DISPATCH = "dispatch"
    EXPORT = "export"


class RunStatus(str, Enum):
    """Run lifecycle states."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


class ItemStatus(str, Enum):
    """Per-item lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"
    NOT_ATTEMPTED = "not_attempted"


class LogOutcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


ACTIVE_STATUSES = frozenset({RunStatus.RUNNING, RunStatus.PAUSED})
TERMINAL_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.STOPPED, RunStatus.FAILED})
FINISHED_ITEM_STATUSES = frozenset({ItemStatus.SUCCESS, ItemStatus.ERROR})

SYSTEM_LABEL = "System"


@dataclass(slots=True)
class WorkItem:
    """One queued unit: a record to delete, import or message."""

    id: str
    label: str
    status: ItemStatus = ItemStatus.PENDING
    error_detail: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    def copy(self) -> WorkItem:
        return WorkItem(
            id=self.id,
            label=self.label,
            status=self.status,
            error_detail=self.error_detail,
            payload=dict(self.payload),
        )


@dataclass(frozen=True, slots=True)
class LogEntry:
    """Append-only run event."""

    timestamp: datetime
    subject_label: str
    outcome: LogOutcome
    message: str
    system: bool = False

    def format(self) -> str:
        marker = "ok" if self.outcome == LogOutcome.SUCCESS else "error"
        return f"{self.timestamp:%H:%M:%S} [{marker}] {self.subject_label}: {self.message}"


@dataclass(frozen=True, slots=True)
class RunSnapshot:
    """Read-only view of run state handed to observers."""

    run_id: str | None
    kind: RunKind | None
    subject_domain: str | None
    status: RunStatus
    items: tuple[WorkItem, ...]
    progress: int
    total: int
    current_label: str
    log: tuple[LogEntry, ...]
    error_message: str | None
    visible: bool
    started_at: datetime | None
    finished_at: datetime | None
    version: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.status == ItemStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if item.status == ItemStatus.ERROR)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def failures(self) -> list[WorkItem]:
        """Items that ended in error, in input order."""
        return [item for item in self.items if item.status == ItemStatus.ERROR]


def to_work_items(records: list[dict[str, Any]], *, label_field: str = "name") -> list[WorkItem]:
    """Build work items from plain records carrying ``id`` and a label field.

    The full record is kept as the item payload so operations can reach it.
    """

    items: list[WorkItem] = []
    for record in records:
        item_id = str(record["id"])
        label = str(record.get(label_field) or item_id)
        items.append(WorkItem(id=item_id, label=label, payload=dict(record)))
    return items
