"""Single-lane background execution engine for bulk runs.

A :class:`TaskQueueController` drives one run at a time through an
:class:`ExecutionLane` on a daemon thread. Pause and stop are cooperative:
commands flip flags in a :class:`CancellationToken` that the lane polls before
each item, while paused, and between ticks of the throttle wait.
"""

from bulk_runner.engine.cache import (
    CacheAdapter,
    CacheReconciliationHook,
    InMemoryQueryCache,
    NullCacheAdapter,
)
from bulk_runner.engine.control import CancellationToken
from bulk_runner.engine.controller import TaskQueueController
from bulk_runner.engine.errors import (
    BulkRunnerError,
    DuplicateItemError,
    EmptyQueueError,
    RunActiveError,
    RunFatalError,
)
from bulk_runner.engine.lane import ExecutionLane, RunOptions
from bulk_runner.engine.models import (
    ItemStatus,
    LogEntry,
    LogOutcome,
    RunKind,
    RunSnapshot,
    RunStatus,
    WorkItem,
    to_work_items,
)
from bulk_runner.engine.service import BulkOperationService
from bulk_runner.engine.throttle import (
    FixedSmallDelay,
    NoDelay,
    RandomizedJitterDelay,
    ThrottlePolicy,
)

__all__ = [
    "BulkOperationService",
    "BulkRunnerError",
    "CacheAdapter",
    "CacheReconciliationHook",
    "CancellationToken",
    "DuplicateItemError",
    "EmptyQueueError",
    "ExecutionLane",
    "FixedSmallDelay",
    "InMemoryQueryCache",
    "ItemStatus",
    "LogEntry",
    "LogOutcome",
    "NoDelay",
    "NullCacheAdapter",
    "RandomizedJitterDelay",
    "RunActiveError",
    "RunFatalError",
    "RunKind",
    "RunOptions",
    "RunSnapshot",
    "RunStatus",
    "TaskQueueController",
    "ThrottlePolicy",
    "WorkItem",
    "to_work_items",
]
