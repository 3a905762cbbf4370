"""Engine error hierarchy."""

from __future__ import annotations


class BulkRunnerError(RuntimeError):
    """Base class for engine errors."""


class EmptyQueueError(BulkRunnerError):
    """Raised by ``start`` when there is nothing to process."""

    def __init__(self, message: str = "No items to process.") -> None:
        super().__init__(message)


class DuplicateItemError(BulkRunnerError):
    """Raised by ``start`` when two items share an id."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"Duplicate item id in run: {item_id!r}")
        self.item_id = item_id


class RunActiveError(BulkRunnerError):
    """Raised by ``start`` when another run is still active on the controller."""

    def __init__(self, run_id: str | None) -> None:
        super().__init__(f"Another run is already active: {run_id}")
        self.run_id = run_id


class RunFatalError(BulkRunnerError):
    """Failure of the run itself, as opposed to a single item.

    Raise it from an operation or a preflight check to abort the whole run.
    """
