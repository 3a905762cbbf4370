"""Read-cache reconciliation for records mutated by a run.

The engine never depends on a cache being wired: every adapter call goes
through :class:`CacheReconciliationHook`, which logs and swallows adapter
failures.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from bulk_runner.engine.models import RunKind, WorkItem

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Loader = Callable[[Hashable], list[Record]]

DEFAULT_DEPENDENTS: Mapping[str, tuple[str, ...]] = {
    "expenses": ("dashboard",),
    "transactions": ("dashboard",),
    "categories": ("products",),
}


class CacheAdapter(Protocol):
    """Cache operations the engine may request, keyed by subject domain."""

    def invalidate(self, subject_domain: str) -> None: ...

    def optimistic_remove(self, subject_domain: str, item_id: str) -> None: ...

    def optimistic_patch(
        self,
        subject_domain: str,
        item_id: str,
        patch: Mapping[str, Any],
    ) -> None: ...


class NullCacheAdapter:
    def invalidate(self, subject_domain: str) -> None:
        return None

    def optimistic_remove(self, subject_domain: str, item_id: str) -> None:
        return None

    def optimistic_patch(
        self,
        subject_domain: str,
        item_id: str,
        patch: Mapping[str, Any],
    ) -> None:
        return None


@dataclass(slots=True)
class _CacheEntry:
    records: list[Record]
    stale: bool = False


class InMemoryQueryCache:
    """Query cache holding record lists per ``(subject_domain, params)`` key.

    Mutations are by-id (remove/patch), so they commute with a concurrent
    refetch of the same entry instead of overwriting it.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: dict[tuple[str, Hashable], _CacheEntry] = {}
        self._loaders: dict[str, Loader] = {}

    def register_loader(self, subject_domain: str, loader: Loader) -> None:
        """Register the refetch function used when ``subject_domain`` is invalidated."""
        with self._lock:
            self._loaders[subject_domain] = loader

    def put(self, subject_domain: str, records: Iterable[Record], params: Hashable = None) -> None:
        with self._lock:
            self._entries[(subject_domain, params)] = _CacheEntry(
                records=[dict(record) for record in records],
            )

    def get(self, subject_domain: str, params: Hashable = None) -> list[Record] | None:
        with self._lock:
            entry = self._entries.get((subject_domain, params))
            if entry is None:
                return None
            return [dict(record) for record in entry.records]

    def is_stale(self, subject_domain: str, params: Hashable = None) -> bool:
        with self._lock:
            entry = self._entries.get((subject_domain, params))
            return entry is None or entry.stale

    def _domain_keys(self, subject_domain: str) -> list[tuple[str, Hashable]]:
        return [key for key in self._entries if key[0] == subject_domain]

    def optimistic_remove(self, subject_domain: str, item_id: str) -> None:
        with self._lock:
            for key in self._domain_keys(subject_domain):
                entry = self._entries[key]
                entry.records = [
                    record for record in entry.records if str(record.get("id")) != item_id
                ]

    def optimistic_patch(
        self,
        subject_domain: str,
        item_id: str,
        patch: Mapping[str, Any],
    ) -> None:
        with self._lock:
            for key in self._domain_keys(subject_domain):
                for record in self._entries[key].records:
                    if str(record.get("id")) == item_id:
                        record.update(patch)

    def invalidate(self, subject_domain: str) -> None:
        with self._lock:
            keys = self._domain_keys(subject_domain)
            for key in keys:
                self._entries[key].stale = True
            loader = self._loaders.get(subject_domain)
        if loader is None:
            return
        for key in keys:
            records = loader(key[1])
            with self._lock:
                self._entries[key] = _CacheEntry(records=[dict(record) for record in records])


class CacheReconciliationHook:
    """Applies per-item and end-of-run cache updates for a run."""

    def __init__(
        self,
        adapter: CacheAdapter | None = None,
        *,
        dependents: Mapping[str, tuple[str, ...]] = DEFAULT_DEPENDENTS,
    ) -> None:
        self.adapter: CacheAdapter = adapter or NullCacheAdapter()
        self.dependents = dependents

    def on_item_success(self, kind: RunKind, subject_domain: str, item: WorkItem) -> None:
        if kind == RunKind.DELETE:
            self._safely("optimistic_remove", subject_domain, item.id)
            return
        patch = item.payload.get("patch")
        if kind == RunKind.IMPORT and isinstance(patch, Mapping):
            self._safely("optimistic_patch", subject_domain, item.id, patch)

    def on_run_finished(
        self,
        kind: RunKind,
        subject_domain: str,
        succeeded_ids: Iterable[str],
    ) -> None:
        if kind == RunKind.DELETE:
            for item_id in succeeded_ids:
                self._safely("optimistic_remove", subject_domain, item_id)
        for domain in self.domains_to_invalidate(subject_domain):
            self._safely("invalidate", domain)

    def domains_to_invalidate(self, subject_domain: str) -> list[str]:
        return [subject_domain, *self.dependents.get(subject_domain, ())]

    def _safely(self, method: str, *args: Any) -> None:
        try:
            getattr(self.adapter, method)(*args)
        except Exception:  # noqa: BLE001
            logger.exception("Cache %s failed for %s", method, args[0])
