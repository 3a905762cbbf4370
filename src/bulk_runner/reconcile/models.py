"""Reconciliation result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CandidateStatus(str, Enum):
    """Classification of a candidate record against existing records."""

    NEW = "new"
    DUPLICATE = "duplicate"
    SIMILAR = "similar"
    INVALID = "invalid"


class DuplicateAction(str, Enum):
    """What an import does with duplicate and similar candidates."""

    IGNORE = "ignore"
    UPDATE = "update"


@dataclass(slots=True)
class ReconciliationResult:
    """One classified candidate, with the existing record it matched."""

    candidate: dict[str, Any]
    status: CandidateStatus
    match: dict[str, Any] | None = None
    similarity: float | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def match_id(self) -> str | None:
        if self.match is None or self.match.get("id") is None:
            return None
        return str(self.match["id"])
