"""Duplicate and near-duplicate detection run before records enter a queue."""

from bulk_runner.reconcile.classifier import (
    classify_by_expense_key,
    classify_by_name,
    classify_by_phone,
    normalize_phone,
    phones_match,
    select_for_import,
)
from bulk_runner.reconcile.models import CandidateStatus, DuplicateAction, ReconciliationResult
from bulk_runner.reconcile.similarity import best_match, similarity

__all__ = [
    "CandidateStatus",
    "DuplicateAction",
    "ReconciliationResult",
    "best_match",
    "classify_by_expense_key",
    "classify_by_name",
    "classify_by_phone",
    "normalize_phone",
    "phones_match",
    "select_for_import",
    "similarity",
]
