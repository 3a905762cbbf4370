"""Classify candidate records as new, duplicate or similar before enqueueing."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any

from bulk_runner.reconcile.models import CandidateStatus, DuplicateAction, ReconciliationResult
from bulk_runner.reconcile.similarity import DEFAULT_THRESHOLD, best_match

_NON_DIGITS = re.compile(r"\D")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DAY_FIRST_DATE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})$")

Record = Mapping[str, Any]


def normalize_name(value: object) -> str:
    return str(value or "").lower().strip()


def normalize_phone(value: object) -> str:
    """Strip everything but digits."""
    return _NON_DIGITS.sub("", str(value or ""))


def phones_match(left: str, right: str, *, loose: bool = True) -> bool:
    """Compare normalized phones; ``loose`` also accepts one containing the other.

    The loose form matches numbers stored with and without a country code.
    """

    a = normalize_phone(left)
    b = normalize_phone(right)
    if not a or not b:
        return False
    if a == b:
        return True
    return loose and (a in b or b in a)


def normalize_date(value: object) -> str:
    """Return ``YYYY-MM-DD`` or an empty string when the value is not a date."""

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value or "").strip()
    if not text:
        return ""
    if _ISO_DATE.match(text):
        return text
    day_first = _DAY_FIRST_DATE.match(text)
    if day_first:
        day, month, year = (int(part) for part in day_first.groups())
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            return ""
    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        return ""


def expense_key(record: Record, *, description_field: str = "description") -> str:
    """Exact-match key: normalized description, amount in cents and ISO date."""

    amount = round(float(record.get("amount") or 0) * 100) / 100
    return (
        f"{normalize_name(record.get(description_field))}"
        f"_{amount:.2f}_{normalize_date(record.get('date'))}"
    )


def classify_by_name(
    candidates: Iterable[Record],
    existing: Iterable[Record],
    *,
    field: str = "name",
    threshold: float = DEFAULT_THRESHOLD,
) -> list[ReconciliationResult]:
    """Products: exact normalized name, else best fuzzy name match."""

    existing_list = list(existing)
    by_name: dict[str, Record] = {}
    for record in existing_list:
        by_name.setdefault(normalize_name(record.get(field)), record)

    results: list[ReconciliationResult] = []
    for candidate in candidates:
        exact = by_name.get(normalize_name(candidate.get(field)))
        if exact is not None:
            results.append(_duplicate(candidate, exact))
            continue
        results.append(
            _similar_or_new(candidate, existing_list, field=field, threshold=threshold),
        )
    return results


def classify_by_phone(  # noqa: PLR0913
    candidates: Iterable[Record],
    existing: Iterable[Record],
    *,
    phone_field: str = "phone",
    name_field: str = "name",
    min_digits: int = 10,
    loose: bool = True,
    threshold: float = DEFAULT_THRESHOLD,
) -> list[ReconciliationResult]:
    """Customers: normalized phone identifies a duplicate; names only flag similar."""

    existing_list = list(existing)
    results: list[ReconciliationResult] = []
    for candidate in candidates:
        phone = normalize_phone(candidate.get(phone_field))
        if len(phone) < min_digits:
            results.append(
                ReconciliationResult(
                    candidate=dict(candidate),
                    status=CandidateStatus.INVALID,
                    errors=["invalid phone"],
                ),
            )
            continue
        duplicate = next(
            (
                record
                for record in existing_list
                if phones_match(phone, str(record.get(phone_field) or ""), loose=loose)
            ),
            None,
        )
        if duplicate is not None:
            results.append(_duplicate(candidate, duplicate))
            continue
        results.append(
            _similar_or_new(candidate, existing_list, field=name_field, threshold=threshold),
        )
    return results


def classify_by_expense_key(
    candidates: Iterable[Record],
    existing: Iterable[Record],
    *,
    description_field: str = "description",
    threshold: float = DEFAULT_THRESHOLD,
) -> list[ReconciliationResult]:
    """Expenses: description + amount + date triple, else fuzzy description."""

    existing_list = list(existing)
    by_key: dict[str, Record] = {}
    for record in existing_list:
        by_key.setdefault(expense_key(record, description_field=description_field), record)

    results: list[ReconciliationResult] = []
    for candidate in candidates:
        exact = by_key.get(expense_key(candidate, description_field=description_field))
        if exact is not None:
            results.append(_duplicate(candidate, exact))
            continue
        results.append(
            _similar_or_new(
                candidate,
                existing_list,
                field=description_field,
                threshold=threshold,
            ),
        )
    return results


def select_for_import(
    results: Iterable[ReconciliationResult],
    action: DuplicateAction,
) -> list[ReconciliationResult]:
    """Pick what gets enqueued: ``ignore`` keeps new records only, ``update`` all valid."""

    keep = (
        {CandidateStatus.NEW}
        if action == DuplicateAction.IGNORE
        else {CandidateStatus.NEW, CandidateStatus.DUPLICATE, CandidateStatus.SIMILAR}
    )
    return [result for result in results if result.status in keep and not result.errors]


def _duplicate(candidate: Record, match: Record) -> ReconciliationResult:
    return ReconciliationResult(
        candidate=dict(candidate),
        status=CandidateStatus.DUPLICATE,
        match=dict(match),
        similarity=1.0,
    )


def _similar_or_new(
    candidate: Record,
    existing: list[Record],
    *,
    field: str,
    threshold: float,
) -> ReconciliationResult:
    name = str(candidate.get(field) or "")
    found = best_match(name, existing, field=field, threshold=threshold) if name else None
    if found is None:
        return ReconciliationResult(candidate=dict(candidate), status=CandidateStatus.NEW)
    record, score = found
    return ReconciliationResult(
        candidate=dict(candidate),
        status=CandidateStatus.SIMILAR,
        match=dict(record),
        similarity=score,
    )
