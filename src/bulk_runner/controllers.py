"""Controllers for bulk-runner CLI commands."""

from __future__ import annotations

import json
import logging
import queue
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from bulk_runner.config import Settings, ThrottleSettings
from bulk_runner.dispatch.campaign import start_campaign
from bulk_runner.dispatch.sender import MessageSender, SendResult
from bulk_runner.engine.errors import BulkRunnerError, RunFatalError
from bulk_runner.engine.models import RunSnapshot
from bulk_runner.engine.service import LANE_CAMPAIGN, BulkOperationService
from bulk_runner.reconcile.classifier import (
    classify_by_expense_key,
    classify_by_name,
    classify_by_phone,
    select_for_import,
)
from bulk_runner.reconcile.models import CandidateStatus, DuplicateAction, ReconciliationResult
from bulk_runner.reconcile.similarity import similarity

logger = logging.getLogger(__name__)

RECONCILE_KEYS = ("name", "phone", "expense")


@dataclass(slots=True)
class ScoreCommand:
    """CLI inputs for the similarity score command."""

    left: str
    right: str


@dataclass(slots=True)
class ReconcileCommand:
    """CLI inputs for duplicate classification."""

    existing_path: Path
    candidates_path: Path
    key: str
    duplicate_action: DuplicateAction


@dataclass(slots=True)
class CampaignCommand:
    """CLI inputs for a message campaign run."""

    contacts_path: Path
    message: str
    min_delay_seconds: float | None
    max_delay_seconds: float | None
    dry_run: bool


class _DryRunSender:
    """Logs sends instead of calling the gateway."""

    def send_text(self, number: str, text: str) -> SendResult:
        logger.info("Dry run: would send %d chars to %s", len(text), number)
        return SendResult(number=number, status_code=200)

    def close(self) -> None:
        return None


class BulkRunnerCliController:
    """Coordinates bulk-runner command execution."""

    def score(self, command: ScoreCommand) -> list[str]:
        value = similarity(command.left, command.right)
        return [f"similarity={value:.4f}"]

    def reconcile(self, command: ReconcileCommand) -> list[str]:
        settings = Settings.from_env()
        settings.validate()
        existing = _read_records(command.existing_path)
        candidates = _read_records(command.candidates_path)
        threshold = settings.reconcile.similarity_threshold

        if command.key == "phone":
            results = classify_by_phone(
                candidates,
                existing,
                min_digits=settings.reconcile.min_phone_digits,
                threshold=threshold,
            )
            label_field = "name"
        elif command.key == "expense":
            results = classify_by_expense_key(candidates, existing, threshold=threshold)
            label_field = "description"
        elif command.key == "name":
            results = classify_by_name(candidates, existing, threshold=threshold)
            label_field = "name"
        else:
            raise ValueError(
                f"Unknown reconcile key: {command.key!r}. "
                f"Expected one of: {', '.join(RECONCILE_KEYS)}.",
            )

        lines = [_format_result(result, label_field) for result in results]
        counts = {status: 0 for status in CandidateStatus}
        for result in results:
            counts[result.status] += 1
        selected = select_for_import(results, command.duplicate_action)
        lines.append(
            "Summary: "
            + " ".join(f"{status.value}={counts[status]}" for status in CandidateStatus)
            + f" selected={len(selected)} action={command.duplicate_action.value}",
        )
        return lines

    def run_campaign(self, command: CampaignCommand) -> Iterator[str]:
        """Run a campaign to completion, yielding log lines as they are recorded."""

        settings = Settings.from_env()
        throttle = settings.throttle
        settings.throttle = ThrottleSettings(
            fixed_delay_seconds=throttle.fixed_delay_seconds,
            jitter_min_seconds=_pick(command.min_delay_seconds, throttle.jitter_min_seconds),
            jitter_max_seconds=_pick(command.max_delay_seconds, throttle.jitter_max_seconds),
        )
        if command.dry_run:
            settings.dispatch.instance_name = settings.dispatch.instance_name or "dry-run"
            settings.validate()
            sender: MessageSender | _DryRunSender = _DryRunSender()
        else:
            settings.validate_for_dispatch()
            sender = MessageSender(settings.dispatch)

        contacts = _read_records(command.contacts_path, required=("id",))
        service = BulkOperationService(settings)
        controller = service.controller(LANE_CAMPAIGN)
        updates: queue.Queue[RunSnapshot] = queue.Queue()
        unsubscribe = controller.subscribe(updates.put)
        try:
            try:
                run_id = start_campaign(
                    controller,
                    contacts=contacts,
                    template=command.message,
                    sender=sender,
                    settings=settings,
                )
            except BulkRunnerError as error:
                yield f"Campaign not started: {error}"
                return

            total = controller.snapshot().total
            yield f"Campaign {run_id[:12]} started: {total} contacts (Ctrl-C to stop)"
            yield from _stream_log(controller_stop=controller.stop, updates=updates, run_id=run_id)

            try:
                final = controller.wait()
            except RunFatalError as error:
                yield f"Campaign failed: {error}"
                return
            yield from _format_final(final)
        finally:
            unsubscribe()
            service.shutdown()
            sender.close()


def _stream_log(
    *,
    controller_stop: Callable[[], bool],
    updates: queue.Queue[RunSnapshot],
    run_id: str,
) -> Iterator[str]:
    emitted = 0
    while True:
        try:
            snapshot = updates.get(timeout=0.5)
        except queue.Empty:
            continue
        except KeyboardInterrupt:
            if controller_stop():
                yield "Stop requested; finishing the current contact…"
            continue
        if snapshot.run_id != run_id:
            continue
        for entry in snapshot.log[emitted:]:
            yield entry.format()
        emitted = max(emitted, len(snapshot.log))
        if snapshot.is_terminal:
            return


def _format_final(snapshot: RunSnapshot) -> Iterator[str]:
    yield ""
    yield (
        f"Status: {snapshot.status.value} "
        f"sent={snapshot.succeeded} errors={snapshot.failed} total={snapshot.total}"
    )
    for item in snapshot.failures():
        yield f"  [error] {item.label}: {item.error_detail}"


def _format_result(result: ReconciliationResult, label_field: str) -> str:
    label = result.candidate.get(label_field) or result.candidate.get("id") or "?"
    line = f"[{result.status.value}] {label}"
    if result.match is not None:
        matched = result.match.get(label_field) or result.match.get("id")
        line += f" -> {matched} (id={result.match_id})"
    if result.status == CandidateStatus.SIMILAR and result.similarity is not None:
        line += f" similarity={result.similarity:.0%}"
    if result.errors:
        line += f" errors={'; '.join(result.errors)}"
    return line


def _read_records(path: Path, *, required: tuple[str, ...] = ()) -> list[dict[str, Any]]:
    try:
        payload = json.loads(path.read_text("utf-8"))
    except json.JSONDecodeError as error:
        raise ValueError(f"Invalid JSON in {path}: {error}") from error
    if isinstance(payload, dict):
        payload = payload.get("records")
    if not isinstance(payload, list) or not all(isinstance(row, dict) for row in payload):
        raise ValueError(f"{path} must contain a JSON list of objects or {{'records': [...]}}.")
    for position, row in enumerate(payload, start=1):
        missing = [key for key in required if row.get(key) in (None, "")]
        if missing:
            raise ValueError(
                f"Record #{position} in {path.name} is missing {', '.join(missing)}.",
            )
    return payload


def _pick(override: float | None, default: float) -> float:
    return default if override is None else override
