"""Message campaigns: one jitter-paced run sending a text to each contact."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol

from bulk_runner.config import Settings
from bulk_runner.dispatch.phone import format_phone_for_gateway
from bulk_runner.engine.controller import TaskQueueController
from bulk_runner.engine.errors import EmptyQueueError, RunFatalError
from bulk_runner.engine.models import WorkItem
from bulk_runner.engine.presets import dispatch_options

logger = logging.getLogger(__name__)

NAME_PLACEHOLDERS = ("{name}", "{nome}")


class TextSender(Protocol):
    def send_text(self, number: str, text: str) -> Any: ...


def render_message(template: str, name: str) -> str:
    """Substitute every name placeholder in ``template``."""

    message = template
    for placeholder in NAME_PLACEHOLDERS:
        message = message.replace(placeholder, name)
    return message


def build_campaign_items(contacts: Iterable[Mapping[str, Any]]) -> list[WorkItem]:
    """Keep contacts that have a phone; raise :class:`EmptyQueueError` if none do.

    A contact without an ``id`` raises ``ValueError``.
    """

    items = []
    for position, contact in enumerate(contacts, start=1):
        contact_id = contact.get("id")
        if contact_id is None or str(contact_id).strip() == "":
            raise ValueError(f"Contact #{position} has no id.")
        if not str(contact.get("phone") or "").strip():
            continue
        items.append(
            WorkItem(
                id=str(contact_id),
                label=str(contact.get("name") or contact_id),
                payload={"name": str(contact.get("name") or ""), "phone": str(contact["phone"])},
            ),
        )
    if not items:
        raise EmptyQueueError("No contacts with a valid phone selected.")
    return items


class CampaignOperation:
    """Per-item send: format phone, personalise text, hand over to the sender."""

    def __init__(self, sender: TextSender, template: str) -> None:
        self.sender = sender
        self.template = template

    def __call__(self, item: WorkItem) -> Any:
        number = format_phone_for_gateway(item.payload.get("phone", ""))
        if not number:
            raise ValueError("Invalid phone")
        text = render_message(self.template, item.payload.get("name") or item.label)
        return self.sender.send_text(number, text)


def gateway_preflight(settings: Settings) -> Callable[[], None]:
    """Check, on the lane, that the gateway is configured before any send."""

    def _check() -> None:
        try:
            settings.validate_for_dispatch()
        except ValueError as error:
            raise RunFatalError(f"Messaging gateway is not connected: {error}") from error

    return _check


def start_campaign(  # noqa: PLR0913
    controller: TaskQueueController,
    *,
    contacts: Iterable[Mapping[str, Any]],
    template: str,
    sender: TextSender,
    settings: Settings,
    rng: random.Random | None = None,
) -> str:
    """Start a campaign run on ``controller`` and return its run id."""

    if not settings.dispatch.instance_name.strip():
        raise RunFatalError("Messaging gateway is not connected.")
    items = build_campaign_items(contacts)
    options = dispatch_options(
        throttle=settings.throttle,
        preflight=gateway_preflight(settings),
        rng=rng,
    )
    run_id = controller.start(items, CampaignOperation(sender, template), options)
    logger.info("Campaign %s started for %d contacts", run_id, len(items))
    return run_id
