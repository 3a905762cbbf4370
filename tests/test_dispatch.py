from __future__ import annotations

import json
import random

import allure
import httpx
import pytest

from bulk_runner.config import DispatchSettings, EngineSettings, Settings, ThrottleSettings
from bulk_runner.dispatch.campaign import (
    CampaignOperation,
    build_campaign_items,
    gateway_preflight,
    render_message,
    start_campaign,
)
from bulk_runner.dispatch.phone import format_phone_for_gateway
from bulk_runner.dispatch.sender import DispatchError, MessageSender, SendResult
from bulk_runner.engine.controller import TaskQueueController
from bulk_runner.engine.errors import EmptyQueueError, RunFatalError
from bulk_runner.engine.models import ItemStatus, RunKind, RunStatus, WorkItem

pytestmark = [
    allure.epic("Message Campaigns"),
    allure.feature("Gateway Dispatch"),
]


def _dispatch_settings(**overrides) -> DispatchSettings:
    values = {"api_url": "http://gateway.test", "api_key": "secret", "instance_name": "shop"}
    values.update(overrides)
    return DispatchSettings(**values)


class _FakeSender:
    def __init__(self, failing: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self.failing = failing or set()

    def send_text(self, number: str, text: str) -> SendResult:
        if number in self.failing:
            raise DispatchError("Connection lost. Please reconnect the gateway instance.")
        self.sent.append((number, text))
        return SendResult(number=number, status_code=201)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("(16) 99988-7766", "5516999887766"),
        ("11 3333-4444", "551133334444"),
        ("5516999887766", "5516999887766"),
        ("+44 20 7946 0958", "442079460958"),
        ("0800 123 4567", "08001234567"),
        ("abc", ""),
    ],
)
def test_format_phone_for_gateway(raw: str, expected: str) -> None:
    assert format_phone_for_gateway(raw) == expected


def test_render_message_replaces_every_placeholder() -> None:
    assert render_message("Oi {nome}! {name}, tudo bem?", "Ana") == "Oi Ana! Ana, tudo bem?"


def test_build_campaign_items_skips_contacts_without_phone() -> None:
    items = build_campaign_items(
        [
            {"id": 1, "name": "Ana", "phone": "16999887766"},
            {"id": 2, "name": "Bia", "phone": "  "},
            {"id": 3, "name": "Caio"},
        ],
    )

    assert [(item.id, item.label) for item in items] == [("1", "Ana")]
    assert items[0].payload == {"name": "Ana", "phone": "16999887766"}


def test_build_campaign_items_requires_a_phone() -> None:
    with pytest.raises(EmptyQueueError, match="No contacts with a valid phone"):
        build_campaign_items([{"id": 1, "name": "Ana", "phone": ""}])


def test_build_campaign_items_rejects_contact_without_id() -> None:
    with pytest.raises(ValueError, match="Contact #2 has no id"):
        build_campaign_items(
            [
                {"id": 1, "name": "Ana", "phone": "16999887766"},
                {"name": "Bia", "phone": "21977776666"},
            ],
        )


def test_campaign_operation_formats_phone_and_text() -> None:
    sender = _FakeSender()
    operation = CampaignOperation(sender, "Oi {nome}")

    operation(WorkItem(id="1", label="Ana", payload={"name": "Ana", "phone": "(16) 99988-7766"}))

    assert sender.sent == [("5516999887766", "Oi Ana")]


def test_campaign_operation_rejects_phone_without_digits() -> None:
    operation = CampaignOperation(_FakeSender(), "Oi")

    with pytest.raises(ValueError, match="Invalid phone"):
        operation(WorkItem(id="1", label="Ana", payload={"name": "Ana", "phone": "n/a"}))


def test_gateway_preflight_raises_fatal_error() -> None:
    check = gateway_preflight(Settings(dispatch=_dispatch_settings(instance_name="")))

    with pytest.raises(RunFatalError, match="not connected"):
        check()


def test_sender_posts_text_with_api_key() -> None:
    captured: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(201, json={"key": {"id": "abc"}})

    with MessageSender(_dispatch_settings(), transport=httpx.MockTransport(_handler)) as sender:
        result = sender.send_text("5516999887766", "Oi Ana")

    assert result == SendResult(number="5516999887766", status_code=201)
    request = captured[0]
    assert request.method == "POST"
    assert str(request.url) == "http://gateway.test/message/sendText/shop"
    assert request.headers["apikey"] == "secret"
    assert json.loads(request.content) == {"number": "5516999887766", "text": "Oi Ana"}


@pytest.mark.parametrize(
    ("status_code", "body", "message"),
    [
        (404, "", "Connection lost"),
        (401, "", "Not authorized"),
        (403, "", "Not authorized"),
        (400, '{"message": "number not on network"}', "number not on network"),
        (500, "oops", "Could not send the message"),
    ],
)
def test_sender_humanizes_gateway_errors(status_code: int, body: str, message: str) -> None:
    transport = httpx.MockTransport(lambda _request: httpx.Response(status_code, text=body))
    sender = MessageSender(_dispatch_settings(), transport=transport)

    with pytest.raises(DispatchError, match=message) as excinfo:
        sender.send_text("5516999887766", "Oi")

    assert excinfo.value.status_code == status_code
    sender.close()


def test_sender_reports_timeouts() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    sender = MessageSender(_dispatch_settings(), transport=httpx.MockTransport(_handler))

    with pytest.raises(DispatchError, match="timed out"):
        sender.send_text("5516999887766", "Oi")
    sender.close()


def _campaign_settings(**dispatch_overrides) -> Settings:
    return Settings(
        engine=EngineSettings(
            pause_poll_seconds=0.01,
            throttle_tick_seconds=0.01,
            auto_hide_seconds=0,
        ),
        throttle=ThrottleSettings(jitter_min_seconds=0.01, jitter_max_seconds=0.02),
        dispatch=_dispatch_settings(**dispatch_overrides),
    )


def test_start_campaign_sends_to_each_contact() -> None:
    settings = _campaign_settings()
    controller = TaskQueueController("campaign", settings=settings.engine)
    sender = _FakeSender(failing={"5521977776666"})

    run_id = start_campaign(
        controller,
        contacts=[
            {"id": "c1", "name": "Ana", "phone": "(16) 99988-7766"},
            {"id": "c2", "name": "Bia", "phone": "21 97777-6666"},
            {"id": "c3", "name": "Caio", "phone": "n/a"},
            {"id": "c4", "name": "Duda", "phone": ""},
        ],
        template="Oi {nome}",
        sender=sender,
        settings=settings,
        rng=random.Random(1),
    )
    final = controller.wait(timeout=5)

    assert final.run_id == run_id
    assert final.kind == RunKind.DISPATCH
    assert final.subject_domain == "customers"
    assert final.status == RunStatus.COMPLETED
    assert final.total == 3
    assert [item.status for item in final.items] == [
        ItemStatus.SUCCESS,
        ItemStatus.ERROR,
        ItemStatus.ERROR,
    ]
    assert sender.sent == [("5516999887766", "Oi Ana")]
    assert final.items[1].error_detail.startswith("Connection lost")
    assert final.items[2].error_detail == "Invalid phone"
    assert final.log[0].message == "Message sent successfully"


def test_start_campaign_refuses_without_gateway_instance() -> None:
    settings = _campaign_settings(instance_name="")
    controller = TaskQueueController("campaign", settings=settings.engine)

    with pytest.raises(RunFatalError, match="not connected"):
        start_campaign(
            controller,
            contacts=[{"id": "c1", "name": "Ana", "phone": "16999887766"}],
            template="Oi",
            sender=_FakeSender(),
            settings=settings,
        )

    assert controller.snapshot().status == RunStatus.IDLE
