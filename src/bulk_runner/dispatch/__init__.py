"""Outbound text-message campaigns reached through the engine's operation callback."""

from bulk_runner.dispatch.campaign import (
    CampaignOperation,
    build_campaign_items,
    gateway_preflight,
    render_message,
    start_campaign,
)
from bulk_runner.dispatch.phone import format_phone_for_gateway
from bulk_runner.dispatch.sender import DispatchError, MessageSender, SendResult

__all__ = [
    "CampaignOperation",
    "DispatchError",
    "MessageSender",
    "SendResult",
    "build_campaign_items",
    "format_phone_for_gateway",
    "gateway_preflight",
    "render_message",
    "start_campaign",
]
