"""HTTP client for the text-message gateway."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import httpx

from bulk_runner.config import DispatchSettings

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Could not send the message. Try again."


class DispatchError(RuntimeError):
    """Gateway refused or failed a send; message is safe to show to users."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class SendResult:
    number: str
    status_code: int


class MessageSender:
    """Posts text messages to ``{api_url}/message/sendText/{instance}``."""

    def __init__(
        self,
        settings: DispatchSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.instance_name = settings.instance_name
        headers = {"Content-Type": "application/json"}
        if settings.api_key:
            headers["apikey"] = settings.api_key
            headers["Authorization"] = f"Bearer {settings.api_key}"
        self._client = httpx.Client(
            base_url=settings.api_url.rstrip("/"),
            timeout=httpx.Timeout(settings.request_timeout_seconds, connect=10.0),
            headers=headers,
            transport=transport or httpx.HTTPTransport(retries=settings.max_retries),
        )

    def send_text(self, number: str, text: str) -> SendResult:
        """Send ``text`` to ``number``; raise :class:`DispatchError` on failure."""

        try:
            response = self._client.post(
                f"/message/sendText/{self.instance_name}",
                json={"number": number, "text": text},
            )
        except httpx.TimeoutException as exc:
            logger.warning("Timeout sending message to %s", number)
            raise DispatchError("Gateway timed out. Try again.") from exc
        except httpx.HTTPError as exc:
            logger.warning("HTTP error sending message to %s: %s", number, exc)
            raise DispatchError(DEFAULT_ERROR_MESSAGE) from exc

        if not response.is_success:
            raise DispatchError(
                _humanize_error(response.status_code, response.text),
                status_code=response.status_code,
            )
        return SendResult(number=number, status_code=response.status_code)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> MessageSender:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _humanize_error(status_code: int, body: str) -> str:
    if status_code == httpx.codes.NOT_FOUND:
        return "Connection lost. Please reconnect the gateway instance."
    if status_code in {httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN}:
        return "Not authorized. Check the gateway connection."
    try:
        payload = json.loads(body)
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return DEFAULT_ERROR_MESSAGE
