"""Webhook client: posts one serialized message per HTTP request."""

import logging
from typing import Optional

import httpx

from slack_log_sink.diagnostics import selflog
from slack_log_sink.models import Message
from slack_log_sink.serializer import serialize_message

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class WebhookClient:
    """Delivers messages to a Slack incoming webhook.

    Owns a single pooled ``httpx.Client`` for its whole lifetime. Delivery
    never retries and never raises on HTTP or transport failures; it reports
    the outcome as a bool.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self._closed = False

    def deliver(self, webhook_url: str, message: Message) -> bool:
        """POST *message* to *webhook_url*. Returns True on a 2xx response."""
        if self._closed:
            selflog.warning("Webhook client is closed, message not delivered")
            return False

        body = serialize_message(message)
        try:
            response = self._client.post(webhook_url, content=body)
        except httpx.HTTPError as exc:
            selflog.warning("Slack webhook request failed: %s", exc)
            return False

        if response.is_success:
            logger.debug("Delivered message (%d bytes)", len(body))
            return True

        selflog.warning(
            "Slack webhook returned %d: %s",
            response.status_code,
            response.text[:200],
        )
        return False

    def close(self):
        """Close the underlying HTTP client. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._client.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
