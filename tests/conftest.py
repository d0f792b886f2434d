import json
import threading
import time

import httpx
import pytest

from slack_log_sink.client import WebhookClient
from slack_log_sink.config import SinkOptions

WEBHOOK_URL = "https://hooks.slack.test/services/T000/B000/XXXX"


class RecordingTransport:
    """httpx handler that records every posted payload."""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.payloads: list[dict] = []
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
            self.payloads.append(json.loads(request.content))
        return httpx.Response(self.status_code, text="ok")

    @property
    def texts(self) -> list[str]:
        with self._lock:
            return [p.get("text") for p in self.payloads]


def _wait_for(predicate, timeout=3.0):
    """Poll until *predicate* is true or *timeout* seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def wait_for():
    return _wait_for


@pytest.fixture
def recorder():
    return RecordingTransport()


@pytest.fixture
def webhook_client(recorder):
    client = WebhookClient(transport=httpx.MockTransport(recorder))
    yield client
    client.close()


@pytest.fixture
def make_options():
    def _make(**overrides):
        overrides.setdefault("webhook_url", WEBHOOK_URL)
        return SinkOptions(**overrides)

    return _make
