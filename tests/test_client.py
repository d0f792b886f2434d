"""Tests for the webhook client."""

import httpx
import pytest

from slack_log_sink.client import WebhookClient
from slack_log_sink.models import Message

URL = "https://hooks.slack.test/services/T000/B000/XXXX"


def _client(handler):
    return WebhookClient(transport=httpx.MockTransport(handler))


class TestDeliver:
    def test_posts_json_body(self, recorder, webhook_client):
        assert webhook_client.deliver(URL, Message(text="hello", channel="#ops")) is True

        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == URL
        assert request.headers["Content-Type"] == "application/json"
        assert recorder.payloads == [{"text": "hello", "channel": "#ops"}]

    def test_one_request_per_message(self, recorder, webhook_client):
        for i in range(3):
            webhook_client.deliver(URL, Message(text=f"m{i}"))
        assert recorder.texts == ["m0", "m1", "m2"]

    @pytest.mark.parametrize("status", [200, 201, 204])
    def test_2xx_is_success(self, status):
        client = _client(lambda request: httpx.Response(status))
        try:
            assert client.deliver(URL, Message(text="x")) is True
        finally:
            client.close()

    @pytest.mark.parametrize("status", [400, 404, 429, 500])
    def test_non_2xx_is_failure(self, status):
        client = _client(lambda request: httpx.Response(status, text="invalid_payload"))
        try:
            assert client.deliver(URL, Message(text="x")) is False
        finally:
            client.close()

    def test_transport_error_is_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        try:
            assert client.deliver(URL, Message(text="x")) is False
        finally:
            client.close()

    def test_no_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = _client(handler)
        try:
            client.deliver(URL, Message(text="x"))
        finally:
            client.close()
        assert len(calls) == 1


class TestClose:
    def test_close_is_idempotent(self, webhook_client):
        webhook_client.close()
        webhook_client.close()
        assert webhook_client.closed is True

    def test_deliver_after_close_fails(self, recorder, webhook_client):
        webhook_client.close()
        assert webhook_client.deliver(URL, Message(text="late")) is False
        assert recorder.payloads == []

    def test_context_manager(self, recorder):
        with WebhookClient(transport=httpx.MockTransport(recorder)) as client:
            client.deliver(URL, Message(text="x"))
        assert client.closed is True
