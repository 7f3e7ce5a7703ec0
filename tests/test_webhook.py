"""Tests for the HTTP webhook connector."""

from __future__ import annotations

import json

import pytest

from w2m.config import WebhookConfig
from w2m.connectors.base import Message
from w2m.connectors.webhook import TOKEN_HEADER, WebhookConnector

pytest.importorskip("aiohttp")


class FakeRequest:
    def __init__(self, body, headers: dict | None = None, raw: str | None = None):
        self._body = body
        self._raw = raw
        self.headers = headers or {}

    async def json(self):
        if self._raw is not None:
            return json.loads(self._raw)
        return self._body


def _payload(response) -> dict:
    return json.loads(response.text)


@pytest.fixture
def received() -> list[Message]:
    return []


@pytest.fixture
def connector(received: list[Message]) -> WebhookConnector:
    async def handler(msg: Message) -> bool:
        received.append(msg)
        return msg.content.startswith(",,")

    conn = WebhookConnector(WebhookConfig(enabled=True, token="s3cret"))
    conn._handler = handler
    return conn


class TestWebhook:
    @pytest.mark.asyncio
    async def test_message_forwarded(self, connector: WebhookConnector, received):
        body = {"group": "Team", "sender": "Ana", "time": "10:00:00 - 01/01/2024",
                "content": ",,CODE x"}
        resp = await connector._handle_message(FakeRequest(body, {TOKEN_HEADER: "s3cret"}))
        assert resp.status == 200
        assert _payload(resp) == {"saved": True}
        assert received == [Message("Team", "Ana", "10:00:00 - 01/01/2024", ",,CODE x")]

    @pytest.mark.asyncio
    async def test_time_defaults_to_now(self, connector: WebhookConnector, received):
        body = {"sender": "Ana", "content": "hello"}
        resp = await connector._handle_message(FakeRequest(body, {TOKEN_HEADER: "s3cret"}))
        assert _payload(resp) == {"saved": False}
        assert " - " in received[0].time

    @pytest.mark.asyncio
    async def test_bad_token(self, connector: WebhookConnector, received):
        resp = await connector._handle_message(FakeRequest({"content": "x"}, {TOKEN_HEADER: "no"}))
        assert resp.status == 403
        assert received == []

    @pytest.mark.asyncio
    async def test_missing_content(self, connector: WebhookConnector):
        resp = await connector._handle_message(FakeRequest({"sender": "Ana"}, {TOKEN_HEADER: "s3cret"}))
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_invalid_json(self, connector: WebhookConnector):
        resp = await connector._handle_message(
            FakeRequest(None, {TOKEN_HEADER: "s3cret"}, raw="{oops")
        )
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_health(self, connector: WebhookConnector):
        resp = await connector._handle_health(FakeRequest(None))
        assert _payload(resp) == {"status": "ok"}

    def test_routes(self, connector: WebhookConnector):
        app = connector.build_app()
        paths = {r.resource.canonical for r in app.router.routes()}
        assert {"/messages", "/health"} <= paths
