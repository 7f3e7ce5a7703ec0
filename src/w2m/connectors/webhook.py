"""HTTP webhook connector.

External ingestors (a WhatsApp bridge, scripts, ...) POST messages as JSON:

    POST /messages
    {"group": "Team", "sender": "Ana", "time": "10:00:00 - 01/01/2024",
     "content": ",,CODE print('hi')"}

``time`` is optional and defaults to the moment of receipt.
Requires: pip install 'w2m[webhook]'
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from w2m.connectors.base import Message, format_message_time

if TYPE_CHECKING:
    from w2m.config import WebhookConfig
    from w2m.connectors.base import MessageHandler

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-W2M-Token"


class WebhookConnector:
    """aiohttp server turning JSON posts into messages."""

    def __init__(self, config: WebhookConfig) -> None:
        self._config = config
        self._handler: MessageHandler | None = None
        self._runner = None

        try:
            from aiohttp import web

            self._web = web
        except ImportError:
            raise ImportError(
                "aiohttp package required. Install with: pip install 'w2m[webhook]'"
            )

    @property
    def name(self) -> str:
        return "webhook"

    def build_app(self):
        app = self._web.Application()
        app.router.add_post("/messages", self._handle_message)
        app.router.add_get("/health", self._handle_health)
        return app

    async def start(self, handler: MessageHandler) -> None:
        self._handler = handler
        self._runner = self._web.AppRunner(self.build_app())
        await self._runner.setup()
        site = self._web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()
        logger.info("Webhook listening on %s:%d", self._config.host, self._config.port)

    async def _handle_health(self, request):
        return self._web.json_response({"status": "ok"})

    async def _handle_message(self, request):
        web = self._web

        if self._config.token and request.headers.get(TOKEN_HEADER, "") != self._config.token:
            logger.warning("Rejected webhook call with invalid token")
            return web.json_response({"error": "forbidden"}, status=403)

        try:
            body = await request.json()
        except ValueError:
            return web.json_response({"error": "invalid JSON"}, status=400)

        msg = self._parse(body)
        if msg is None:
            return web.json_response({"error": "content is required"}, status=400)

        try:
            saved = await self._handler(msg)
        except Exception as e:
            logger.error("Error processing webhook message from %s: %s", msg.sender, e)
            return web.json_response({"error": "processing failed"}, status=500)

        return web.json_response({"saved": saved})

    @staticmethod
    def _parse(body: object) -> Message | None:
        if not isinstance(body, dict):
            return None
        content = body.get("content")
        if not isinstance(content, str) or not content.strip():
            return None
        return Message(
            group=str(body.get("group") or ""),
            sender=str(body.get("sender") or ""),
            time=str(body.get("time") or format_message_time()),
            content=content,
        )

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Webhook stopped")
