"""Local CLI REPL connector for development and testing."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from w2m.connectors.base import Message, format_message_time

if TYPE_CHECKING:
    from w2m.connectors.base import MessageHandler

logger = logging.getLogger(__name__)

_CLI_GROUP = "cli"
_CLI_SENDER = "cli"


class CLIConnector:
    """Interactive REPL connector; each stdin line is one chat message."""

    def __init__(self, sender: str = _CLI_SENDER, group: str = _CLI_GROUP) -> None:
        self._sender = sender
        self._group = group
        self._running = False

    @property
    def name(self) -> str:
        return "cli"

    async def start(self, handler: MessageHandler) -> None:
        self._running = True
        loop = asyncio.get_running_loop()

        print("W2M (type 'exit' or Ctrl+C to quit)")
        print("-" * 40)

        while self._running:
            try:
                line = await loop.run_in_executor(None, self._read_input)
            except (EOFError, KeyboardInterrupt):
                print("\nBye!")
                break

            if line is None or line.strip().lower() in ("exit", "quit"):
                print("Bye!")
                break

            text = line.strip()
            if not text:
                continue

            msg = Message(
                group=self._group,
                sender=self._sender,
                time=format_message_time(),
                content=text,
            )
            saved = await handler(msg)
            print("  [saved]" if saved else "  [no category matched]", file=sys.stderr)

    def _read_input(self) -> str | None:
        try:
            sys.stdout.write("\n> ")
            sys.stdout.flush()
            raw = sys.stdin.buffer.readline()
            if not raw:
                return None
            return raw.decode("utf-8", errors="replace").rstrip("\n")
        except EOFError:
            return None

    async def stop(self) -> None:
        self._running = False
