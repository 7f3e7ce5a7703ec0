"""Connector protocol and shared types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Coroutine, Protocol, runtime_checkable

MESSAGE_TIME_FORMAT = "%H:%M:%S - %d/%m/%Y"


@dataclass(frozen=True)
class Message:
    """A chat message received from any connector.

    ``time`` uses the transport format ``HH:MM:SS - DD/MM/YYYY``.
    """

    group: str
    sender: str
    time: str
    content: str


def format_message_time(moment: datetime | None = None) -> str:
    """Render ``moment`` (default: now) in the ``Message.time`` format."""
    return (moment or datetime.now()).strftime(MESSAGE_TIME_FORMAT)


# Callback type: core.W2M.handle_message, True when the message was archived
MessageHandler = Callable[[Message], Coroutine[None, None, bool]]


@runtime_checkable
class Connector(Protocol):
    """Protocol that all input connectors must implement."""

    @property
    def name(self) -> str: ...

    async def start(self, handler: MessageHandler) -> None:
        """Start listening for messages. Call handler for each incoming message."""
        ...

    async def stop(self) -> None:
        """Gracefully stop the connector."""
        ...
