"""Daemon process: always-on mode for production.

Usage: python -m w2m serve

Manages:
- Connector lifecycle (webhook, ...)
- PID file (prevent duplicate instances)
- Graceful shutdown (SIGTERM/SIGINT)
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

from w2m.config import W2MConfig, load_config
from w2m.core import W2M

logger = logging.getLogger(__name__)


class W2MDaemon:
    """Always-on daemon process."""

    def __init__(self, config: W2MConfig | None = None) -> None:
        self.config = config or load_config()
        self._shutdown_event = asyncio.Event()

    # ── PID file management ──────────────────────────────────

    def _write_pid(self) -> None:
        self.config.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_file.write_text(str(os.getpid()))
        logger.info("PID file written: %s (pid=%d)", self.config.pid_file, os.getpid())

    def _remove_pid(self) -> None:
        if self.config.pid_file.exists():
            self.config.pid_file.unlink()

    def _check_existing(self) -> None:
        if not self.config.pid_file.exists():
            return
        try:
            pid = int(self.config.pid_file.read_text().strip())
            os.kill(pid, 0)  # Check if process exists
            print(f"W2M daemon already running (pid={pid}). Exiting.", file=sys.stderr)
            sys.exit(1)
        except (ProcessLookupError, ValueError):
            # Stale PID file, remove it
            self._remove_pid()

    # ── Signal handling ──────────────────────────────────────

    def _setup_signals(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down...", sig.name)
        self._shutdown_event.set()

    # ── Build components ─────────────────────────────────────

    def build_w2m(self) -> W2M:
        return W2M(self.config)

    def _build_connectors(self, w2m: W2M) -> None:
        if self.config.webhook.enabled:
            try:
                from w2m.connectors.webhook import WebhookConnector

                w2m.add_connector(WebhookConnector(self.config.webhook))
            except ImportError:
                logger.warning("Webhook connector unavailable (install 'w2m[webhook]')")

    # ── Main run loop ────────────────────────────────────────

    async def run(self) -> int:
        w2m = self.build_w2m()
        self._build_connectors(w2m)
        if not w2m.connectors:
            logger.error(
                "No connectors enabled; set [webhook] enabled = true in w2m.toml "
                "or W2M_WEBHOOK_ENABLED=1"
            )
            return 1

        self._check_existing()
        self._write_pid()
        self._setup_signals()

        logger.info("W2M daemon starting (storage=%s)", self.config.storage.type)

        try:
            await w2m.start()
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await w2m.stop()
            self._remove_pid()
            logger.info("W2M daemon stopped.")
        return 0
