# src/gymadmin_core/polling/push_poller.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

import websockets

from .backoff import backoff_delay

logger = logging.getLogger(__name__)

# Receives each decoded JSON message; may return an awaitable.
MessageHandler = Callable[[Any], Any]

RECONNECT_BASE_SECONDS = 1.0
RECONNECT_MULTIPLIER = 2.0
RECONNECT_MAX_SECONDS = 30.0


class PushStatus(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    WAITING = "waiting"  # between a close and the next reconnect attempt
    CLOSED = "closed"


class PushPoller:
    """
    Push-based alternative to a timer task: keeps a WebSocket open and hands
    every JSON message to `handler`.

    On close (clean or not) it reconnects after
    backoff_delay(base, 2, attempt, 30s), up to `max_reconnects` times in a
    row. A successful open resets the attempt counter. Bad messages and handler
    errors are logged and do not drop the connection. After giving up it
    closes itself and reports to `on_give_up`.
    """

    def __init__(
            self,
            name: str,
            url: str,
            handler: MessageHandler,
            *,
            max_reconnects: int = 5,
            reconnect_base_delay: float = RECONNECT_BASE_SECONDS,
            reconnect_max_delay: float = RECONNECT_MAX_SECONDS,
            on_message: Callable[[], None] | None = None,
            on_give_up: Callable[[PushPoller], None] | None = None,
            **connect_kwargs: Any,
    ) -> None:
        self.name = name
        self.url = url
        self._handler = handler
        self.max_reconnects = max(0, int(max_reconnects))
        self._base_delay = float(reconnect_base_delay)
        self._max_delay = float(reconnect_max_delay)
        self._on_message = on_message
        self._on_give_up = on_give_up
        self._connect_kwargs = connect_kwargs

        self.status = PushStatus.IDLE
        self.reconnect_attempts = 0
        self.messages_received = 0

        self._ws: Any = None
        self._runner: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._ws is not None and self.status == PushStatus.OPEN

    def start(self) -> None:
        if self._runner is not None or self._closed:
            return
        self._runner = asyncio.get_running_loop().create_task(
            self._run(), name=f"push:{self.name}"
        )

    def close(self) -> None:
        """Stop reconnecting and drop the current connection (if any)."""
        self._closed = True
        if self._runner is not None and not self._runner.done():
            self._runner.cancel()
        self.status = PushStatus.CLOSED
        logger.info("Push poller %s closed", self.name)

    async def wait_closed(self) -> None:
        if self._runner is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await self._runner

    async def send(self, data: Any) -> bool:
        """Send a string as-is, anything else as JSON. False when not connected."""
        ws = self._ws
        if ws is None or self.status != PushStatus.OPEN:
            return False

        payload = data if isinstance(data, str) else json.dumps(data)
        try:
            await ws.send(payload)
        except websockets.exceptions.ConnectionClosed:
            logger.warning("Push poller %s: send on closed connection", self.name)
            return False
        return True

    async def _run(self) -> None:
        while not self._closed:
            self.status = PushStatus.CONNECTING
            try:
                async with websockets.connect(self.url, **self._connect_kwargs) as ws:
                    self._ws = ws
                    self.status = PushStatus.OPEN
                    self.reconnect_attempts = 0
                    logger.info("Push poller %s connected to %s", self.name, self.url)

                    async for raw in ws:
                        await self._dispatch(raw)
            except (OSError, TimeoutError, websockets.exceptions.WebSocketException) as e:
                logger.warning("Push poller %s connection error: %r", self.name, e)
            finally:
                self._ws = None

            if self._closed:
                break

            if self.reconnect_attempts >= self.max_reconnects:
                logger.error(
                    "Push poller %s gave up after %d reconnect attempts",
                    self.name,
                    self.reconnect_attempts,
                )
                self._closed = True
                self.status = PushStatus.CLOSED
                if self._on_give_up is not None:
                    self._on_give_up(self)
                break

            delay = backoff_delay(
                self._base_delay, RECONNECT_MULTIPLIER, self.reconnect_attempts, self._max_delay
            )
            self.reconnect_attempts += 1
            self.status = PushStatus.WAITING
            logger.info(
                "Push poller %s reconnecting in %.2fs (attempt %d/%d)",
                self.name,
                delay,
                self.reconnect_attempts,
                self.max_reconnects,
            )
            await asyncio.sleep(delay)

        self.status = PushStatus.CLOSED

    async def _dispatch(self, raw: str | bytes) -> None:
        self.messages_received += 1
        if self._on_message is not None:
            self._on_message()

        try:
            data = json.loads(raw)
            result = self._handler(data)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Push poller %s: message handling failed", self.name)
