"""
Connection Manager
Keeps at most one live alert channel open and reconnects on failure.

State machine
─────────────
  disconnected ──connect()──▶ connecting ──open──▶ connected
  connecting / connected ──error/close──▶ disconnected ──(timer)──▶ connecting
  any ──disconnect()──▶ disconnected   (timer cancelled, no further retries)

Retries use a fixed delay (3 s by default) with no growth and no cap; the
only way to stop the loop is :meth:`ConnectionManager.disconnect`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol

import websockets

from idswatch.contracts.alert import Alert
from idswatch.contracts.enums import ConnectionState
from idswatch.contracts.envelope import decode_envelope
from idswatch.errors import AlertDecodeError

log = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY_SEC = 3.0


class Channel(Protocol):
    """What the manager needs from an open transport."""

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...

    async def close(self) -> None: ...


Connector = Callable[[str], Awaitable[Channel]]
StateListener = Callable[[ConnectionState], None]


async def websocket_connector(url: str) -> Channel:
    return await websockets.connect(url)


@dataclass
class ConnectionStats:
    connect_attempts: int = 0
    messages_received: int = 0
    alerts_received: int = 0
    decode_errors: int = 0
    reconnects_scheduled: int = 0
    connected_at: datetime | None = None
    last_decode_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "connect_attempts": self.connect_attempts,
            "messages_received": self.messages_received,
            "alerts_received": self.alerts_received,
            "decode_errors": self.decode_errors,
            "reconnects_scheduled": self.reconnects_scheduled,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
            "last_decode_error": self.last_decode_error,
        }


class ConnectionManager:
    """Owns one realtime alert channel.

    ``on_alert`` is invoked for every successfully decoded alert, in arrival
    order. All methods must be called from the event loop thread.
    """

    def __init__(
        self,
        url: str,
        on_alert: Callable[[Alert], None],
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SEC,
        connector: Connector | None = None,
    ) -> None:
        self.url = url
        self.reconnect_delay = reconnect_delay
        self._on_alert = on_alert
        self._connector: Connector = connector or websocket_connector
        self._state = ConnectionState.DISCONNECTED
        self._error: str | None = None
        self._task: asyncio.Task | None = None
        self._channel: Channel | None = None
        self._reconnect_timer: asyncio.TimerHandle | None = None
        self._manual_stop = False
        self._listeners: list[StateListener] = []
        self.stats = ConnectionStats()

    # ── status ───────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns the unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                log.exception("Connection state listener failed")

    # ── public API ───────────────────────────────────────────────────────

    def connect(self) -> None:
        """Open the channel unless one is already open or opening."""
        if self._task is not None and not self._task.done():
            log.debug("connect() ignored — channel already %s", self._state.value)
            return
        self._manual_stop = False
        self._cancel_reconnect()
        loop = asyncio.get_running_loop()
        self._set_state(ConnectionState.CONNECTING)
        self._task = loop.create_task(self._run(), name="idswatch-alert-channel")

    def disconnect(self) -> None:
        """Stop the channel and the retry loop. Safe to call repeatedly."""
        self._manual_stop = True
        self._cancel_reconnect()
        task, self._task = self._task, None
        if task is not None and not task.done():
            # The reader closes the channel on cancellation.
            task.cancel()
        self._set_state(ConnectionState.DISCONNECTED)

    async def wait_closed(self) -> None:
        """Disconnect and wait until the reader task has finished."""
        task = self._task
        self.disconnect()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ── reader task ──────────────────────────────────────────────────────

    async def _run(self) -> None:
        self.stats.connect_attempts += 1
        log.info("Connecting to %s (attempt %d)", self.url, self.stats.connect_attempts)
        try:
            channel = await self._connector(self.url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.warning("Failed to connect to %s: %s", self.url, exc)
            self._error = "Failed to connect"
            self._on_closed()
            return

        self._channel = channel
        self._error = None
        self.stats.connected_at = datetime.now(timezone.utc)
        self._set_state(ConnectionState.CONNECTED)
        log.info("Alert channel connected")

        try:
            async for message in channel:
                self._handle_message(message)
            log.info("Alert channel closed by peer")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.warning("Alert channel error: %s", exc)
            self._error = "Connection error"
        finally:
            self._channel = None
            with contextlib.suppress(Exception):
                await channel.close()
        self._on_closed()

    def _handle_message(self, raw: str | bytes) -> None:
        self.stats.messages_received += 1
        try:
            alert = decode_envelope(raw).alert()
        except AlertDecodeError as exc:
            self.stats.decode_errors += 1
            self.stats.last_decode_error = str(exc)
            log.warning("Dropped channel message: %s", exc)
            return
        self.stats.alerts_received += 1
        try:
            self._on_alert(alert)
        except Exception:
            log.exception("Alert handler failed for %s", alert.id)

    # ── reconnect ────────────────────────────────────────────────────────

    def _on_closed(self) -> None:
        self.stats.connected_at = None
        self._set_state(ConnectionState.DISCONNECTED)
        if self._manual_stop:
            return
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        self._cancel_reconnect()
        loop = asyncio.get_running_loop()
        self._reconnect_timer = loop.call_later(self.reconnect_delay, self._reconnect)
        self.stats.reconnects_scheduled += 1
        log.info("Reconnecting in %.1fs", self.reconnect_delay)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _reconnect(self) -> None:
        self._reconnect_timer = None
        if self._manual_stop:
            return
        log.info("Attempting to reconnect...")
        self.connect()
