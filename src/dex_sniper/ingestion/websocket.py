"""
Streaming event listener for Solana program logs.

Opens one websocket to the RPC provider, subscribes to the logs that
mention a single program, and promotes notifications whose log lines
contain a marker string to CandidateSignals on an asyncio.Queue.

Features:
    - Exactly one logsSubscribe request per connection
    - Fixed-delay reconnect with no attempt limit
    - Heartbeat monitoring (stale connections are dropped and reopened)
    - Non-matching / malformed messages are discarded silently
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    ConnectionClosedOK,
)

from .models import (
    MIGRATION_WITHDRAW_MARKER,
    POOL_INIT_MARKER,
    PUMPFUN_MIGRATION_ACCOUNT,
    RAYDIUM_AMM_PROGRAM,
    CandidateSignal,
    DiscoverySource,
)

logger = logging.getLogger(__name__)


class ListenerState(str, Enum):
    """Websocket connection state."""
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class ListenerConfig:
    """Configuration for the event listener."""

    url: str = ""
    source: DiscoverySource = DiscoverySource.RPC
    commitment: str = "processed"
    reconnect_delay: float = 5.0  # fixed, no backoff
    heartbeat_timeout: float = 60.0
    program_id: Optional[str] = None  # defaults per source
    marker: Optional[str] = None  # defaults per source

    def __post_init__(self):
        if self.source == DiscoverySource.LISTING:
            raise ValueError("The listing feed is polled, not streamed")
        if self.program_id is None:
            self.program_id = (
                PUMPFUN_MIGRATION_ACCOUNT
                if self.source == DiscoverySource.PUMPFUN
                else RAYDIUM_AMM_PROGRAM
            )
        if self.marker is None:
            self.marker = (
                MIGRATION_WITHDRAW_MARKER
                if self.source == DiscoverySource.PUMPFUN
                else POOL_INIT_MARKER
            )


class EventListener:
    """
    Resilient log-subscription client.

    Usage:
        queue: asyncio.Queue[CandidateSignal] = asyncio.Queue()
        listener = EventListener(ListenerConfig(url=wss_url), queue)
        task = asyncio.create_task(listener.run())

        signal = await queue.get()

        await listener.stop()
    """

    def __init__(
        self,
        config: ListenerConfig,
        queue: "asyncio.Queue[CandidateSignal]",
    ):
        self._config = config
        self._queue = queue

        self._state = ListenerState.CLOSED
        self._ws: Optional[Any] = None
        self._stop_event = asyncio.Event()

        self._reconnect_count = 0
        self._signals_emitted = 0

    @property
    def state(self) -> ListenerState:
        """Current connection state."""
        return self._state

    @property
    def reconnect_count(self) -> int:
        """Number of reconnects since start."""
        return self._reconnect_count

    @property
    def signals_emitted(self) -> int:
        return self._signals_emitted

    def _set_state(self, state: ListenerState) -> None:
        if self._state != state:
            logger.info(f"Listener state: {self._state.value} -> {state.value}")
            self._state = state

    async def run(self) -> None:
        """
        Connect, subscribe and receive until stop() is called.

        Any connection loss leads to a full reconnect and re-subscribe
        after the fixed reconnect delay.
        """
        self._stop_event.clear()

        while not self._stop_event.is_set():
            try:
                await self._connect_and_receive()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Listener connection error: {e}")

            self._set_state(ListenerState.CLOSED)
            self._ws = None

            if self._stop_event.is_set():
                break

            self._reconnect_count += 1
            logger.info(
                f"Reconnecting in {self._config.reconnect_delay:.1f}s "
                f"(reconnect #{self._reconnect_count})..."
            )
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._config.reconnect_delay,
                )
            except asyncio.TimeoutError:
                pass

        logger.info("Listener stopped")

    async def stop(self) -> None:
        """Stop the listener and close the socket."""
        self._stop_event.set()
        if self._ws:
            try:
                await self._ws.close()
            except Exception as e:
                logger.warning(f"Error closing websocket: {e}")

    async def _connect_and_receive(self) -> None:
        self._set_state(ListenerState.CONNECTING)

        self._ws = await websockets.connect(
            self._config.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
        )
        self._set_state(ListenerState.OPEN)
        logger.info(f"Listening for {self._config.source.value} events")

        await self._send_subscribe()
        await self._receive_loop()

    async def _send_subscribe(self) -> None:
        """Send the single logsSubscribe request for this connection."""
        await self._ws.send(json.dumps(self.subscription_request()))
        logger.info(f"Sent logsSubscribe for program {self._config.program_id}")

    def subscription_request(self) -> dict:
        return {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "logsSubscribe",
            "params": [
                {"mentions": [self._config.program_id]},
                {"commitment": self._config.commitment},
            ],
        }

    async def _receive_loop(self) -> None:
        while not self._stop_event.is_set() and self._ws:
            try:
                message = await asyncio.wait_for(
                    self._ws.recv(),
                    timeout=self._config.heartbeat_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"No message received in {self._config.heartbeat_timeout}s, "
                    f"reconnecting..."
                )
                try:
                    await self._ws.close()
                except Exception as close_err:
                    logger.debug(f"Error closing stale socket: {close_err}")
                return
            except ConnectionClosedOK:
                logger.info("Websocket closed normally")
                return
            except ConnectionClosedError as e:
                logger.warning(f"Websocket closed with error: {e}")
                return
            except ConnectionClosed as e:
                logger.warning(f"Websocket connection closed: {e}")
                return

            await self.handle_message(message)

    async def handle_message(self, raw_message: Any) -> Optional[CandidateSignal]:
        """
        Classify one inbound message.

        Returns the emitted CandidateSignal, or None when the message was a
        subscription confirmation, an error report, or noise.
        """
        try:
            data = json.loads(raw_message)
        except (TypeError, ValueError):
            logger.debug("Discarding non-JSON message")
            return None

        if not isinstance(data, dict):
            logger.debug("Discarding non-object message")
            return None

        if "error" in data:
            logger.error(f"RPC error: {data['error']}")
            return None

        if "result" in data:
            logger.info(f"Subscription confirmed (id={data['result']})")
            return None

        signal = self._extract_signal(data)
        if signal is None:
            return None

        await self._queue.put(signal)
        self._signals_emitted += 1
        logger.info(
            f"New {self._config.source.value} event detected: {signal.signature}"
        )
        return signal

    def _extract_signal(self, data: dict) -> Optional[CandidateSignal]:
        params = data.get("params")
        result = params.get("result") if isinstance(params, dict) else None
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            return None

        logs = value.get("logs")
        signature = value.get("signature")
        if not isinstance(logs, list) or not isinstance(signature, str):
            return None

        marker = self._config.marker
        if not any(isinstance(line, str) and marker in line for line in logs):
            return None

        return CandidateSignal(source=self._config.source, signature=signature)
