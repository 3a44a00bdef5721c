"""
Bounded-concurrency dispatcher for discovery signals.

Each admitted signal runs its handler as an independent task. When
max_concurrent tasks are already in flight, new signals are dropped: they
are not queued and not retried.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

if TYPE_CHECKING:
    from dex_sniper.ingestion.models import CandidateSignal

logger = logging.getLogger(__name__)

SignalHandler = Callable[["CandidateSignal"], Awaitable[Any]]


@dataclass
class DispatcherConfig:
    max_concurrent: int = 5


class Dispatcher:
    """
    Admits signals up to a concurrency ceiling.

    Usage:
        dispatcher = Dispatcher(pipeline.process, DispatcherConfig(max_concurrent=5))
        task = asyncio.create_task(dispatcher.run(queue))
        ...
        await dispatcher.stop()
    """

    def __init__(self, handler: SignalHandler, config: DispatcherConfig | None = None):
        self._handler = handler
        self._config = config or DispatcherConfig()
        self._tasks: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._running = False

        self.in_flight = 0
        self.admitted = 0
        self.dropped = 0

    @property
    def max_concurrent(self) -> int:
        return self._config.max_concurrent

    @property
    def is_running(self) -> bool:
        return self._running

    def submit(self, signal: CandidateSignal) -> bool:
        """
        Admit a signal if a slot is free.

        Returns:
            True if a handler task was spawned, False if the signal was dropped
        """
        if self.in_flight >= self._config.max_concurrent:
            self.dropped += 1
            logger.info(
                f"Max concurrent ({self._config.max_concurrent}) reached, "
                f"dropping {signal.signature or signal.mint}"
            )
            return False

        self.in_flight += 1
        self.admitted += 1
        self._idle.clear()

        task = asyncio.create_task(self._run_handler(signal))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        # runs even when the task is cancelled before the handler starts
        task.add_done_callback(self._release_slot)
        return True

    async def run(self, queue: "asyncio.Queue[CandidateSignal]") -> None:
        """Drain the signal queue until stopped."""
        self._running = True
        logger.info(f"Dispatcher started (max_concurrent={self._config.max_concurrent})")
        try:
            while self._running:
                signal = await queue.get()
                try:
                    self.submit(signal)
                finally:
                    queue.task_done()
        finally:
            self._running = False
            logger.info(
                f"Dispatcher stopped (admitted={self.admitted}, dropped={self.dropped})"
            )

    async def wait_idle(self) -> None:
        """Wait until no handler task is in flight."""
        await self._idle.wait()

    async def stop(self, timeout: float = 30.0) -> None:
        """Stop admitting and give in-flight handlers time to finish."""
        self._running = False
        if not self._tasks:
            return

        logger.info(f"Waiting for {len(self._tasks)} in-flight snipes")
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run_handler(self, signal: CandidateSignal) -> None:
        try:
            await self._handler(signal)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error processing {signal.signature or signal.mint}: {e}")

    def _release_slot(self, task: asyncio.Task) -> None:
        self.in_flight -= 1
        if self.in_flight == 0:
            self._idle.set()
