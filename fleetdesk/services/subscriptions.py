# FleetDesk - Polling Subscriptions
# Fixed-interval background refresh with explicit cancellation

import asyncio
from typing import Any, Callable, Optional

from fleetdesk.logging import get_logger


logger = get_logger(__name__)


class PollingSubscription:
    """
    Runs a blocking callable every `interval` seconds on a worker thread.

    Ticks never overlap: the next one is scheduled only after the previous
    one finished. Once stopped, a tick that is still running is allowed to
    finish but its result is dropped instead of being handed to
    `on_result`.

    Usage:
        async with PollingSubscription("sweep", run_scheduled_checks, 300):
            ...  # runs until the block exits

    Errors raised by the callable are logged and the subscription keeps
    going.
    """

    def __init__(
        self,
        name: str,
        poll: Callable[[], Any],
        interval: float,
        on_result: Optional[Callable[[Any], None]] = None,
        run_immediately: bool = True,
    ):
        if interval <= 0:
            raise ValueError("Polling interval must be positive")
        self.name = name
        self.poll = poll
        self.interval = interval
        self.on_result = on_result
        self.run_immediately = run_immediately
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None
        self._stopped = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"poll:{self.name}")
        logger.info("subscription_started", name=self.name, interval=self.interval)

    async def stop(self) -> None:
        self._stopped.set()
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("subscription_stopped", name=self.name, ticks=self.ticks)

    async def __aenter__(self) -> "PollingSubscription":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _run(self) -> None:
        if not self.run_immediately:
            await self._wait()

        while not self._stopped.is_set():
            try:
                result = await asyncio.to_thread(self.poll)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("subscription_tick_failed", name=self.name)
            else:
                self.ticks += 1
                if self.on_result is not None and not self._stopped.is_set():
                    self.on_result(result)

            await self._wait()

    async def _wait(self) -> None:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass
