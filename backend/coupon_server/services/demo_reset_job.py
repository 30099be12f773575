"""Demo Reset Job — periodically restores the demo offer catalog.

Invariants:
    - At most one background task per job; start() on a running job is a no-op
    - A failed reset is logged and the schedule continues
    - stop() cancels and awaits the task; safe to call when never started
"""

import asyncio
import contextlib
import logging

from coupon_server.services.offers_service import OffersService

logger = logging.getLogger(__name__)


class DemoResetJob:
    def __init__(self, offers: OffersService, every_ms: int):
        if every_ms <= 0:
            raise ValueError("every_ms must be positive")
        self._offers = offers
        self.every_ms = every_ms
        self.runs = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="demo-reset",
        )
        logger.info(f"Demo reset job started (every {self.every_ms} ms)")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Demo reset job stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.every_ms / 1000)
            try:
                await self._offers.reset_demo()
                self.runs += 1
                logger.info("Demo offers reset")
            except Exception as e:
                logger.error(f"Demo reset job failed: {e}", exc_info=True)
