from __future__ import annotations

import asyncio
import logging

from spoke_capture.pipeline.pipeline import CapturePipeline

logger = logging.getLogger(__name__)


class PeriodicTrigger:
    """Fires one pipeline run every *interval_s* seconds until stopped.

    Runs are awaited back to back, so a slow run delays the next tick rather
    than overlapping it.
    """

    def __init__(self, pipeline: CapturePipeline, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")
        self._pipeline = pipeline
        self._interval_s = interval_s
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("periodic_trigger_started", extra={"interval_s": self._interval_s})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("periodic_trigger_stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self._pipeline.run()
            except Exception:
                logger.exception("periodic_run_failed")
            await asyncio.sleep(self._interval_s)
