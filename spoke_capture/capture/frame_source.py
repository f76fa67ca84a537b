"""Bounded-retry frame acquisition.

A surface reports "no new frame" when the display has not changed since the
last pull. That is usually transient, so the source waits once and tries
again before giving up with ``NoFrameAvailable``.
"""
from __future__ import annotations

import logging
import time
from typing import Callable

from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_fixed

from spoke_capture.capture.frame import RawFrame
from spoke_capture.capture.surfaces import CaptureSurface
from spoke_capture.core.errors import NoFrameAvailable

logger = logging.getLogger(__name__)


class FrameSource:
    def __init__(
        self,
        surface: CaptureSurface,
        *,
        max_attempts: int = 2,
        retry_delay: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self._surface = surface
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._sleep = sleep

    def _pull(self) -> RawFrame:
        frame = self._surface.acquire_latest()
        if frame is None:
            raise NoFrameAvailable(self._max_attempts)
        return frame

    def capture(self) -> RawFrame:
        """Pull the most recent frame, retrying while the surface has nothing new.

        Raises:
            NoFrameAvailable: every attempt came back empty.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_fixed(self._retry_delay),
            retry=retry_if_exception_type(NoFrameAvailable),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        frame = retrying(self._pull)
        logger.debug(
            "frame_captured",
            extra={
                "width": frame.width,
                "height": frame.height,
                "row_stride": frame.row_stride,
                "attempts": retrying.statistics.get("attempt_number"),
            },
        )
        return frame
