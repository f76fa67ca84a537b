"""Process-wide handles shared by every pipeline run.

The context owns the capture surface, the OCR engine client, the ledger sink
and the single worker thread that is allowed to read from the surface.
``close()`` releases all of them; ``open_context`` scopes that to a block.
"""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import dataclass

from spoke_capture.capture.factory import get_capture_surface
from spoke_capture.capture.frame_source import FrameSource
from spoke_capture.capture.surfaces import CaptureSurface
from spoke_capture.core.config import Settings
from spoke_capture.ledger.sink import LedgerSink
from spoke_capture.ocr.base_ocr import OCREngine
from spoke_capture.ocr.factory import get_ocr_engine

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    surface: CaptureSurface
    frame_source: FrameSource
    ocr_engine: OCREngine
    sink: LedgerSink
    capture_executor: ThreadPoolExecutor
    skip_blank_text: bool = True

    def close(self) -> None:
        # Capture thread first so nothing is mid-read when the surface goes away.
        self.capture_executor.shutdown(wait=True)
        for name, release in (("surface", self.surface.close), ("ocr_engine", self.ocr_engine.close)):
            try:
                release()
            except Exception:
                logger.exception("context_release_failed", extra={"resource": name})
        logger.info("pipeline_context_closed")


def build_context(settings: Settings) -> PipelineContext:
    surface = get_capture_surface(settings)
    frame_source = FrameSource(
        surface,
        max_attempts=settings.capture_max_attempts,
        retry_delay=settings.capture_retry_delay_ms / 1000.0,
    )
    context = PipelineContext(
        surface=surface,
        frame_source=frame_source,
        ocr_engine=get_ocr_engine(settings),
        sink=LedgerSink(settings.ledger_path),
        capture_executor=ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture"),
        skip_blank_text=settings.skip_blank_text,
    )
    logger.info(
        "pipeline_context_built",
        extra={
            "capture_provider": settings.capture_provider,
            "ocr_provider": settings.ocr_provider,
            "ledger_path": str(settings.ledger_path),
        },
    )
    return context


@asynccontextmanager
async def open_context(settings: Settings) -> AsyncIterator[PipelineContext]:
    context = build_context(settings)
    try:
        yield context
    finally:
        context.close()
