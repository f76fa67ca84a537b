"""Capture pipeline — orchestrates capture → decode → recognize → parse → persist.

- Single run in flight: a trigger that arrives while a run is active is
  rejected instead of racing the running one on the surface and the ledger.
- Stage timing: every stage logs ``<stage>_started`` / ``<stage>_completed``
  with its wall-clock duration, or ``<stage>_failed``.
- One terminal ``RunStatus`` per trigger; the pipeline never raises to its
  caller and never persists a partial record.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid

from spoke_capture.capture.frame import RawFrame
from spoke_capture.core.errors import RecognitionFailed
from spoke_capture.decoding.decoder import PixelGrid, decode
from spoke_capture.ocr.base_ocr import OCRResult
from spoke_capture.parsing.parser import ParsedRecord, parse
from spoke_capture.pipeline.context import PipelineContext
from spoke_capture.pipeline.notifier import LoggingNotifier, StatusNotifier
from spoke_capture.pipeline.status import RunOutcome, RunStatus, Stage

logger = logging.getLogger(__name__)


class _StageFailed(Exception):
    def __init__(self, stage: Stage, cause: BaseException) -> None:
        super().__init__(f"{stage.value}: {cause}")
        self.stage = stage
        self.cause = cause


def _decode_and_release(raw: RawFrame) -> PixelGrid:
    with raw:
        return decode(raw)


def _close_orphaned_frame(future) -> None:
    if not future.cancelled() and future.exception() is None:
        future.result().close()


class CapturePipeline:
    def __init__(self, context: PipelineContext, notifier: StatusNotifier | None = None) -> None:
        self._context = context
        self._notifier = notifier or LoggingNotifier()
        self._in_flight = False
        self._state = Stage.IDLE

    @property
    def state(self) -> Stage:
        return self._state

    @property
    def busy(self) -> bool:
        return self._in_flight

    # ------------------------------------------------------------------ #
    #  Public entry point                                                  #
    # ------------------------------------------------------------------ #

    async def run(self) -> RunStatus:
        run_id = uuid.uuid4().hex

        # No await between the check and the set, so this is atomic on the loop.
        if self._in_flight:
            logger.warning("run_rejected_in_flight", extra={"run_id": run_id})
            return self._finish(RunStatus(run_id=run_id, outcome=RunOutcome.REJECTED))

        self._in_flight = True
        try:
            status = await self._run(run_id)
        finally:
            self._in_flight = False
            self._state = Stage.IDLE
        return self._finish(status)

    # ------------------------------------------------------------------ #
    #  Stages                                                              #
    # ------------------------------------------------------------------ #

    async def _run(self, run_id: str) -> RunStatus:
        ctx = self._context

        try:
            # ── Capture + decode on the surface's worker thread ────────
            raw: RawFrame = await self._run_step(run_id, Stage.CAPTURING, self._capture())
            grid = await self._run_step(run_id, Stage.DECODING, self._decode(raw))

            # ── Recognition: the only real suspension point ────────────
            ocr_result: OCRResult = await self._run_step(
                run_id,
                Stage.RECOGNIZING,
                self._recognize(grid),
            )
            del grid

            # ── Parse ─────────────────────────────────────────────────
            self._enter(run_id, Stage.PARSING)
            record = parse(ocr_result.text)

            if not ocr_result.text.strip() and ctx.skip_blank_text:
                logger.info("run_blank_text_skipped", extra={"run_id": run_id})
                self._enter(run_id, Stage.DONE)
                return RunStatus(run_id=run_id, outcome=RunOutcome.SUCCEEDED, record=record)

            # ── Persist ───────────────────────────────────────────────
            await self._run_step(run_id, Stage.PERSISTING, self._persist(record))
        except _StageFailed as exc:
            return RunStatus(
                run_id=run_id,
                outcome=RunOutcome.FAILED,
                failed_stage=exc.stage,
                error=str(exc.cause),
            )

        self._enter(run_id, Stage.DONE)
        return RunStatus(
            run_id=run_id,
            outcome=RunOutcome.SUCCEEDED,
            record=record,
            persisted=True,
            ledger_path=ctx.sink.path,
        )

    async def _capture(self) -> RawFrame:
        future = self._context.capture_executor.submit(self._context.frame_source.capture)
        try:
            return await asyncio.wrap_future(future)
        except asyncio.CancelledError:
            # The worker may still deliver a frame nobody will decode.
            future.add_done_callback(_close_orphaned_frame)
            raise

    async def _decode(self, raw: RawFrame) -> PixelGrid:
        try:
            future = self._context.capture_executor.submit(_decode_and_release, raw)
        except RuntimeError:
            # Executor already shut down
            raw.close()
            raise
        # The worker closes the frame once it starts; cover the case where it never does.
        future.add_done_callback(lambda f: raw.close() if f.cancelled() else None)
        return await asyncio.wrap_future(future)

    async def _persist(self, record: ParsedRecord) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._context.sink.append, record)

    async def _recognize(self, grid: PixelGrid) -> OCRResult:
        try:
            return await self._context.ocr_engine.recognize(grid)
        except Exception as exc:
            raise RecognitionFailed(str(exc) or type(exc).__name__) from exc

    # ------------------------------------------------------------------ #
    #  Helpers                                                             #
    # ------------------------------------------------------------------ #

    def _enter(self, run_id: str, stage: Stage) -> None:
        self._state = stage
        self._notifier.stage_changed(run_id, stage)

    def _finish(self, status: RunStatus) -> RunStatus:
        self._notifier.finished(status)
        return status

    async def _run_step(self, run_id: str, stage: Stage, aw):
        """Await one stage, log start/end with its duration, and tag failures with the stage."""
        self._enter(run_id, stage)
        logger.debug(f"{stage.value}_started", extra={"run_id": run_id})
        t0 = time.monotonic()
        try:
            result = await aw
        except Exception as exc:
            duration_ms = int((time.monotonic() - t0) * 1000)
            logger.warning(
                f"{stage.value}_failed",
                extra={"run_id": run_id, "error": str(exc), "duration_ms": duration_ms},
            )
            raise _StageFailed(stage, exc) from exc
        duration_ms = int((time.monotonic() - t0) * 1000)
        logger.info(f"{stage.value}_completed", extra={"run_id": run_id, "duration_ms": duration_ms})
        return result
