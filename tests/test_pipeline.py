"""End-to-end capture pipeline tests — synthetic surface, mocked OCR, real ledger file."""
from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from spoke_capture.capture.frame import DisplayMetrics, RawFrame
from spoke_capture.capture.frame_source import FrameSource
from spoke_capture.capture.surfaces import CaptureSurface, SyntheticCaptureSurface
from spoke_capture.core.config import Settings
from spoke_capture.decoding.decoder import PixelGrid
from spoke_capture.ledger.sink import HEADER, LedgerSink
from spoke_capture.ocr.base_ocr import OCREngine, OCRResult
from spoke_capture.ocr.mock_ocr import MockOCREngine
from spoke_capture.pipeline.context import PipelineContext, open_context
from spoke_capture.pipeline.notifier import StatusNotifier
from spoke_capture.pipeline.pipeline import CapturePipeline
from spoke_capture.pipeline.status import RunOutcome, RunStatus, Stage


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class _StaticSurface(CaptureSurface):
    """A display that never changes: every pull reports nothing new."""

    def acquire_latest(self) -> RawFrame | None:
        return None


class _TextEngine(OCREngine):
    def __init__(self, text: str) -> None:
        self._text = text
        self.grids: list[PixelGrid] = []

    async def recognize(self, grid: PixelGrid) -> OCRResult:
        self.grids.append(grid)
        return OCRResult(text=self._text, confidence=0.9)


class _GatedEngine(OCREngine):
    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def recognize(self, grid: PixelGrid) -> OCRResult:
        self.entered.set()
        await self.release.wait()
        return OCRResult(text="123 Oak St\nSpringfield 62704", confidence=0.9)


class _RecordingNotifier(StatusNotifier):
    def __init__(self) -> None:
        self.stages: list[Stage] = []
        self.finished_statuses: list[RunStatus] = []

    def stage_changed(self, run_id: str, stage: Stage) -> None:
        self.stages.append(stage)

    def finished(self, status: RunStatus) -> None:
        self.finished_statuses.append(status)


def _make_context(
    tmp_path: Path,
    *,
    surface: CaptureSurface | None = None,
    engine: OCREngine | None = None,
    ledger_path: Path | None = None,
    skip_blank_text: bool = True,
) -> PipelineContext:
    surface = surface or SyntheticCaptureSurface(DisplayMetrics(width=30, height=20))
    return PipelineContext(
        surface=surface,
        frame_source=FrameSource(surface, sleep=lambda _: None),
        ocr_engine=engine or MockOCREngine(),
        sink=LedgerSink(ledger_path or tmp_path / "SpokeExports" / "addresses.csv"),
        capture_executor=ThreadPoolExecutor(max_workers=1),
        skip_blank_text=skip_blank_text,
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_pipeline_persists_parsed_record(tmp_path: Path) -> None:
    """Full pipeline runs capture → decode → OCR → parse → persist."""
    ctx = _make_context(tmp_path)
    pipeline = CapturePipeline(ctx)

    status = await pipeline.run()

    assert status.outcome is RunOutcome.SUCCEEDED
    assert status.persisted is True
    assert status.record.address_line1 == "123 Oak St"
    assert status.record.zip == "62704"
    assert status.record.city == "Springfield"
    assert status.ledger_path == ctx.sink.path

    lines = ctx.sink.path.read_text(encoding="utf-8").splitlines()
    assert lines == [HEADER, '"123 Oak St","62704","Springfield","Acme Corp Ring doorbell twice "']
    assert ctx.surface.outstanding == 0
    assert pipeline.state is Stage.IDLE
    ctx.close()


@pytest.mark.asyncio
async def test_pipeline_hands_unpadded_grid_to_recognizer(tmp_path: Path) -> None:
    engine = _TextEngine("123 Oak St")
    ctx = _make_context(tmp_path, engine=engine)

    await CapturePipeline(ctx).run()

    (grid,) = engine.grids
    assert (grid.width, grid.height, grid.channels) == (30, 20, 4)
    ctx.close()


@pytest.mark.asyncio
async def test_pipeline_reports_stage_transitions_in_order(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    ctx = _make_context(tmp_path)

    await CapturePipeline(ctx, notifier).run()

    assert notifier.stages == [
        Stage.CAPTURING,
        Stage.DECODING,
        Stage.RECOGNIZING,
        Stage.PARSING,
        Stage.PERSISTING,
        Stage.DONE,
    ]
    assert len(notifier.finished_statuses) == 1
    ctx.close()


@pytest.mark.asyncio
async def test_pipeline_fails_at_capture_when_no_frame(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    engine = _TextEngine("123 Oak St")
    ctx = _make_context(tmp_path, surface=_StaticSurface(), engine=engine)

    status = await CapturePipeline(ctx, notifier).run()

    assert status.outcome is RunOutcome.FAILED
    assert status.failed_stage is Stage.CAPTURING
    assert "No new frame" in status.error
    assert engine.grids == []
    assert not ctx.sink.path.exists()
    assert notifier.stages == [Stage.CAPTURING]
    ctx.close()


@pytest.mark.asyncio
async def test_pipeline_fails_at_recognition_and_releases_frame(tmp_path: Path) -> None:
    engine = OCREngine()
    engine.recognize = AsyncMock(side_effect=RuntimeError("OCR engine crashed"))
    ctx = _make_context(tmp_path, engine=engine)

    status = await CapturePipeline(ctx).run()

    assert status.outcome is RunOutcome.FAILED
    assert status.failed_stage is Stage.RECOGNIZING
    assert "OCR engine crashed" in status.error
    assert status.record is None
    assert ctx.surface.outstanding == 0
    assert not ctx.sink.path.exists()
    ctx.close()


@pytest.mark.asyncio
async def test_pipeline_surfaces_write_error(tmp_path: Path) -> None:
    blocker = tmp_path / "SpokeExports"
    blocker.write_text("not a directory", encoding="utf-8")
    ctx = _make_context(tmp_path, ledger_path=blocker / "addresses.csv")

    status = await CapturePipeline(ctx).run()

    assert status.outcome is RunOutcome.FAILED
    assert status.failed_stage is Stage.PERSISTING
    assert "Failed to write ledger" in status.error
    assert status.persisted is False
    ctx.close()


@pytest.mark.asyncio
async def test_pipeline_skips_blank_text(tmp_path: Path) -> None:
    ctx = _make_context(tmp_path, engine=_TextEngine("  \n "))

    status = await CapturePipeline(ctx).run()

    assert status.outcome is RunOutcome.SUCCEEDED
    assert status.persisted is False
    assert not ctx.sink.path.exists()
    ctx.close()


@pytest.mark.asyncio
async def test_pipeline_persists_blank_text_when_configured(tmp_path: Path) -> None:
    ctx = _make_context(tmp_path, engine=_TextEngine(""), skip_blank_text=False)

    status = await CapturePipeline(ctx).run()

    assert status.persisted is True
    assert ctx.sink.path.read_text(encoding="utf-8").splitlines()[1] == '"","",""," "'
    ctx.close()


@pytest.mark.asyncio
async def test_pipeline_rejects_overlapping_trigger(tmp_path: Path) -> None:
    engine = _GatedEngine()
    notifier = _RecordingNotifier()
    ctx = _make_context(tmp_path, engine=engine)
    pipeline = CapturePipeline(ctx, notifier)

    first = asyncio.create_task(pipeline.run())
    await asyncio.wait_for(engine.entered.wait(), timeout=5)
    assert pipeline.busy

    second = await pipeline.run()
    assert second.outcome is RunOutcome.REJECTED

    engine.release.set()
    first_status = await first

    assert first_status.outcome is RunOutcome.SUCCEEDED
    assert not pipeline.busy
    # Only the accepted run reached the ledger
    assert len(ctx.sink.path.read_text(encoding="utf-8").splitlines()) == 2
    assert [s.outcome for s in notifier.finished_statuses] == [RunOutcome.REJECTED, RunOutcome.SUCCEEDED]
    ctx.close()


@pytest.mark.asyncio
async def test_sequential_runs_append_to_same_ledger(tmp_path: Path) -> None:
    ctx = _make_context(tmp_path)
    pipeline = CapturePipeline(ctx)

    for _ in range(3):
        assert (await pipeline.run()).succeeded

    lines = ctx.sink.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 4
    assert lines.count(HEADER) == 1
    ctx.close()


@pytest.mark.asyncio
async def test_open_context_releases_handles(tmp_path: Path) -> None:
    settings = Settings(
        capture_provider="synthetic",
        ocr_provider="mock",
        documents_root=tmp_path,
        display_width=16,
        display_height=16,
    )

    async with open_context(settings) as ctx:
        status = await CapturePipeline(ctx).run()
        assert status.succeeded
        assert ctx.sink.path == tmp_path / "SpokeExports" / "addresses.csv"

    with pytest.raises(RuntimeError):
        ctx.capture_executor.submit(lambda: None)


class _StageSpyingSink(LedgerSink):
    """Records which stage the notifier last saw when the append happened."""

    def __init__(self, path: Path, notifier: _RecordingNotifier) -> None:
        super().__init__(path)
        self._notifier = notifier
        self.stage_at_append: Stage | None = None

    def append(self, record) -> None:
        self.stage_at_append = self._notifier.stages[-1]
        super().append(record)


@pytest.mark.asyncio
async def test_append_starts_after_persisting_is_announced(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    ctx = _make_context(tmp_path)
    ctx.sink = _StageSpyingSink(tmp_path / "addresses.csv", notifier)

    status = await CapturePipeline(ctx, notifier).run()

    assert status.persisted is True
    assert ctx.sink.stage_at_append is Stage.PERSISTING
    ctx.close()


@pytest.mark.asyncio
async def test_pipeline_fails_at_persisting_when_executor_gone(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    ctx = _make_context(tmp_path)
    await asyncio.get_running_loop().shutdown_default_executor()

    status = await CapturePipeline(ctx, notifier).run()

    assert status.outcome is RunOutcome.FAILED
    assert status.failed_stage is Stage.PERSISTING
    assert notifier.finished_statuses == [status]
    assert not ctx.sink.path.exists()
    ctx.close()
