from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.concurrency import run_in_threadpool

from spoke_capture.ledger.sink import LedgerSink
from spoke_capture.pipeline.notifier import RecentRunsNotifier
from spoke_capture.pipeline.pipeline import CapturePipeline
from spoke_capture.pipeline.status import RunOutcome
from spoke_capture.schemas import CaptureStatusResponse, ParsedRecordOut

logger = logging.getLogger(__name__)
router = APIRouter()


def get_pipeline(request: Request) -> CapturePipeline:
    return request.app.state.pipeline


def get_recent_runs(request: Request) -> RecentRunsNotifier:
    return request.app.state.recent_runs


def get_sink(request: Request) -> LedgerSink:
    return request.app.state.context.sink


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/captures", response_model=CaptureStatusResponse)
async def trigger_capture(
    response: Response,
    pipeline: CapturePipeline = Depends(get_pipeline),
) -> CaptureStatusResponse:
    run_status = await pipeline.run()
    if run_status.outcome is RunOutcome.REJECTED:
        response.status_code = status.HTTP_409_CONFLICT

    logger.info(
        "capture_triggered",
        extra={
            "run_id": run_status.run_id,
            "outcome": run_status.outcome.value,
            "failed_stage": run_status.failed_stage.value if run_status.failed_stage else None,
        },
    )
    return CaptureStatusResponse.from_status(run_status)


@router.get("/captures/recent", response_model=list[CaptureStatusResponse])
async def recent_captures(
    recent_runs: RecentRunsNotifier = Depends(get_recent_runs),
) -> list[CaptureStatusResponse]:
    return [CaptureStatusResponse.from_status(s) for s in recent_runs.recent()]


@router.get("/ledger", response_model=list[ParsedRecordOut])
async def list_ledger(sink: LedgerSink = Depends(get_sink)) -> list[ParsedRecordOut]:
    # The ledger lock and file read block, so keep them off the event loop
    records = await run_in_threadpool(sink.read_records)
    return [ParsedRecordOut.from_record(r) for r in records]
