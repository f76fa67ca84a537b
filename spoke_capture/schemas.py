from __future__ import annotations

from pydantic import BaseModel

from spoke_capture.parsing.parser import ParsedRecord
from spoke_capture.pipeline.status import RunStatus


class ParsedRecordOut(BaseModel):
    address_line1: str
    zip: str
    city: str
    notes: str

    @classmethod
    def from_record(cls, record: ParsedRecord) -> ParsedRecordOut:
        return cls(
            address_line1=record.address_line1,
            zip=record.zip,
            city=record.city,
            notes=record.notes,
        )


class CaptureStatusResponse(BaseModel):
    run_id: str
    outcome: str   # succeeded | failed | rejected
    failed_stage: str | None = None
    error: str | None = None
    record: ParsedRecordOut | None = None
    persisted: bool = False

    @classmethod
    def from_status(cls, status: RunStatus) -> CaptureStatusResponse:
        return cls(
            run_id=status.run_id,
            outcome=status.outcome.value,
            failed_stage=status.failed_stage.value if status.failed_stage else None,
            error=status.error,
            record=ParsedRecordOut.from_record(status.record) if status.record else None,
            persisted=status.persisted,
        )
