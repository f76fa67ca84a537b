from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from spoke_capture.parsing.parser import ParsedRecord


class Stage(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    DECODING = "decoding"
    RECOGNIZING = "recognizing"
    PARSING = "parsing"
    PERSISTING = "persisting"
    DONE = "done"


class RunOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REJECTED = "rejected"   # another run was already in flight


@dataclass(frozen=True)
class RunStatus:
    run_id: str
    outcome: RunOutcome
    failed_stage: Stage | None = None
    error: str | None = None
    record: ParsedRecord | None = None
    persisted: bool = False
    ledger_path: Path | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is RunOutcome.SUCCEEDED
