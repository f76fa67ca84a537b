from __future__ import annotations


class SpokeCaptureError(Exception):
    """Base class for pipeline stage failures."""


class NoFrameAvailable(SpokeCaptureError):
    def __init__(self, attempts: int) -> None:
        super().__init__(f"No new frame after {attempts} attempt(s)")
        self.attempts = attempts


class RecognitionFailed(SpokeCaptureError):
    pass


class WriteError(SpokeCaptureError):
    def __init__(self, path, cause: OSError) -> None:
        super().__init__(f"Failed to write ledger {path}: {cause}")
        self.path = path
        self.cause = cause
