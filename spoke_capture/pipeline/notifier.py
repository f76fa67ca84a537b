"""UI-facing status collaborators.

The pipeline calls these on its event loop: ``stage_changed`` as a run moves
through the stages and ``finished`` exactly once with the terminal status.
"""
from __future__ import annotations

import logging
from collections import deque

from spoke_capture.pipeline.status import RunStatus, Stage

logger = logging.getLogger(__name__)


class StatusNotifier:
    def stage_changed(self, run_id: str, stage: Stage) -> None:
        pass

    def finished(self, status: RunStatus) -> None:
        pass


class LoggingNotifier(StatusNotifier):
    def stage_changed(self, run_id: str, stage: Stage) -> None:
        logger.debug("run_stage_changed", extra={"run_id": run_id, "stage": stage.value})

    def finished(self, status: RunStatus) -> None:
        logger.info(
            "run_finished",
            extra={
                "run_id": status.run_id,
                "outcome": status.outcome.value,
                "failed_stage": status.failed_stage.value if status.failed_stage else None,
                "persisted": status.persisted,
            },
        )


class RecentRunsNotifier(StatusNotifier):
    """Keeps the last *limit* terminal statuses in memory, newest first."""

    def __init__(self, limit: int = 50) -> None:
        self._statuses: deque[RunStatus] = deque(maxlen=limit)

    def finished(self, status: RunStatus) -> None:
        self._statuses.appendleft(status)

    def recent(self) -> list[RunStatus]:
        return list(self._statuses)


class CompositeNotifier(StatusNotifier):
    def __init__(self, *notifiers: StatusNotifier) -> None:
        self._notifiers = notifiers

    def stage_changed(self, run_id: str, stage: Stage) -> None:
        for notifier in self._notifiers:
            notifier.stage_changed(run_id, stage)

    def finished(self, status: RunStatus) -> None:
        for notifier in self._notifiers:
            notifier.finished(status)
