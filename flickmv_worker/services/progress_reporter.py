"""Maps pipeline phases to job progress and posts status updates."""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any

from flickmv_worker.config import get_settings
from flickmv_worker.exceptions import ExportWorkerError, OrchestrationError
from flickmv_worker.schemas.export_job import OutputDescriptor
from flickmv_worker.services.orchestration_client import OrchestrationClient

logger = logging.getLogger(__name__)

PHASE_PROGRESS: dict[str, int] = {
    "initializing": 5,
    "processing_clips": 20,
    "applying_transitions": 60,
    "applying_watermark": 80,
    "finalizing": 90,
    "complete": 100,
}
# processing_clips advances linearly over this many points as clips complete
CLIP_PHASE_RANGE = 40


def compute_progress(phase: str, current: int | None = None, total: int | None = None) -> int:
    progress = float(PHASE_PROGRESS.get(phase, 0))
    if current and total:
        progress += current / total * CLIP_PHASE_RANGE
    return min(100, round(progress))


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProgressReporter:
    """Status/progress channel for one export job.

    Progress sent through this reporter never decreases. Reports block until
    the orchestration API answers.
    """

    def __init__(
        self,
        client: OrchestrationClient,
        export_job_id: str,
        progress_reports_fatal: bool | None = None,
    ):
        self.client = client
        self.export_job_id = export_job_id
        if progress_reports_fatal is None:
            progress_reports_fatal = get_settings().progress_reports_fatal
        self.progress_reports_fatal = progress_reports_fatal
        self.last_progress = 0
        self.phase: str | None = None

    def _advance(self, progress: int) -> int:
        self.last_progress = max(self.last_progress, progress)
        return self.last_progress

    async def report(
        self,
        phase: str,
        current: int | None = None,
        total: int | None = None,
        message: str | None = None,
    ) -> None:
        progress = self._advance(compute_progress(phase, current, total))
        self.phase = phase
        details: dict[str, Any] = {"phase": phase, "message": message}
        if current is not None:
            details["current"] = current
        if total is not None:
            details["total"] = total

        payload = {
            "progress": progress,
            "processing": {"phase": phase, "message": message, "details": details},
        }
        try:
            await self.client.post_status(self.export_job_id, payload)
        except OrchestrationError as e:
            if self.progress_reports_fatal:
                raise
            logger.warning(f"[PROGRESS] Could not deliver {phase} update: {e.message}")
            return

        logger.info(f"[PROGRESS] {progress}% - {message or phase}")

    async def processing(self) -> None:
        progress = self._advance(PHASE_PROGRESS["initializing"])
        self.phase = "initializing"
        await self.client.post_status(
            self.export_job_id, {"status": "processing", "progress": progress}
        )

    async def completed(self, output: OutputDescriptor) -> None:
        progress = self._advance(PHASE_PROGRESS["complete"])
        self.phase = "complete"
        await self.client.post_status(
            self.export_job_id,
            {
                "status": "completed",
                "progress": progress,
                "output": output.to_payload(),
                "completedAt": utc_timestamp(),
            },
        )

    async def failed(self, error: BaseException) -> None:
        """Report the job as failed, keeping the last progress value sent."""
        timestamp = utc_timestamp()
        error_info: dict[str, Any] = {
            "message": str(error) or error.__class__.__name__,
            "stack": "".join(traceback.format_exception(error)),
            "timestamp": timestamp,
        }
        if isinstance(error, ExportWorkerError):
            error_info["code"] = error.code
        if self.phase:
            error_info["phase"] = self.phase

        await self.client.post_status(
            self.export_job_id,
            {
                "status": "failed",
                "progress": self.last_progress,
                "processing": {"error": error_info},
                "failedAt": timestamp,
            },
        )
