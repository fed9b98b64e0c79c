"""Export job lifecycle: claim, render, finalize, report."""

import logging
import re
import time

import httpx

from flickmv_worker.config import Settings, get_settings
from flickmv_worker.exceptions import MissingExportJobIdError
from flickmv_worker.render.encoder import FFmpegEncoder
from flickmv_worker.render.pipeline import ExportPipeline
from flickmv_worker.render.workspace import JobWorkspace
from flickmv_worker.schemas.export_job import ExportJob, OutputDescriptor
from flickmv_worker.services.job_queue import JobQueue, QueueJob
from flickmv_worker.services.orchestration_client import OrchestrationClient
from flickmv_worker.services.progress_reporter import ProgressReporter
from flickmv_worker.services.storage_service import OutputFinalizer, StorageService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

DEFAULT_EXPORT_NAME = "FlickMV_Export"
MAX_FILENAME_STEM = 80

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_\-]+")


def sanitize_filename(name: str | None) -> str:
    stem = _UNSAFE_FILENAME_CHARS.sub("_", name or DEFAULT_EXPORT_NAME)
    return stem[:MAX_FILENAME_STEM]


def build_output_filename(name: str | None, timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{sanitize_filename(name)}_{timestamp_ms}.mp4"


async def claim_next_job(queue: JobQueue, queue_name: str | None = None) -> QueueJob | None:
    queue_name = queue_name or get_settings().export_queue_name
    logger.info(f"[QUEUE] Waiting for '{queue_name}' job")
    job = await queue.claim(queue_name)
    if job is None:
        logger.info(f"[QUEUE] No '{queue_name}' job available")
    return job


async def run_export_job(
    export_job: ExportJob,
    reporter: ProgressReporter,
    storage: StorageService,
    encoder: FFmpegEncoder | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> OutputDescriptor:
    """
    Render one export job and persist the result.

    The job workspace is removed on every exit path; the returned
    descriptor points at the stored copy.
    """
    with JobWorkspace.create(export_job.id) as workspace:
        output_path = workspace.output_path(build_output_filename(export_job.name))
        pipeline = ExportPipeline(
            export_job, workspace, reporter, encoder=encoder, http_client=http_client
        )
        await pipeline.render(output_path)

        await reporter.report("finalizing", message="Uploading video to storage...")
        return await OutputFinalizer(storage).finalize(output_path, export_job)


async def process_next_job(
    queue: JobQueue,
    client: OrchestrationClient,
    storage: StorageService,
    encoder: FFmpegEncoder | None = None,
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> int:
    """
    Claim and process at most one export job.

    Returns:
        Process exit code: 0 for no job, success or a job that is already
        completed or cancelled; 1 for a malformed payload or any failure.
    """
    settings = settings or get_settings()
    queue_job = await claim_next_job(queue, settings.export_queue_name)
    if queue_job is None:
        return EXIT_OK

    export_job_id = queue_job.export_job_id
    if not export_job_id:
        error = MissingExportJobIdError()
        logger.error(f"[QUEUE] Job {queue_job.id}: {error.message}")
        await _fail_queue_job(queue, queue_job, error)
        return EXIT_FAILURE

    logger.info(f"[EXPORT] Processing export job {export_job_id} (queue job {queue_job.id})")
    reporter = ProgressReporter(
        client, export_job_id, progress_reports_fatal=settings.progress_reports_fatal
    )

    try:
        export_job = await client.get_export_job(export_job_id)
        if not export_job.should_skip:
            await reporter.processing()
            output = await run_export_job(
                export_job, reporter, storage, encoder=encoder, http_client=http_client
            )
            await reporter.completed(output)
    except Exception as e:
        logger.exception(f"[EXPORT] Export job {export_job_id} failed: {e}")
        await _report_failure(reporter, e)
        await _fail_queue_job(queue, queue_job, e)
        return EXIT_FAILURE

    if export_job.should_skip:
        logger.info(f"[EXPORT] Export job {export_job_id} is already {export_job.status}, skipping")
        queue_output = {"exportJobId": export_job_id, "skipped": export_job.status}
    else:
        logger.info(f"[EXPORT] Export job {export_job_id} completed: {output.url}")
        queue_output = {"exportJobId": export_job_id, "url": output.url}

    try:
        await queue.complete(queue_job, queue_output)
    except Exception as e:
        logger.error(f"[QUEUE] Could not complete queue job {queue_job.id}: {e}")
        return EXIT_FAILURE
    return EXIT_OK


async def _report_failure(reporter: ProgressReporter, error: Exception) -> None:
    try:
        await reporter.failed(error)
    except Exception as report_error:
        logger.error(
            f"[PROGRESS] Could not report failure of {reporter.export_job_id}: {report_error}"
        )


async def _fail_queue_job(queue: JobQueue, queue_job: QueueJob, error: Exception) -> None:
    try:
        await queue.fail(queue_job, str(error) or error.__class__.__name__)
    except Exception as queue_error:
        logger.error(f"[QUEUE] Could not fail queue job {queue_job.id}: {queue_error}")
