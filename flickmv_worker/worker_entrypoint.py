"""Worker entrypoint.

Processes at most one export job and exits. The platform restarts the
container to pick up the next job.
"""

import asyncio
import logging
import sys

from flickmv_worker.config import Settings, get_settings
from flickmv_worker.exceptions import ExportWorkerError
from flickmv_worker.logging_config import configure_logging
from flickmv_worker.services.job_queue import JobQueue
from flickmv_worker.services.orchestration_client import OrchestrationClient
from flickmv_worker.services.storage_service import get_storage_service
from flickmv_worker.tasks.export_task import EXIT_FAILURE, process_next_job

logger = logging.getLogger(__name__)


async def run_worker(settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    settings.validate_required()

    storage = get_storage_service(settings)
    logger.info(f"[WORKER] {settings.app_name} {settings.app_version} starting (storage: {storage.provider})")

    queue = JobQueue(settings.database_url, settings.pgboss_schema)
    try:
        async with OrchestrationClient(
            settings.internal_api_base_url, settings.internal_api_key
        ) as client:
            return await process_next_job(queue, client, storage, settings=settings)
    finally:
        await queue.close()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        exit_code = asyncio.run(run_worker(settings))
    except ExportWorkerError as e:
        logger.error(f"[WORKER] {e.code}: {e.message}")
        exit_code = EXIT_FAILURE
    except Exception:
        logger.exception("[WORKER] Fatal error")
        exit_code = EXIT_FAILURE

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
