"""Custom exceptions for the export worker.

Every error carries a machine-readable ``code`` that ends up in the failure
descriptor sent to the orchestration API, next to the human-readable message.
"""

from typing import Any


class ExportWorkerError(Exception):
    """Base exception for all export worker errors."""

    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


# =============================================================================
# Setup / Payload Errors
# =============================================================================


class ConfigurationError(ExportWorkerError):
    """Required configuration is missing."""

    code = "CONFIGURATION_ERROR"
    message = "Worker is not configured"


class PayloadError(ExportWorkerError):
    """Queue payload is malformed."""

    code = "INVALID_PAYLOAD"
    message = "Invalid job payload"


class MissingExportJobIdError(PayloadError):
    """Queue payload carries no export job reference."""

    code = "MISSING_EXPORT_JOB_ID"
    message = "Missing exportJobId"


class EmptyTimelineError(ExportWorkerError):
    """Timeline contains no clips to render."""

    code = "EMPTY_TIMELINE"
    message = "Timeline has no clips"


# =============================================================================
# Render Errors
# =============================================================================


class MediaResolutionError(ExportWorkerError):
    """Clip media could not be resolved to a local file.

    Recovered by the clip renderer with placeholder content; never fatal.
    """

    code = "MEDIA_UNRESOLVED"
    message = "Media could not be resolved"


class EncodeError(ExportWorkerError):
    """FFmpeg exited non-zero or could not be started."""

    code = "ENCODE_FAILED"
    message = "Encoding failed"

    def __init__(
        self,
        stage: str,
        returncode: int | None = None,
        stderr_tail: str = "",
    ):
        self.stage = stage
        self.returncode = returncode
        self.stderr_tail = stderr_tail
        if returncode is None:
            message = f"{stage} failed: encoder could not be started"
        else:
            message = f"{stage} failed: ffmpeg exited with code {returncode}"
        if stderr_tail:
            message += f"\n{stderr_tail}"
        super().__init__(message)


# =============================================================================
# External Service Errors
# =============================================================================


class QueueError(ExportWorkerError):
    """Job queue operation failed."""

    code = "QUEUE_ERROR"
    message = "Job queue error"


class OrchestrationError(ExportWorkerError):
    """Orchestration API call failed (transport, non-2xx or success=false)."""

    code = "ORCHESTRATION_ERROR"
    message = "Orchestration API call failed"

    def __init__(self, message: str | None = None, *, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class StorageError(ExportWorkerError):
    """Storage error."""

    code = "STORAGE_ERROR"
    message = "Storage error"
