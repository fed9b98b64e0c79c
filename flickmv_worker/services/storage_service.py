"""
Output persistence.

S3-compatible object storage (e.g. Cloudflare R2) when credentials are
configured, otherwise a local exports directory. ``OutputFinalizer`` turns a
rendered file into the output descriptor reported with job completion.
"""

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from flickmv_worker.config import Settings, get_settings
from flickmv_worker.exceptions import StorageError
from flickmv_worker.schemas.export_job import (
    ExportJob,
    OutputDescriptor,
    ProcessingSummary,
    StorageInfo,
    WatermarkInfo,
)
from flickmv_worker.services.progress_reporter import utc_timestamp

logger = logging.getLogger(__name__)

EXPORT_CONTENT_TYPE = "video/mp4"


@dataclass
class StoredObject:
    provider: str
    url: str
    bucket: str | None = None
    key: str | None = None


def export_key(user_id: str, filename: str) -> str:
    return f"exports/{user_id}/{filename}".replace("\\", "/")


def local_export_url(user_id: str, filename: str) -> str:
    return f"/exports/{user_id}/{filename}"


class LocalStorageService:
    """Local export storage for deployments without object storage."""

    provider = "local"

    def __init__(self, exports_dir: str | None = None) -> None:
        self.base_path = Path(exports_dir or get_settings().local_exports_dir)

    async def store(self, local_path: Path, user_id: str, filename: str) -> StoredObject:
        """Copy the export into the exports directory.

        The copy is best-effort: an exports directory that cannot be written is
        logged and the local reference is still returned.
        """
        if not local_path.is_file():
            raise StorageError(f"Rendered export not found: {local_path}")

        target = self.base_path / user_id / filename
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, local_path, target)
            logger.info(f"[UPLOAD] Stored export locally: {target}")
        except OSError as e:
            logger.warning(f"[UPLOAD] Could not copy export to {target}: {e}")

        return StoredObject(provider=self.provider, url=local_export_url(user_id, filename))


class S3StorageService:
    """S3-compatible object storage via boto3."""

    provider = "s3"

    def __init__(
        self,
        endpoint_url: str,
        bucket_name: str,
        access_key_id: str,
        secret_access_key: str,
        public_base_url: str | None = None,
        region_name: str = "auto",
        client=None,
    ) -> None:
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region_name,
            config=Config(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )

    def get_public_url(self, key: str) -> str | None:
        if not self.public_base_url:
            return None
        return f"{self.public_base_url}/{key}"

    async def store(self, local_path: Path, user_id: str, filename: str) -> StoredObject:
        key = export_key(user_id, filename)
        logger.info(f"[UPLOAD] Uploading to {self.bucket_name}/{key}")
        try:
            await asyncio.to_thread(
                self._client.upload_file,
                str(local_path),
                self.bucket_name,
                key,
                ExtraArgs={"ContentType": EXPORT_CONTENT_TYPE},
            )
        except (BotoCoreError, ClientError, OSError) as e:
            raise StorageError(f"Upload of {key} to {self.bucket_name} failed: {e}") from e

        logger.info("[UPLOAD] Upload completed")
        return StoredObject(
            provider=self.provider,
            url=self.get_public_url(key) or local_export_url(user_id, filename),
            bucket=self.bucket_name,
            key=key,
        )


StorageService = LocalStorageService | S3StorageService


def get_storage_service(settings: Settings | None = None) -> StorageService:
    """S3 storage when fully configured, local storage otherwise."""
    settings = settings or get_settings()
    if settings.storage_configured:
        return S3StorageService(
            endpoint_url=settings.r2_endpoint,
            bucket_name=settings.r2_bucket,
            access_key_id=settings.r2_access_key_id,
            secret_access_key=settings.r2_secret_access_key,
            public_base_url=settings.r2_public_base_url or None,
            region_name=settings.r2_region,
        )
    return LocalStorageService(settings.local_exports_dir)


class OutputFinalizer:
    """Persists the rendered file and describes it for the completion report."""

    def __init__(self, storage: StorageService):
        self.storage = storage

    async def finalize(self, output_file: Path, job: ExportJob) -> OutputDescriptor:
        size = output_file.stat().st_size
        logger.info(f"[FINALIZE] Video rendered: {size} bytes")

        stored = await self.storage.store(output_file, str(job.user_id), output_file.name)

        timeline = job.timeline
        watermark = job.watermark_settings
        return OutputDescriptor(
            url=stored.url,
            filename=output_file.name,
            size=size,
            duration=timeline.duration,
            storage=StorageInfo(provider=stored.provider, bucket=stored.bucket, key=stored.key),
            watermark=WatermarkInfo(
                applied=watermark.enabled,
                preset=watermark.preset,
                timestamp=utc_timestamp(),
            ),
            processing=ProcessingSummary(
                clips=len(timeline.clips),
                effects=timeline.effect_count(),
                transitions=timeline.transition_count(),
            ),
        )
