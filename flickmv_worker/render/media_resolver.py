"""Resolve clip media references to files the encoder can read."""

import logging
import os
import re
from pathlib import Path
from urllib.parse import urlparse

import httpx

from flickmv_worker.config import get_settings
from flickmv_worker.exceptions import MediaResolutionError
from flickmv_worker.render.workspace import JobWorkspace
from flickmv_worker.schemas.export_job import MediaDescriptor

logger = logging.getLogger(__name__)


class MediaResolver:
    """Maps a ``MediaDescriptor.url`` to a local path.

    URL forms:
    - ``http(s)://...``: downloaded into the job workspace, once per URL
    - absolute path: used as is
    - ``/uploads/...``, ``uploads/...`` or any other relative path: joined
      onto the uploads directory
    """

    def __init__(
        self,
        workspace: JobWorkspace,
        uploads_dir: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.workspace = workspace
        self.uploads_dir = Path(uploads_dir or settings.uploads_dir)
        self._http_client = http_client
        self._timeout = settings.http_timeout_seconds
        self._downloads: dict[str, Path] = {}
        self._failed: dict[str, str] = {}

    async def resolve(self, media: MediaDescriptor | None) -> Path:
        """Return an existing local file for ``media``.

        Raises:
            MediaResolutionError: no media, no URL, download failure, or the
                resolved file does not exist.
        """
        if media is None or not media.url:
            raise MediaResolutionError("Clip has no media reference")

        url = media.url
        if url.startswith(("http://", "https://")):
            path = await self._download(url)
        else:
            path = self.resolve_local_path(url)

        if not path.is_file():
            raise MediaResolutionError(f"Media file not found: {path}")
        return path

    def resolve_local_path(self, url: str) -> Path:
        if url.startswith(("/uploads/", "uploads/")):
            return self.uploads_dir / url.lstrip("/")
        if os.path.isabs(url):
            return Path(url)
        return self.uploads_dir / url

    async def _download(self, url: str) -> Path:
        cached = self._downloads.get(url)
        if cached is not None:
            return cached
        if url in self._failed:
            raise MediaResolutionError(self._failed[url])

        name = re.sub(r"[^A-Za-z0-9._-]+", "_", os.path.basename(urlparse(url).path))
        target = self.workspace.download_path(len(self._downloads), name)

        try:
            if self._http_client is not None:
                await self._stream_to(self._http_client, url, target)
            else:
                async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                    await self._stream_to(client, url, target)
        except (httpx.HTTPError, OSError) as e:
            target.unlink(missing_ok=True)
            self._failed[url] = f"Failed to download {url}: {e}"
            raise MediaResolutionError(self._failed[url]) from e

        logger.debug(f"[MEDIA] Downloaded remote file: {url} -> {target}")
        self._downloads[url] = target
        return target

    @staticmethod
    async def _stream_to(client: httpx.AsyncClient, url: str, target: Path) -> None:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            with open(target, "wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)
