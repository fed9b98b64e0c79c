"""Tests for media reference resolution."""

import httpx
import pytest

from flickmv_worker.exceptions import MediaResolutionError
from flickmv_worker.render.media_resolver import MediaResolver
from flickmv_worker.schemas.export_job import MediaDescriptor


class TestResolveLocalPath:
    """Tests for mapping relative and absolute references."""

    def test_uploads_prefixes_join_uploads_dir(self, workspace, worker_env):
        resolver = MediaResolver(workspace)
        uploads_dir = worker_env["uploads_dir"]

        assert resolver.resolve_local_path("/uploads/a.mp4") == uploads_dir / "uploads" / "a.mp4"
        assert resolver.resolve_local_path("uploads/a.mp4") == uploads_dir / "uploads" / "a.mp4"
        assert resolver.resolve_local_path("media/b.mp4") == uploads_dir / "media" / "b.mp4"

    def test_absolute_path_used_as_is(self, workspace, temp_output_dir):
        resolver = MediaResolver(workspace)
        path = temp_output_dir / "video.mp4"
        assert resolver.resolve_local_path(str(path)) == path


class TestResolve:
    """Tests for resolve() outcomes."""

    @pytest.mark.asyncio
    async def test_existing_local_file(self, workspace, temp_output_dir):
        video = temp_output_dir / "video.mp4"
        video.write_bytes(b"video")
        resolver = MediaResolver(workspace)

        assert await resolver.resolve(MediaDescriptor(id="m", url=str(video))) == video

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, workspace):
        resolver = MediaResolver(workspace)
        with pytest.raises(MediaResolutionError):
            await resolver.resolve(MediaDescriptor(id="m", url="/uploads/none.mp4"))

    @pytest.mark.asyncio
    async def test_no_media_raises(self, workspace):
        resolver = MediaResolver(workspace)
        with pytest.raises(MediaResolutionError):
            await resolver.resolve(None)
        with pytest.raises(MediaResolutionError):
            await resolver.resolve(MediaDescriptor(id="m"))

    @pytest.mark.asyncio
    async def test_remote_download_cached_per_url(self, workspace):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, content=b"remote-video")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            resolver = MediaResolver(workspace, http_client=client)
            media = MediaDescriptor(id="m", url="https://cdn.test/media/clip%201.mp4")

            first = await resolver.resolve(media)
            second = await resolver.resolve(media)

        assert first == second
        assert first.parent == workspace.downloads_dir
        assert first.read_bytes() == b"remote-video"
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_remote_failure_raises_and_is_remembered(self, workspace):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            resolver = MediaResolver(workspace, http_client=client)
            media = MediaDescriptor(id="m", url="https://cdn.test/gone.mp4")

            with pytest.raises(MediaResolutionError):
                await resolver.resolve(media)
            with pytest.raises(MediaResolutionError):
                await resolver.resolve(media)

        assert len(requests) == 1
        assert list(workspace.downloads_dir.iterdir()) == []
