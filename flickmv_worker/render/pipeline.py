"""
Export render pipeline.

This module orchestrates the rendering of one export job:
1. Render every clip (array order) into an intermediate file
2. Merge intermediates with transitions
3. Apply or skip the watermark into the output file

Stages share nothing in memory; all data between them is files in the
job's ``JobWorkspace``. Every stage failure propagates to the caller.
"""

import logging
from pathlib import Path

import httpx

from flickmv_worker.exceptions import EmptyTimelineError
from flickmv_worker.render.clip_renderer import ClipRenderer
from flickmv_worker.render.compositor import TransitionCompositor
from flickmv_worker.render.encoder import FFmpegEncoder
from flickmv_worker.render.media_resolver import MediaResolver
from flickmv_worker.render.watermark import WatermarkOverlay, resolve_preset
from flickmv_worker.render.workspace import JobWorkspace
from flickmv_worker.schemas.export_job import ExportJob
from flickmv_worker.services.progress_reporter import ProgressReporter

logger = logging.getLogger(__name__)


class ExportPipeline:
    """Renders an export job's timeline into a single video file."""

    def __init__(
        self,
        job: ExportJob,
        workspace: JobWorkspace,
        reporter: ProgressReporter,
        encoder: FFmpegEncoder | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.job = job
        self.workspace = workspace
        self.reporter = reporter
        self.encoder = encoder or FFmpegEncoder()

        resolver = MediaResolver(workspace, http_client=http_client)
        self.clip_renderer = ClipRenderer(self.encoder, resolver, workspace, job.settings)
        self.compositor = TransitionCompositor(self.encoder, workspace, job.settings)
        self.watermark = WatermarkOverlay(self.encoder, job.settings)

    async def render(self, output_path: Path) -> Path:
        timeline = self.job.timeline
        clips = timeline.clips
        if not clips:
            raise EmptyTimelineError(f"Export job {self.job.id} has no clips to render")

        logger.info(
            f"[RENDER] Job {self.job.id}: {len(clips)} clips, duration {timeline.duration}s, "
            f"resolution {self.job.settings.resolution}, {self.job.settings.frame_rate}fps"
        )
        await self.reporter.report("initializing", message="Starting video processing...")

        # Phase 1: clips
        media_by_id = self.job.metadata.media_by_id()
        rendered: list[Path] = []
        for index, clip in enumerate(clips):
            await self.reporter.report(
                "processing_clips",
                current=index,
                total=len(clips),
                message=f"Processing clip {index + 1}/{len(clips)}",
            )
            media = media_by_id.get(clip.media_id) if clip.media_id else None
            rendered.append(await self.clip_renderer.render_clip(clip, index, media))

        # Phase 2: transitions
        if len(rendered) > 1:
            await self.reporter.report(
                "applying_transitions", message="Applying transitions between clips"
            )
        merged = await self.compositor.composite(rendered, clips)

        # Phase 3: watermark
        watermark = self.job.watermark_settings
        if watermark.enabled:
            await self.reporter.report(
                "applying_watermark",
                message=f"Applying {resolve_preset(watermark.preset).style} watermark",
            )
        await self.watermark.apply_watermark(merged, watermark, output_path)

        logger.info(f"[RENDER] Job {self.job.id} rendered to {output_path}")
        return output_path
