from flickmv_worker.render.clip_renderer import ClipRenderer
from flickmv_worker.render.compositor import TransitionCompositor
from flickmv_worker.render.encoder import FFmpegEncoder
from flickmv_worker.render.pipeline import ExportPipeline
from flickmv_worker.render.watermark import WatermarkOverlay
from flickmv_worker.render.workspace import JobWorkspace

__all__ = [
    "ExportPipeline",
    "ClipRenderer",
    "TransitionCompositor",
    "WatermarkOverlay",
    "FFmpegEncoder",
    "JobWorkspace",
]
