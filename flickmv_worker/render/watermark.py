"""
Plan-dependent watermark overlay.

Presets are expressed in percentages of the frame and converted to pixels
against the export resolution. A disabled watermark is a byte-for-byte copy
of the merged file.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from flickmv_worker.config import get_settings
from flickmv_worker.render.clip_renderer import get_crf, get_resolution_size
from flickmv_worker.render.encoder import FFmpegEncoder
from flickmv_worker.render.filters import Filter
from flickmv_worker.schemas.export_job import ExportSettings, WatermarkSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatermarkPreset:
    """Position (x, y) and size in percent, opacity in percent."""

    x: float
    y: float
    size: float
    opacity: float
    style: str


WATERMARK_PRESETS: dict[str, WatermarkPreset] = {
    "minimal": WatermarkPreset(x=85, y=10, size=12, opacity=60, style="minimal"),
    "branded": WatermarkPreset(x=50, y=50, size=25, opacity=30, style="branded"),
    "corner": WatermarkPreset(x=90, y=90, size=15, opacity=70, style="corner"),
    "center": WatermarkPreset(x=50, y=85, size=18, opacity=50, style="center"),
}
DEFAULT_PRESET = "minimal"

# Extra drawtext options per preset style
STYLE_OPTIONS: dict[str, dict[str, object]] = {
    "minimal": {"shadowcolor": "black", "shadowx": 1, "shadowy": 1},
    "branded": {"fontcolor": "0x6366f1", "borderw": 1, "bordercolor": "white"},
    "corner": {"box": 1, "boxcolor": "black@0.6", "boxborderw": 5},
    "center": {
        "box": 1,
        "boxcolor": "black@0.4",
        "boxborderw": 10,
        "borderw": 1,
        "bordercolor": "white@0.3",
    },
}


def resolve_preset(name: str | None) -> WatermarkPreset:
    """Preset by name; unknown names resolve to ``minimal``."""
    return WATERMARK_PRESETS.get(name or DEFAULT_PRESET, WATERMARK_PRESETS[DEFAULT_PRESET])


def build_watermark_filter(
    preset_name: str | None,
    width: int,
    height: int,
    text: str | None = None,
    font_file: str | None = None,
    min_font_size: int | None = None,
) -> Filter:
    settings = get_settings()
    preset = resolve_preset(preset_name)
    text = text or settings.watermark_text
    font_file = font_file if font_file is not None else settings.watermark_font_file
    min_font_size = min_font_size if min_font_size is not None else settings.watermark_min_font_size

    x = round(preset.x / 100 * width)
    y = round(preset.y / 100 * height)
    font_size = max(min_font_size, round(preset.size / 720 * height * 0.05))

    params: dict[str, object] = {}
    if font_file:
        params["fontfile"] = font_file
    params.update({
        "text": text,
        "fontcolor": "white",
        "fontsize": font_size,
        "x": x,
        "y": y,
        "alpha": preset.opacity / 100,
    })
    params.update(STYLE_OPTIONS[preset.style])
    return Filter("drawtext", params)


class WatermarkOverlay:
    """Applies (or skips) the branding overlay as the last render stage."""

    def __init__(self, encoder: FFmpegEncoder, settings: ExportSettings):
        app_settings = get_settings()
        self.encoder = encoder
        self.settings = settings
        self.preset = app_settings.ffmpeg_preset

    def build_command(self, merged_file: Path, watermark: WatermarkSettings, output_file: Path) -> list[str]:
        width, height = get_resolution_size(self.settings.resolution)
        drawtext = build_watermark_filter(watermark.preset, width, height)
        return [
            "-i", str(merged_file),
            "-vf", str(drawtext),
            "-an",
            "-c:v", "libx264",
            "-preset", self.preset,
            "-crf", str(get_crf(self.settings.quality)),
            "-pix_fmt", "yuv420p",
            "-movflags", "+faststart",
            str(output_file),
        ]

    async def apply_watermark(
        self,
        merged_file: Path,
        watermark: WatermarkSettings,
        output_file: Path,
    ) -> None:
        if not watermark.enabled:
            shutil.copyfile(merged_file, output_file)
            logger.info(f"[WATERMARK] Disabled, copied {merged_file} -> {output_file}")
            return

        args = self.build_command(merged_file, watermark, output_file)
        await self.encoder.run(args, stage=f"Watermark ({watermark.preset})")
        logger.info(f"[WATERMARK] Applied '{resolve_preset(watermark.preset).style}' watermark")
