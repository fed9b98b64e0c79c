"""
Per-clip rendering.

Each clip becomes one intermediate MP4 in the job workspace:
1. Resolve source media (falls back to generated placeholder content)
2. Trim (input seek + output duration)
3. Apply enabled effects as an ordered filter chain
4. Encode at the export's fixed resolution and frame rate
"""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from flickmv_worker.config import get_settings
from flickmv_worker.exceptions import MediaResolutionError
from flickmv_worker.render.encoder import FFmpegEncoder
from flickmv_worker.render.filters import Filter, FilterChain
from flickmv_worker.render.media_resolver import MediaResolver
from flickmv_worker.render.workspace import JobWorkspace
from flickmv_worker.schemas.export_job import (
    Clip,
    Effect,
    ExportSettings,
    MediaDescriptor,
    QualitySettings,
)

logger = logging.getLogger(__name__)


# Aspect / preset key -> (width, height)
RESOLUTIONS: dict[str, tuple[int, int]] = {
    "9:16": (1080, 1920),
    "1:1": (1080, 1080),
    "16:9": (1920, 1080),
    "720p": (1280, 720),
    "1080p": (1920, 1080),
    "4K": (3840, 2160),
}
DEFAULT_RESOLUTION = (1080, 1920)

# Export quality -> libx264 CRF
QUALITY_CRF: dict[str, int] = {
    "low": 28,
    "medium": 23,
    "high": 20,
    "ultra": 18,
}
DEFAULT_CRF = 20

PLACEHOLDER_COLORS = [
    "red", "blue", "green", "yellow", "purple", "orange",
    "0x6366f1", "0x10b981", "0xf59e0b",
]
PLACEHOLDER_PATTERNS = ["gradient", "noise", "solid", "test_pattern"]


def get_resolution_size(resolution: str) -> tuple[int, int]:
    """Output size for an export resolution key. Unknown keys fall back to 1080x1920."""
    return RESOLUTIONS.get(resolution, DEFAULT_RESOLUTION)


def get_crf(quality: QualitySettings | str) -> int:
    """libx264 CRF for an export quality: explicit crf first, then the preset table."""
    if isinstance(quality, str):
        return QUALITY_CRF.get(quality, DEFAULT_CRF)
    if quality.crf is not None:
        return quality.crf
    return QUALITY_CRF.get(quality.preset, DEFAULT_CRF)


# ============================================================================
# Effects
# ============================================================================


def _number(params: dict[str, Any], key: str, default: float) -> float:
    value = params.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _eq_filter(effect: Effect, clip: Clip) -> list[Filter]:
    value = _number(effect.parameters, "value", 0)
    if effect.type == "brightness":
        return [Filter("eq", {"brightness": value / 100})]
    return [Filter("eq", {effect.type: 1 + value / 100})]


def _speed_filter(effect: Effect, clip: Clip) -> list[Filter]:
    value = _number(effect.parameters, "value", 1)
    if value <= 0:
        logger.warning(f"[CLIP] Ignoring speed effect with non-positive value {value} (clip {clip.id})")
        return []
    return [Filter("setpts", args=(f"{format_factor(1 / value)}*PTS",))]


def _pan_zoom_filter(effect: Effect, clip: Clip) -> list[Filter]:
    zoom = _number(effect.parameters, "zoom", 1) or 1
    pan_x = _number(effect.parameters, "panX", 0)
    pan_y = _number(effect.parameters, "panY", 0)
    z = format_factor(zoom)
    return [
        Filter("scale", args=(f"{z}*iw", f"{z}*ih")),
        Filter(
            "crop",
            args=(
                f"iw/{z}",
                f"ih/{z}",
                f"(iw-ow)/2+{format_factor(pan_x)}*iw",
                f"(ih-oh)/2+{format_factor(pan_y)}*ih",
            ),
        ),
    ]


def _fade_filter(effect: Effect, clip: Clip) -> list[Filter]:
    fade_type = effect.parameters.get("type", "in")
    fade_duration = _number(effect.parameters, "duration", 0.5)
    # Anchored at the clip's absolute timeline start
    if fade_type == "in":
        start = clip.start_time
    else:
        fade_type = "out"
        start = clip.start_time + clip.duration - fade_duration
    return [Filter("fade", {"t": fade_type, "st": float(start), "d": float(fade_duration)})]


EFFECT_FILTERS: dict[str, Callable[[Effect, Clip], list[Filter]]] = {
    "brightness": _eq_filter,
    "contrast": _eq_filter,
    "saturation": _eq_filter,
    "speed": _speed_filter,
    "pan_zoom": _pan_zoom_filter,
    "fade": _fade_filter,
}


def format_factor(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.6f}".rstrip("0").rstrip(".")


def build_effect_filters(clip: Clip) -> list[Filter]:
    """Filters for the clip's enabled effects, in effect order.

    Disabled effects and unknown effect types are skipped.
    """
    filters: list[Filter] = []
    for effect in clip.effects:
        if not effect.enabled:
            continue
        builder = EFFECT_FILTERS.get(effect.type)
        if builder is None:
            logger.debug(f"[CLIP] Ignoring unknown effect type '{effect.type}' (clip {clip.id})")
            continue
        filters.extend(builder(effect, clip))
    return filters


# ============================================================================
# Placeholder content
# ============================================================================


def _clip_hash(clip_id: str) -> int:
    return int.from_bytes(hashlib.sha256(clip_id.encode("utf-8")).digest()[:8], "big")


def placeholder_pattern(clip_id: str) -> tuple[str, str]:
    """Deterministic (pattern, color) for a clip id."""
    digest = _clip_hash(clip_id)
    pattern = PLACEHOLDER_PATTERNS[digest % len(PLACEHOLDER_PATTERNS)]
    color = PLACEHOLDER_COLORS[(digest // len(PLACEHOLDER_PATTERNS)) % len(PLACEHOLDER_COLORS)]
    return pattern, color


def build_placeholder_source(
    clip_id: str, width: int, height: int, duration: float, fps: int
) -> FilterChain:
    """lavfi source graph used when a clip's media cannot be resolved."""
    pattern, color = placeholder_pattern(clip_id)
    size = f"{width}x{height}"
    duration = float(duration)

    if pattern == "test_pattern":
        return FilterChain([Filter("testsrc2", {"s": size, "d": duration, "r": fps})])

    base_color = {"gradient": "0x1a1a2e", "noise": "black", "solid": color}[pattern]
    chain = FilterChain([Filter("color", {"c": base_color, "s": size, "d": duration, "r": fps})])
    if pattern == "gradient":
        chain.append(
            Filter(
                "geq",
                {
                    "r": "255*sin(2*PI*T/5)",
                    "g": "255*sin(2*PI*T/3)",
                    "b": "255*sin(2*PI*T/7)",
                },
            )
        )
    elif pattern == "noise":
        chain.append(Filter("noise", {"alls": 20, "allf": "t+u"}))
    return chain


# ============================================================================
# Renderer
# ============================================================================


@dataclass
class ClipSource:
    """Encoder input for a clip: a media file or a lavfi placeholder graph."""

    path: Path | None = None
    placeholder: FilterChain | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.placeholder is not None


def build_clip_command(
    clip: Clip,
    source: ClipSource,
    output_path: Path,
    settings: ExportSettings,
    preset: str = "medium",
) -> list[str]:
    """Build the FFmpeg arguments rendering one clip, without running them."""
    width, height = get_resolution_size(settings.resolution)
    fps = settings.frame_rate or get_settings().render_default_fps

    args: list[str] = []
    if source.is_placeholder:
        args.extend(["-f", "lavfi", "-i", str(source.placeholder)])
    else:
        if clip.trim_start > 0:
            args.extend(["-ss", format_factor(clip.trim_start)])
        args.extend(["-i", str(source.path)])

    args.extend(["-t", format_factor(clip.duration)])

    chain = FilterChain(build_effect_filters(clip))
    chain.append(Filter("scale", args=(width, height)))
    chain.append(Filter("setsar", args=(1,)))
    args.extend(["-vf", str(chain)])

    args.extend([
        "-an",
        "-c:v", "libx264",
        "-preset", preset,
        "-crf", str(get_crf(settings.quality)),
        "-r", str(fps),
        "-pix_fmt", "yuv420p",
        str(output_path),
    ])
    return args


class ClipRenderer:
    """Renders timeline clips into intermediate files, one encoder call each."""

    def __init__(
        self,
        encoder: FFmpegEncoder,
        resolver: MediaResolver,
        workspace: JobWorkspace,
        settings: ExportSettings,
    ):
        self.encoder = encoder
        self.resolver = resolver
        self.workspace = workspace
        self.settings = settings
        self.preset = get_settings().ffmpeg_preset

    async def resolve_source(self, clip: Clip, media: MediaDescriptor | None) -> ClipSource:
        """Media file for the clip, or placeholder content when it cannot be resolved."""
        try:
            path = await self.resolver.resolve(media)
            logger.debug(f"[CLIP] Using media file for clip {clip.id}: {path}")
            return ClipSource(path=path)
        except MediaResolutionError as e:
            logger.warning(f"[CLIP] {e.message} (clip {clip.id}), falling back to placeholder")

        width, height = get_resolution_size(self.settings.resolution)
        fps = self.settings.frame_rate or get_settings().render_default_fps
        return ClipSource(
            placeholder=build_placeholder_source(clip.id, width, height, clip.duration, fps)
        )

    async def render_clip(self, clip: Clip, index: int, media: MediaDescriptor | None) -> Path:
        output_path = self.workspace.clip_path(index)
        source = await self.resolve_source(clip, media)
        args = build_clip_command(clip, source, output_path, self.settings, self.preset)

        await self.encoder.run(args, stage=f"Clip {index} ({clip.id})")
        logger.info(f"[CLIP] Clip {index} rendered: {output_path}")
        return output_path
