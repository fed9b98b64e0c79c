"""
Transition compositing.

Chains all per-clip intermediates left to right in a single filter graph:

    [0:v][1:v]concat=n=2:v=1:a=0[v1];[v1][2:v]xfade=transition=fade:...[v2]

Boundary i (1..N-1) is decided by ``clips[i].transitions.in``: absent or
``cut`` concatenates, ``crossfade``/``slide``/``wipe`` cross-blend with xfade.
The whole graph is one encoder invocation.
"""

import logging
from pathlib import Path
from typing import Literal

from flickmv_worker.config import get_settings
from flickmv_worker.exceptions import EmptyTimelineError
from flickmv_worker.render.clip_renderer import format_factor, get_crf
from flickmv_worker.render.encoder import FFmpegEncoder
from flickmv_worker.render.filters import Filter, FilterChain, FilterGraph
from flickmv_worker.render.workspace import JobWorkspace
from flickmv_worker.schemas.export_job import Clip, ExportSettings, Transition

logger = logging.getLogger(__name__)

OffsetMode = Literal["timeline", "zero"]

SLIDE_DIRECTIONS = {"left", "right", "up", "down"}
WIPE_DIRECTIONS = {
    "left": "left",
    "right": "right",
    "up": "up",
    "down": "down",
    "horizontal": "left",
    "vertical": "up",
}


def xfade_transition_name(transition: Transition) -> str:
    """xfade ``transition=`` value for a timeline transition."""
    direction = str(transition.parameters.get("direction", "")).lower()
    if transition.type == "slide":
        return f"slide{direction if direction in SLIDE_DIRECTIONS else 'left'}"
    if transition.type == "wipe":
        return f"wipe{WIPE_DIRECTIONS.get(direction, 'left')}"
    return "fade"


def build_transition_graph(
    clips: list[Clip],
    offset_mode: OffsetMode = "timeline",
) -> tuple[FilterGraph, str]:
    """Filter graph chaining ``len(clips)`` inputs; returns (graph, output label).

    ``offset_mode="timeline"`` starts each cross-blend ``duration`` seconds
    before the end of the chain so far (output shortens by the overlap);
    ``"zero"`` starts every cross-blend at t=0.
    """
    graph = FilterGraph()
    last_label = "0:v"
    chain_duration = float(clips[0].duration)

    for i in range(1, len(clips)):
        clip = clips[i]
        clip_duration = float(clip.duration)
        transition = clip.transition_in
        output_label = f"v{i}"

        if transition is None or transition.type == "cut":
            filter_ = Filter("concat", {"n": 2, "v": 1, "a": 0})
            chain_duration += clip_duration
        else:
            duration = max(0.0, min(float(transition.duration), chain_duration, clip_duration))
            if offset_mode == "zero":
                offset = 0.0
            else:
                offset = max(0.0, chain_duration - duration)
            filter_ = Filter(
                "xfade",
                {
                    "transition": xfade_transition_name(transition),
                    "duration": format_factor(duration),
                    "offset": format_factor(offset),
                },
            )
            chain_duration = offset + clip_duration

        graph.add(FilterChain([filter_], inputs=[last_label, f"{i}:v"], outputs=[output_label]))
        last_label = output_label

    return graph, last_label


class TransitionCompositor:
    """Merges rendered clips into one stream in a single encoder call."""

    def __init__(
        self,
        encoder: FFmpegEncoder,
        workspace: JobWorkspace,
        settings: ExportSettings,
        offset_mode: OffsetMode | None = None,
    ):
        app_settings = get_settings()
        self.encoder = encoder
        self.workspace = workspace
        self.settings = settings
        self.offset_mode = offset_mode or app_settings.transition_offset_mode
        self.preset = app_settings.ffmpeg_preset
        self.fps = settings.frame_rate or app_settings.render_default_fps

    def build_command(self, clip_paths: list[Path], clips: list[Clip], output_path: Path) -> list[str]:
        graph, output_label = build_transition_graph(clips, self.offset_mode)

        args: list[str] = []
        for path in clip_paths:
            args.extend(["-i", str(path)])
        args.extend([
            "-filter_complex", str(graph),
            "-map", f"[{output_label}]",
            "-an",
            "-c:v", "libx264",
            "-preset", self.preset,
            "-crf", str(get_crf(self.settings.quality)),
            "-r", str(self.fps),
            "-pix_fmt", "yuv420p",
            str(output_path),
        ])
        return args

    async def composite(self, clip_paths: list[Path], clips: list[Clip]) -> Path:
        """Merge intermediates into one file; a single intermediate passes through."""
        if len(clip_paths) != len(clips):
            raise ValueError(
                f"Got {len(clip_paths)} rendered clips for {len(clips)} timeline clips"
            )
        if not clip_paths:
            raise EmptyTimelineError()
        if len(clip_paths) == 1:
            return clip_paths[0]

        output_path = self.workspace.merged_path
        args = self.build_command(clip_paths, clips, output_path)
        logger.info(f"[COMPOSITE] Merging {len(clip_paths)} clips (offset mode: {self.offset_mode})")

        await self.encoder.run(args, stage="Transitions")
        logger.info(f"[COMPOSITE] Transitions applied: {output_path}")
        return output_path
