"""Typed model of an export request as served by the orchestration API.

Wire format is camelCase JSON; attributes are snake_case. Unknown fields are
ignored so that newer API payloads keep parsing.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

TransitionType = Literal["cut", "crossfade", "slide", "wipe"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "cancelled"})
# A failed job may come back through a queue retry and is rendered again.
SKIPPED_STATUSES: frozenset[str] = frozenset({"completed", "cancelled"})


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# Timeline
# =============================================================================


class Effect(_ApiModel):
    """Per-clip visual effect. Unknown types are kept and ignored at render."""

    id: str = ""
    type: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


class Transition(_ApiModel):
    type: TransitionType = "cut"
    duration: float = 0.5
    parameters: dict[str, Any] = Field(default_factory=dict)


class ClipTransitions(_ApiModel):
    in_: Transition | None = Field(default=None, alias="in")
    out: Transition | None = None

    def count(self) -> int:
        return sum(1 for t in (self.in_, self.out) if t is not None)


class Clip(_ApiModel):
    id: str
    media_id: str | None = Field(default=None, alias="mediaId")
    start_time: float = Field(default=0.0, alias="startTime")
    duration: float
    trim_start: float = Field(default=0.0, alias="trimStart")
    trim_end: float = Field(default=0.0, alias="trimEnd")
    layer: int = 0  # accepted, rendered as a single sequential stream
    effects: list[Effect] = Field(default_factory=list)
    transitions: ClipTransitions = Field(default_factory=ClipTransitions)

    @property
    def transition_in(self) -> Transition | None:
        return self.transitions.in_


class AudioTrack(_ApiModel):
    """Audio track. Carried through the model; not mixed into the export."""

    id: str = ""
    name: str | None = None
    volume: float = 1.0
    muted: bool = False
    clips: list[dict[str, Any]] = Field(default_factory=list)


class Timeline(_ApiModel):
    clips: list[Clip] = Field(default_factory=list)
    audio_tracks: list[AudioTrack] = Field(default_factory=list, alias="audioTracks")
    duration: float = 10

    def effect_count(self) -> int:
        return sum(len(clip.effects) for clip in self.clips)

    def transition_count(self) -> int:
        return sum(clip.transitions.count() for clip in self.clips)


class MediaDescriptor(_ApiModel):
    id: str
    url: str | None = None
    name: str | None = None
    type: str | None = None


class ExportMetadata(_ApiModel):
    timeline: Timeline = Field(default_factory=Timeline)
    project_settings: dict[str, Any] = Field(default_factory=dict, alias="projectSettings")
    media_files: list[MediaDescriptor] = Field(default_factory=list, alias="mediaFiles")

    @field_validator("timeline", "project_settings", "media_files", mode="before")
    @classmethod
    def null_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is not None:
            return value
        return [] if info.field_name == "media_files" else {}

    def media_by_id(self) -> dict[str, MediaDescriptor]:
        return {media.id: media for media in self.media_files}


# =============================================================================
# Job
# =============================================================================


class QualitySettings(_ApiModel):
    """Encoding quality. An explicit ``crf`` takes precedence over the preset."""

    preset: str = "high"
    video_bitrate: int | None = Field(default=None, alias="videoBitrate")
    audio_bitrate: int | None = Field(default=None, alias="audioBitrate")
    crf: int | None = None


class ExportFormat(_ApiModel):
    container: str = "mp4"
    video_codec: str = Field(default="h264", alias="videoCodec")
    audio_codec: str = Field(default="aac", alias="audioCodec")


class ExportSettings(_ApiModel):
    resolution: str = "9:16"
    frame_rate: int = Field(default=30, alias="frameRate")
    quality: QualitySettings = Field(default_factory=QualitySettings)
    format: ExportFormat = Field(default_factory=ExportFormat)
    include_audio: bool = Field(default=True, alias="includeAudio")

    @field_validator("quality", mode="before")
    @classmethod
    def quality_from_preset(cls, value: Any) -> Any:
        # Older projects store the bare preset name
        if isinstance(value, str):
            return {"preset": value}
        return value if value is not None else {}

    @field_validator("frame_rate", mode="before")
    @classmethod
    def default_frame_rate(cls, value: Any) -> Any:
        return value if value else 30


class WatermarkSettings(_ApiModel):
    enabled: bool = True
    preset: str = "minimal"


class ExportJob(_ApiModel):
    id: str
    user_id: str = Field(default="", alias="userId")
    name: str | None = None
    settings: ExportSettings = Field(default_factory=ExportSettings)
    watermark_settings: WatermarkSettings = Field(
        default_factory=WatermarkSettings, alias="watermarkSettings"
    )
    metadata: ExportMetadata = Field(default_factory=ExportMetadata)
    status: str = "queued"
    progress: float = 0
    output: dict[str, Any] | None = None

    @field_validator("settings", "watermark_settings", "metadata", mode="before")
    @classmethod
    def null_as_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def timeline(self) -> Timeline:
        return self.metadata.timeline

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def should_skip(self) -> bool:
        """Already completed or cancelled; there is nothing left to render."""
        return self.status in SKIPPED_STATUSES


# =============================================================================
# Output
# =============================================================================


class StorageInfo(_ApiModel):
    provider: Literal["local", "s3"]
    bucket: str | None = None
    key: str | None = None


class WatermarkInfo(_ApiModel):
    applied: bool
    preset: str
    timestamp: str


class ProcessingSummary(_ApiModel):
    clips: int
    effects: int
    transitions: int


class OutputDescriptor(_ApiModel):
    url: str
    filename: str
    size: int
    duration: float
    storage: StorageInfo
    watermark: WatermarkInfo
    processing: ProcessingSummary

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
