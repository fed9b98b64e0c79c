from flickmv_worker.schemas.export_job import (
    AudioTrack,
    Clip,
    ClipTransitions,
    Effect,
    ExportJob,
    ExportMetadata,
    ExportSettings,
    MediaDescriptor,
    OutputDescriptor,
    ProcessingSummary,
    QualitySettings,
    StorageInfo,
    Timeline,
    Transition,
    WatermarkInfo,
    WatermarkSettings,
)

__all__ = [
    "ExportJob",
    "ExportSettings",
    "QualitySettings",
    "ExportMetadata",
    "WatermarkSettings",
    "Timeline",
    "Clip",
    "ClipTransitions",
    "Effect",
    "Transition",
    "AudioTrack",
    "MediaDescriptor",
    "OutputDescriptor",
    "StorageInfo",
    "WatermarkInfo",
    "ProcessingSummary",
]
