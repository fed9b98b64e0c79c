"""Tests for the export job model."""

from conftest import make_clip, make_export_job
from flickmv_worker.schemas import ExportJob, OutputDescriptor


class TestExportJob:
    """Tests for parsing API payloads."""

    def test_camel_case_payload(self):
        job = ExportJob.model_validate(make_export_job())

        assert job.user_id == "user-42"
        assert job.settings.frame_rate == 30
        assert job.watermark_settings.preset == "minimal"
        assert job.timeline.duration == 5
        assert job.timeline.clips[0].media_id == "media-clip-1"

    def test_defaults_for_sparse_payload(self):
        job = ExportJob.model_validate({"id": "export-9"})

        assert job.settings.resolution == "9:16"
        assert job.settings.quality.preset == "high"
        assert job.settings.quality.crf is None
        assert job.watermark_settings.enabled is True
        assert job.timeline.clips == []
        assert job.timeline.duration == 10

    def test_unknown_fields_ignored(self):
        data = make_export_job(projectId="p1")
        data["metadata"]["timeline"]["clips"][0]["opacity"] = 0.5
        job = ExportJob.model_validate(data)
        assert job.id == "export-1"

    def test_server_settings_shape(self):
        job = ExportJob.model_validate(make_export_job())

        assert job.settings.quality.preset == "high"
        assert job.settings.quality.crf == 23
        assert job.settings.quality.video_bitrate == 5000
        assert job.settings.format.container == "mp4"
        assert job.settings.include_audio is True
        assert job.metadata.project_settings == {"resolution": "9:16", "frameRate": 30}

    def test_bare_quality_preset(self):
        job = ExportJob.model_validate(
            make_export_job(settings={"resolution": "16:9", "quality": "ultra"})
        )
        assert job.settings.quality.preset == "ultra"
        assert job.settings.quality.crf is None
        assert job.settings.frame_rate == 30

    def test_null_sections_use_defaults(self):
        job = ExportJob.model_validate(
            {"id": "export-3", "settings": None, "watermarkSettings": None, "metadata": None}
        )
        assert job.settings.resolution == "9:16"
        assert job.watermark_settings.enabled is True
        assert job.watermark_settings.preset == "minimal"
        assert job.timeline.clips == []

        job = ExportJob.model_validate(
            {"id": "export-4", "metadata": {"timeline": None, "mediaFiles": None}}
        )
        assert job.timeline.duration == 10
        assert job.metadata.media_files == []

    def test_terminal_statuses(self):
        assert ExportJob.model_validate(make_export_job(status="cancelled")).is_terminal
        assert ExportJob.model_validate(make_export_job(status="completed")).is_terminal
        assert not ExportJob.model_validate(make_export_job(status="queued")).is_terminal
        assert not ExportJob.model_validate(make_export_job(status="processing")).is_terminal

    def test_failed_job_is_not_skipped(self):
        assert ExportJob.model_validate(make_export_job(status="failed")).is_terminal
        assert not ExportJob.model_validate(make_export_job(status="failed")).should_skip
        assert ExportJob.model_validate(make_export_job(status="cancelled")).should_skip
        assert ExportJob.model_validate(make_export_job(status="completed")).should_skip

    def test_transition_in_alias(self):
        clip = make_clip("c2", transitions={"in": {"type": "wipe", "duration": 0.8}})
        job = ExportJob.model_validate(make_export_job(clips=[make_clip("c1"), clip]))

        second = job.timeline.clips[1]
        assert second.transition_in.type == "wipe"
        assert second.transition_in.duration == 0.8
        assert job.timeline.clips[0].transition_in is None
        assert job.timeline.transition_count() == 1

    def test_media_lookup(self):
        job = ExportJob.model_validate(
            make_export_job(media_files=[{"id": "media-clip-1", "url": "/uploads/a.mp4"}])
        )
        assert job.metadata.media_by_id()["media-clip-1"].url == "/uploads/a.mp4"


class TestOutputDescriptor:
    """Tests for the completion payload."""

    def test_payload_omits_missing_storage_fields(self):
        descriptor = OutputDescriptor.model_validate({
            "url": "/exports/u/f.mp4",
            "filename": "f.mp4",
            "size": 1,
            "duration": 5,
            "storage": {"provider": "local"},
            "watermark": {"applied": False, "preset": "minimal", "timestamp": "t"},
            "processing": {"clips": 1, "effects": 0, "transitions": 0},
        })
        payload = descriptor.to_payload()

        assert payload["storage"] == {"provider": "local"}
        assert payload["watermark"]["applied"] is False
