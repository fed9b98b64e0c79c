from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from flickmv_worker.exceptions import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "FlickMV Export Worker"
    app_version: str = "0.1.0"
    log_level: str = "info"

    # Job queue (pg-boss tables in Postgres)
    database_url: str = ""
    database_echo: bool = False
    pgboss_schema: str = "pgboss"
    export_queue_name: str = "video-export"

    # Orchestration API
    internal_api_base: str = ""
    internal_api_key: str = ""
    http_timeout_seconds: float = 60.0

    # When False, failures delivering intermediate progress updates are logged
    # and ignored. Terminal status updates always fail the job.
    progress_reports_fatal: bool = True

    # Object storage (S3-compatible, e.g. Cloudflare R2). All optional.
    r2_endpoint: str = ""
    r2_bucket: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_public_base_url: str = ""
    r2_region: str = "auto"

    # Local storage
    uploads_dir: str = "/app/uploads"
    local_exports_dir: str = "/app/exports"

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffmpeg_preset: str = "medium"
    ffmpeg_log_tail_lines: int = 50

    # Render settings
    render_default_fps: int = 30
    # "timeline": xfade offset = chain duration - transition duration.
    # "zero": every cross-blend starts at t=0.
    transition_offset_mode: Literal["timeline", "zero"] = "timeline"

    # Watermark
    watermark_text: str = "FlickMV"
    watermark_font_file: str = ""
    watermark_min_font_size: int = 12

    @computed_field
    @property
    def internal_api_base_url(self) -> str:
        """Orchestration API base without trailing slashes."""
        return self.internal_api_base.rstrip("/")

    @computed_field
    @property
    def storage_configured(self) -> bool:
        """True when every credential needed for an S3 upload is present."""
        return bool(
            self.r2_endpoint
            and self.r2_bucket
            and self.r2_access_key_id
            and self.r2_secret_access_key
        )

    def validate_required(self) -> None:
        missing = [
            env_name
            for env_name, value in (
                ("DATABASE_URL", self.database_url),
                ("INTERNAL_API_BASE", self.internal_api_base),
                ("INTERNAL_API_KEY", self.internal_api_key),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing required env: {', '.join(missing)}")


@lru_cache
def get_settings() -> Settings:
    return Settings()
