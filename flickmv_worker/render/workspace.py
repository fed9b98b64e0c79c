import logging
import re
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class JobWorkspace:
    """Temp directory exclusively owned by one export job.

    Holds per-clip intermediates, downloaded media, the merged pre-watermark
    file and the final output. Use as a context manager so the directory is
    released on success and failure alike.
    """

    def __init__(self, path: Path):
        self.path = path
        self.downloads_dir = path / "downloads"
        self.downloads_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def create(cls, job_id: str, base_dir: str | None = None) -> "JobWorkspace":
        safe_id = re.sub(r"[^A-Za-z0-9_-]+", "_", job_id)[:40]
        path = Path(tempfile.mkdtemp(prefix=f"flickmv_export_{safe_id}_", dir=base_dir))
        logger.info(f"[WORKSPACE] Created {path}")
        return cls(path)

    def clip_path(self, index: int) -> Path:
        return self.path / f"clip_{index}.mp4"

    @property
    def merged_path(self) -> Path:
        return self.path / "with_transitions.mp4"

    def output_path(self, filename: str) -> Path:
        return self.path / filename

    def download_path(self, index: int, name: str) -> Path:
        return self.downloads_dir / f"remote_{index}_{name or 'media'}"

    def release(self) -> None:
        if not self.path.exists():
            return
        try:
            shutil.rmtree(self.path)
            logger.info(f"[WORKSPACE] Removed {self.path}")
        except OSError as e:
            logger.warning(f"[WORKSPACE] Cleanup of {self.path} failed: {e}")

    def __enter__(self) -> "JobWorkspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
