"""
FFmpeg subprocess runner.

Every render stage hands a fully built argument list to ``FFmpegEncoder.run``.
The encoder's stderr is read in chunks and split on both line feeds and the
carriage returns FFmpeg ends its progress lines with. Lines go to the debug
log while the process runs; the tail is kept for the error raised on a
non-zero exit.
"""

import asyncio
import codecs
import logging
import re
import shlex
from collections import deque
from typing import cast

from flickmv_worker.config import get_settings
from flickmv_worker.exceptions import EncodeError

logger = logging.getLogger(__name__)

STDERR_CHUNK_SIZE = 4096
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class FFmpegEncoder:
    """Runs one FFmpeg invocation per call, strictly awaited to completion."""

    def __init__(self, ffmpeg_path: str | None = None, log_tail_lines: int | None = None):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.log_tail_lines = log_tail_lines or settings.ffmpeg_log_tail_lines

    def build_command(self, args: list[str]) -> list[str]:
        return [self.ffmpeg_path, "-y", "-hide_banner", "-nostdin", *args]

    async def run(self, args: list[str], stage: str) -> None:
        """Run FFmpeg with ``args``.

        Raises:
            EncodeError: the process could not be started or exited non-zero.
        """
        cmd = self.build_command(args)
        logger.debug(f"[ENCODER] {stage}: {shlex.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"[ENCODER] {stage}: could not start {self.ffmpeg_path}: {e}")
            raise EncodeError(stage) from e

        tail: deque[str] = deque(maxlen=self.log_tail_lines)
        stderr = cast(asyncio.StreamReader, proc.stderr)
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        pending = ""
        try:
            while True:
                chunk = await stderr.read(STDERR_CHUNK_SIZE)
                if not chunk:
                    break
                lines = _LINE_BREAK.split(pending + decoder.decode(chunk))
                pending = lines.pop()
                for line in lines:
                    self._log_line(line, tail)
            self._log_line(pending + decoder.decode(b"", final=True), tail)
            returncode = await proc.wait()
        finally:
            if proc.returncode is None:
                logger.warning(f"[ENCODER] {stage}: killing ffmpeg (pid {proc.pid})")
                proc.kill()
                await proc.wait()

        if returncode != 0:
            stderr_tail = "\n".join(tail)
            logger.error(f"[ENCODER] {stage} failed (code {returncode}):\n{stderr_tail}")
            raise EncodeError(stage, returncode, stderr_tail)

        logger.debug(f"[ENCODER] {stage} finished")

    @staticmethod
    def _log_line(line: str, tail: deque[str]) -> None:
        line = line.rstrip()
        if not line:
            return
        tail.append(line)
        logger.debug(f"[FFMPEG] {line}")
