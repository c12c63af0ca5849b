import os
import shutil
import logging
import subprocess
import time
from pathlib import Path
from typing import List, Optional, Sequence

from .base import TransformFailed, TransformTimeout
from pitchperfect.pipeline.audio.types import FilterChain
from pitchperfect.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 2000


def resolve_ffmpeg_binary(candidates: Sequence[str] = (), production: bool = False) -> str:
    """In production prefer the first existing candidate path, then PATH, then the bare name."""
    if production:
        for candidate in candidates:
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                logger.info(f"FFmpeg found at: {candidate}")
                return candidate
    found = shutil.which("ffmpeg")
    if found:
        logger.info(f"FFmpeg found at: {found}")
        return found
    logger.warning("FFmpeg not found on PATH, relying on bare 'ffmpeg'")
    return "ffmpeg"


class FFmpegTranscoder:
    """
    Runs ffmpeg as a supervised subprocess.

    The process is polled so that either its own timeout or the caller's
    cancellation token can SIGKILL it mid-run.
    """

    def __init__(self, binary: str = "ffmpeg", bitrate: str = "128k", codec: str = "libmp3lame",
                 container: str = "mp3", poll_interval_s: float = 0.25):
        self.binary = binary
        self.bitrate = bitrate
        self.codec = codec
        self.container = container
        self.poll_interval_s = poll_interval_s

    def build_command(self, input_path: Path, output_path: Path, filters: FilterChain) -> List[str]:
        command = [self.binary, "-hide_banner", "-loglevel", "error", "-y", "-i", str(input_path), "-vn"]
        if filters:
            command += ["-af", filters.render()]
        command += ["-c:a", self.codec, "-b:a", self.bitrate, "-f", self.container, str(output_path)]
        return command

    def transform(self, input_path: Path, output_path: Path, filters: FilterChain,
                  timeout_s: float = 60, token: Optional[CancellationToken] = None) -> Path:
        """
        Encode input_path to output_path through the filter chain.

        On failure output_path may be partial; the caller owns cleanup.
        """
        command = self.build_command(input_path, output_path, filters)
        logger.info(f"Running ffmpeg: {' '.join(command)}")

        try:
            process = subprocess.Popen(command, stdin=subprocess.DEVNULL,
                                       stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
        except OSError as e:
            raise TransformFailed(f"Processing init failed: {e}") from e

        deadline = time.monotonic() + timeout_s
        while True:
            try:
                _, stderr = process.communicate(timeout=self.poll_interval_s)
                break
            except subprocess.TimeoutExpired:
                if time.monotonic() >= deadline or (token is not None and token.cancelled):
                    process.kill()
                    process.communicate()
                    logger.error(f"ffmpeg killed after timeout/cancel (pid {process.pid})")
                    raise TransformTimeout("Processing timeout")

        if process.returncode != 0:
            message = (stderr or b"").decode("utf-8", errors="ignore").strip()[-STDERR_TAIL_CHARS:]
            raise TransformFailed(f"Processing failed (exit {process.returncode}): {message}")
        return Path(output_path)
