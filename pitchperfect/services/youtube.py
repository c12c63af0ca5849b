"""
Retrieval adapter around yt-dlp.

Metadata and audio both come from yt_dlp.YoutubeDL. Downloads are blocking
and meant to run on a worker thread; they stop at the next progress callback
once their cancellation token trips.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yt_dlp
from yt_dlp.utils import DownloadError, ExtractorError

from .base import (
    SourceInfo, InvalidRequest, FetchError, FetchTimeout, FetchUnavailable, FetchIOError,
)
from pitchperfect.pipeline.audio.types import is_valid_source_id
from pitchperfect.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={source_id}"

#substrings yt-dlp uses when a video is missing, private or otherwise restricted
UNAVAILABLE_MARKERS = (
    "video unavailable",
    "private video",
    "this video is not available",
    "this video has been removed",
    "sign in to confirm your age",
    "members-only",
    "not available in your country",
    "does not exist",
)


class FetchCancelled(Exception):
    """Raised from a progress hook to abort an in-flight download."""


def _is_unavailable(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in UNAVAILABLE_MARKERS)


def _is_local_io(exc: BaseException) -> bool:
    #network errors are OSErrors too; only disk-side failures count as IO
    return isinstance(exc, OSError) and not isinstance(exc, (ConnectionError, TimeoutError))


class YouTubeSource:
    def __init__(self, user_agent: str, socket_timeout_s: float = 15):
        self.user_agent = user_agent
        self.socket_timeout_s = socket_timeout_s

    def _base_options(self) -> Dict[str, Any]:
        return {
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "noplaylist": True,
            "retries": 0,
            "fragment_retries": 0,
            "extractor_retries": 0,
            "cachedir": False,
            "socket_timeout": self.socket_timeout_s,
            "http_headers": {"User-Agent": self.user_agent},
        }

    def _check_id(self, source_id: str) -> None:
        if not is_valid_source_id(source_id):
            raise InvalidRequest(f"Invalid video ID format: {source_id!r}")

    def _translate(self, exc: Exception, token: Optional[CancellationToken]) -> FetchError:
        if token is not None and token.cancelled:
            return FetchTimeout("Download timeout")
        message = str(exc)
        if isinstance(exc, (DownloadError, ExtractorError)):
            if _is_unavailable(message):
                return FetchUnavailable(f"Video unavailable: {message}")
            cause = getattr(exc, "exc_info", None)
            if cause and _is_local_io(cause[1]):
                return FetchIOError(f"File write failed: {cause[1]}")
            return FetchError(f"Download failed: {message}")
        if _is_local_io(exc):
            return FetchIOError(f"File write failed: {message}")
        return FetchError(f"Download failed: {message}")

    def fetch_info(self, source_id: str, token: Optional[CancellationToken] = None) -> SourceInfo:
        """Blocking metadata lookup."""
        self._check_id(source_id)
        try:
            with yt_dlp.YoutubeDL(self._base_options()) as ydl:
                info = ydl.extract_info(WATCH_URL.format(source_id=source_id), download=False)
        except Exception as e:
            raise self._translate(e, token) from e
        if token is not None and token.cancelled:
            raise FetchTimeout("Request timeout")

        info = info or {}
        return SourceInfo(
            source_id=source_id,
            title=info.get("title"),
            author=info.get("uploader") or info.get("channel"),
            duration_seconds=int(info.get("duration") or 0),
            view_count=int(info.get("view_count") or 0),
            description=info.get("description"),
        )

    def fetch_audio(self, source_id: str, destination: Path, token: CancellationToken) -> Path:
        """
        Stream the best audio-only format straight to `destination`.

        On failure the partially written file is left behind; the caller owns cleanup.
        """
        self._check_id(source_id)
        destination = Path(destination)

        def _progress(status: Dict[str, Any]) -> None:
            if token.cancelled:
                raise FetchCancelled(f"Download of {source_id} cancelled")

        options = {
            **self._base_options(),
            "format": "bestaudio/best",
            "outtmpl": str(destination),
            "nopart": True,
            "overwrites": True,
            "progress_hooks": [_progress],
        }

        logger.info(f"Fetching audio for {source_id} -> {destination.name}")
        try:
            with yt_dlp.YoutubeDL(options) as ydl:
                ydl.download([WATCH_URL.format(source_id=source_id)])
        except Exception as e:
            error = self._translate(e, token)
            logger.error(f"Fetch of {source_id} failed: {error}", exc_info=True)
            raise error from e

        if token.cancelled:
            raise FetchTimeout("Download timeout")
        if not destination.exists():
            raise FetchError(f"Download finished but {destination.name} was not written")
        return destination
