"""
Source metadata endpoint.
"""

import asyncio
import functools
import logging
from fastapi import APIRouter, Depends, Path

from ..models.video import VideoInfo
from ..errors import error_response, pipeline_error_response
from ..dependencies.session import get_settings, get_source
from pitchperfect.settings import Settings
from pitchperfect.services.base import AudioPipelineError, SourceTooLong
from pitchperfect.services.youtube import YouTubeSource
from pitchperfect.pipeline.audio.types import SOURCE_ID_PATTERN
from pitchperfect.utils.cancellation import CancellationToken
from pitchperfect.utils.formatting import format_duration, format_count, truncate_description

logger = logging.getLogger(__name__)

router = APIRouter()

INFO_ERROR_MESSAGES = {
    400: "Invalid video ID format",
    404: "Video not found or is private/restricted",
    408: "Request timeout - please try again",
    500: "Failed to fetch video information",
}


@router.get("/{video_id}", response_model=VideoInfo)
async def get_video_info(
    video_id: str = Path(..., pattern=SOURCE_ID_PATTERN, description="11-character source id"),
    settings: Settings = Depends(get_settings),
    source: YouTubeSource = Depends(get_source)
):
    """
    Look up display metadata for a source.

    Sources longer than the configured limit are rejected with 400 so the
    client never tries to process them.
    """
    token = CancellationToken(timeout=settings.info_timeout_s)
    loop = asyncio.get_running_loop()
    try:
        # executor future, so the timeout fires even while yt-dlp is still blocked
        info = await asyncio.wait_for(
            loop.run_in_executor(None, functools.partial(source.fetch_info, video_id, token)),
            timeout=settings.info_timeout_s,
        )
    except asyncio.TimeoutError:
        token.cancel()
        logger.error(f"Metadata lookup for {video_id} timed out after {settings.info_timeout_s}s")
        return error_response(408, INFO_ERROR_MESSAGES[408], "timeout")
    except AudioPipelineError as e:
        logger.error(f"Error fetching video info for {video_id}: {e}", exc_info=True)
        return pipeline_error_response(e, INFO_ERROR_MESSAGES, settings.expose_error_details)

    if info.duration_seconds > settings.max_source_duration_s:
        limit_minutes = settings.max_source_duration_s // 60
        too_long = SourceTooLong(f"Video too long. Please use videos under {limit_minutes} minutes.")
        return error_response(400, str(too_long), too_long.error_code)

    return VideoInfo(
        title=info.title or "Unknown Title",
        duration=format_duration(info.duration_seconds),
        view_count=format_count(info.view_count),
        author=info.author or "Unknown Author",
        description=truncate_description(info.description, settings.description_max_chars),
        rawDurationSeconds=info.duration_seconds,
    )
