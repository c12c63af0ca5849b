"""
Audio processing endpoint.
"""

import logging
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from ..models.audio import ProcessAudioRequest
from ..errors import error_response, pipeline_error_response
from ..dependencies.session import get_settings, get_orchestrator
from pitchperfect.settings import Settings
from pitchperfect.services.base import AudioPipelineError
from pitchperfect.pipeline.audio.orchestrator import AudioPipelineOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()

AUDIO_ERROR_MESSAGES = {
    400: "Invalid audio processing parameters",
    404: "Video not available",
    408: "Processing timeout",
    500: "Failed to process audio",
}

OUTPUT_FILENAME = "processed_audio.mp3"


@router.post("", response_class=FileResponse)
async def process_audio(
    request: ProcessAudioRequest,
    settings: Settings = Depends(get_settings),
    orchestrator: AudioPipelineOrchestrator = Depends(get_orchestrator)
):
    """
    Fetch a source's audio, apply pitch/tempo changes and return the MP3.

    Errors are reported once, as JSON, before any audio byte is sent; the
    temp files are released after the grace delay once the file has gone out.
    """
    logger.info(f"Processing: {request.video_id}, pitch: {request.pitch_shift}, speed: {request.playback_speed}")

    try:
        transform_request = orchestrator.validate(request.video_id, request.pitch_shift, request.playback_speed)
        processed = await orchestrator.process(transform_request)
    except AudioPipelineError as e:
        return pipeline_error_response(e, AUDIO_ERROR_MESSAGES, settings.expose_error_details)
    except Exception as e:
        logger.exception(f"Error processing audio for {request.video_id}")
        return error_response(500, AUDIO_ERROR_MESSAGES[500], "internal_error",
                              details=str(e), expose=settings.expose_error_details)

    return FileResponse(
        processed.session.output_path,
        media_type="audio/mpeg",
        filename=OUTPUT_FILENAME,
        headers={"Cache-Control": "no-cache"},
        background=BackgroundTask(orchestrator.schedule_release, processed),
    )
