"""
FastAPI application entry point.

Wires the routers, CORS and error handlers, and owns the process-wide
collaborators (scheduler, session manager, adapters, orchestrator) for the
lifetime of the server.
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from .routers import health, video, audio
from .errors import register_exception_handlers
from pitchperfect.settings import Settings, load_settings
from pitchperfect.pipeline.audio.session import SessionManager
from pitchperfect.pipeline.audio.reaper import TempFileReaper
from pitchperfect.pipeline.audio.orchestrator import AudioPipelineOrchestrator
from pitchperfect.services.youtube import YouTubeSource
from pitchperfect.services.ffmpeg import FFmpegTranscoder, resolve_ffmpeg_binary
from pitchperfect.utils.scheduler import TaskScheduler

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Global application state
app_state = {}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Build the shared collaborators at startup and tear them down at shutdown.

    Shutdown cancels every pending timer, releases sessions still in flight
    and empties the temp directory.
    """
    settings: Settings = app.state.settings
    logger.info(f"Starting pitchperfect API ({settings.environment})")

    scheduler = TaskScheduler()
    scheduler.start()

    sessions = SessionManager(settings.temp_dir)
    sessions.ensure_temp_dir()

    reaper = TempFileReaper(settings.temp_dir, settings.max_file_age_s)
    reaper.sweep()
    scheduler.every(settings.reaper_interval_s, reaper.sweep, name="temp-reaper")

    source = YouTubeSource(user_agent=settings.user_agent, socket_timeout_s=settings.info_timeout_s)
    transcoder = FFmpegTranscoder(
        binary=resolve_ffmpeg_binary(settings.ffmpeg_candidates, production=settings.is_production),
        bitrate=settings.audio_bitrate,
        codec=settings.audio_codec,
        container=settings.output_format,
    )

    app_state.update(
        settings=settings,
        scheduler=scheduler,
        session_manager=sessions,
        reaper=reaper,
        source=source,
        transcoder=transcoder,
        orchestrator=AudioPipelineOrchestrator(settings, sessions, source, transcoder, scheduler),
    )
    logger.info(f"API ready, temp dir: {settings.temp_dir}")

    yield  # Server runs here

    logger.info("Starting graceful shutdown...")
    scheduler.shutdown()
    released = sessions.release_all()
    purged = reaper.purge()
    logger.info(f"Shutdown complete: released {released} sessions, removed {purged} temp files")
    app_state.clear()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Factory function to create and configure the FastAPI application.

    Passing explicit settings keeps tests away from the real config and temp dir.
    """
    settings = settings or load_settings()

    app = FastAPI(
        title="Pitch Perfect Practice API",
        description="Fetch a source's audio track and re-encode it with pitch and tempo changes",
        version=API_VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_exception_handlers(app)

    app.include_router(health.router, prefix="/api/health", tags=["health"])
    app.include_router(video.router, prefix="/api/video-info", tags=["video"])
    app.include_router(audio.router, prefix="/api/process-audio", tags=["audio"])

    @app.get("/")
    async def root():
        """Root endpoint with basic API information."""
        return {
            "name": "Pitch Perfect Practice API",
            "version": API_VERSION,
            "status": "operational",
            "endpoints": {
                "health": "/api/health",
                "video_info": "/api/video-info/{video_id}",
                "process_audio": "/api/process-audio",
                "docs": "/docs"
            }
        }

    return app


# Create the FastAPI app instance
app = create_app()
