"""
FastAPI dependency functions for the collaborators built in the app lifespan.

Everything lives in `app_state` (see main.py); tests swap any of these out
through `app.dependency_overrides` when needed.
"""

from pitchperfect.settings import Settings
from pitchperfect.pipeline.audio.session import SessionManager
from pitchperfect.pipeline.audio.orchestrator import AudioPipelineOrchestrator
from pitchperfect.services.youtube import YouTubeSource


def _state(key: str):
    from ..main import app_state
    return app_state[key]


def get_settings() -> Settings:
    """FastAPI dependency to get the resolved settings."""
    return _state("settings")


def get_session_manager() -> SessionManager:
    """FastAPI dependency to get the session manager."""
    return _state("session_manager")


def get_source() -> YouTubeSource:
    """FastAPI dependency to get the retrieval adapter."""
    return _state("source")


def get_orchestrator() -> AudioPipelineOrchestrator:
    """FastAPI dependency to get the audio pipeline orchestrator."""
    return _state("orchestrator")
