"""
API models for the audio processing endpoint.
"""

from pydantic import BaseModel, ConfigDict, Field

from pitchperfect.pipeline.audio.types import (
    SOURCE_ID_PATTERN, MIN_PITCH_SHIFT, MAX_PITCH_SHIFT, MIN_SPEED, MAX_SPEED,
)


class ProcessAudioRequest(BaseModel):
    """Request to fetch a source's audio and re-encode it with pitch/tempo changes."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "videoId": "dQw4w9WgXcQ",
                "pitchShift": -2,
                "playbackSpeed": 0.75
            }
        },
    )

    video_id: str = Field(..., alias="videoId", pattern=SOURCE_ID_PATTERN,
                          description="11-character source id")
    pitch_shift: int = Field(0, alias="pitchShift", ge=MIN_PITCH_SHIFT, le=MAX_PITCH_SHIFT,
                             description="Pitch shift in semitones")
    playback_speed: float = Field(1.0, alias="playbackSpeed", ge=MIN_SPEED, le=MAX_SPEED,
                                  description="Playback speed ratio")
