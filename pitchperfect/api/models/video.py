"""
API models for the video info endpoint.
"""

from pydantic import BaseModel, Field


class VideoInfo(BaseModel):
    """Display-ready metadata for one source."""
    title: str = Field(..., description="Source title")
    duration: str = Field(..., description="Duration as H:MM:SS or M:SS")
    view_count: str = Field(..., description="Abbreviated view count (K/M/B)")
    author: str = Field(..., description="Uploader name")
    description: str = Field(..., description="Truncated description")
    rawDurationSeconds: int = Field(..., description="Duration in seconds")

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Example Song",
                "duration": "3:32",
                "view_count": "1.5B",
                "author": "Example Artist",
                "description": "Official video for...",
                "rawDurationSeconds": 212
            }
        }
