"""
FastAPI application layer for the pitchperfect audio pipeline.

This module exposes HTTP endpoints to look up source metadata and to fetch,
pitch-shift and time-stretch a source's audio track.
"""
