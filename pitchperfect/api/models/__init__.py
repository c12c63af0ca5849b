"""
Pydantic models for API request/response schemas.

These models define the shape of data exchanged with clients. They are kept
separate from the pipeline's internal types to maintain clear API boundaries.
"""
