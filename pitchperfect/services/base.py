from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

#unified pipeline errors; status_code is the HTTP status the failure maps to
class AudioPipelineError(RuntimeError):
    status_code = 500
    error_code = "internal_error"

class InvalidRequest(AudioPipelineError):
    status_code = 400
    error_code = "invalid_request"

class SourceTooLong(InvalidRequest):
    error_code = "source_too_long"

class SourceUnavailable(AudioPipelineError):
    status_code = 404
    error_code = "source_unavailable"

class PipelineTimeout(AudioPipelineError):
    status_code = 408
    error_code = "timeout"

class ProcessingError(AudioPipelineError):
    status_code = 500
    error_code = "processing_failed"

#fetch adapter failures (FetchError itself is the catch-all "other")
class FetchError(AudioPipelineError):
    status_code = 500
    error_code = "fetch_failed"

class FetchTimeout(FetchError, PipelineTimeout):
    status_code = 408
    error_code = "fetch_timeout"

class FetchUnavailable(FetchError, SourceUnavailable):
    status_code = 404
    error_code = "source_unavailable"

class FetchIOError(FetchError):
    status_code = 500
    error_code = "fetch_io_error"

#transform adapter failures
class TransformError(ProcessingError): ...

class TransformTimeout(TransformError, PipelineTimeout):
    status_code = 408
    error_code = "transform_timeout"

class TransformFailed(TransformError):
    status_code = 500
    error_code = "processing_failed"


@dataclass(frozen=True)
class SourceInfo:
    """Metadata reported by the retrieval collaborator for one source id."""
    source_id: str
    title: Optional[str]
    author: Optional[str]
    duration_seconds: int
    view_count: int
    description: Optional[str]
