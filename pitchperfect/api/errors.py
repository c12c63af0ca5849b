"""
Error responses and app-wide exception handlers.

Clients get a coarse category message; the raw error text is only attached
when the environment exposes details (never in production). The full error
is always logged server-side.
"""

import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .models.common import APIError
from pitchperfect.services.base import AudioPipelineError

logger = logging.getLogger(__name__)


def _expose_details(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.expose_error_details)


def error_response(status_code: int, message: str, error_code: str,
                   details: Optional[str] = None, expose: bool = False) -> JSONResponse:
    body = APIError(error=message, error_code=error_code, details=details if expose else None)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


def pipeline_error_response(exc: AudioPipelineError, messages: Dict[int, str], expose: bool) -> JSONResponse:
    """Map a typed pipeline failure to its status and the endpoint's wording for that status."""
    status_code = exc.status_code
    message = messages.get(status_code, messages[500])
    return error_response(status_code, message, exc.error_code, details=str(exc), expose=expose)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(".".join(str(p) for p in err.get("loc", ())) for err in exc.errors())
    logger.info(f"Rejected {request.method} {request.url.path}: invalid {fields}")
    return error_response(400, f"Invalid request parameters: {fields}", "invalid_request",
                          details=str(exc.errors()), expose=_expose_details(request))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return error_response(404, "Route not found", "route_not_found")
    return error_response(exc.status_code, str(exc.detail), "http_error")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return error_response(500, "Internal server error", "internal_error",
                          details=str(exc), expose=_expose_details(request))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
