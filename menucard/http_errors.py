import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from menucard.errors import (
    ConfigurationError,
    Conflict,
    MalformedUpstreamResponse,
    MenuCardError,
    NotFound,
    UpstreamUnavailable,
)

log = logging.getLogger(__name__)

SEARCH_PATH_PREFIX = "/search"


def _base_payload(error: str, message: str, request: Request, detail: Any = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error": error,
        "message": message,
        "path": request.url.path,
        "method": request.method,
    }

    if detail is not None:
        payload["detail"] = detail

    return payload


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Raised when Pydantic/FastAPI request body/query/path validation fails.
    """
    log.info("422 validation_error at %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=422,
        content=_base_payload(
            error="validation_error",
            message="The request failed validation.",
            request=request,
            detail=jsonable_encoder(exc.errors()),  # list of {'loc':..., 'msg':..., 'type':...}
        ),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handles explicit HTTPException (404, 401, 400, etc.) raised by routes or dependencies.
    """
    # Avoid double-logging 404 noise at ERROR level
    if exc.status_code >= 500:
        log.error("HTTP %s at %s %s: %s", exc.status_code, request.method, request.url.path, exc.detail)
    else:
        log.warning("HTTP %s at %s %s: %s", exc.status_code, request.method, request.url.path, exc.detail)

    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    detail = None if isinstance(exc.detail, str) else exc.detail

    return JSONResponse(
        status_code=exc.status_code,
        content=_base_payload(error="http_error", message=str(message), request=request, detail=detail),
    )


async def menucard_exception_handler(request: Request, exc: MenuCardError):
    """
    Maps the service error taxonomy onto HTTP. A failed search answers 503
    `search_unavailable`, never an empty result list.
    """
    detail: Any = None
    if isinstance(exc, NotFound):
        status, error = 404, "not_found"
        detail = {"kind": exc.kind, "key": exc.key}
    elif isinstance(exc, Conflict):
        status, error = 409, "conflict"
    elif isinstance(exc, UpstreamUnavailable):
        status = 503
        error = "search_unavailable" if request.url.path.startswith(SEARCH_PATH_PREFIX) else "upstream_unavailable"
        detail = {"attempted": exc.attempted} if exc.attempted else None
    elif isinstance(exc, MalformedUpstreamResponse):
        status, error = 502, "malformed_upstream_response"
    elif isinstance(exc, ConfigurationError):
        status, error = 500, "configuration_error"
    else:
        status, error = 500, "internal_server_error"

    if status >= 500:
        log.error("%s at %s %s: %s", error, request.method, request.url.path, exc)
    else:
        log.warning("%s at %s %s: %s", error, request.method, request.url.path, exc)

    return JSONResponse(
        status_code=status,
        content=_base_payload(error=error, message=str(exc), request=request, detail=detail),
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """
    Last-resort handler for any unhandled exceptions. Returns a 500 without leaking internals.
    """
    log.exception("Unhandled error at %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=_base_payload(
            error="internal_server_error",
            message="An unexpected error occurred.",
            request=request,
            # Do NOT include internal stack traces in the response.
        ),
    )
