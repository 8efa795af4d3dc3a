import logging

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.request_id import request_id_ctx
from app.core.result import Err, ErrorKind


logger = logging.getLogger(__name__)

INVALID_FIELDS = "Invalid fields"

ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.EXPIRED: status.HTTP_410_GONE,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.DEPENDENCY: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
}


def _get_request_id(request: Request) -> str:
    header_request_id = request.headers.get("X-Request-ID")
    if header_request_id:
        return header_request_id
    return request_id_ctx.get() or ""


def error_response(request: Request, err: Err) -> JSONResponse:
    """Render a service error as `{"error": ...}`"""
    headers = {"Retry-After": str(err.retry_after)} if err.retry_after else None
    return JSONResponse(
        status_code=ERROR_STATUS[err.kind],
        content={
            "error": err.detail,
            "code": err.kind.name,
            "request_id": _get_request_id(request),
        },
        headers=headers,
    )


def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "code": "HTTP_EXCEPTION",
            "request_id": _get_request_id(request),
        },
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": INVALID_FIELDS,
            "detail": jsonable_encoder(exc.errors()),
            "code": "VALIDATION_ERROR",
            "request_id": _get_request_id(request),
        },
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "error": "Too many requests. Please try again later.",
            "code": "RATE_LIMIT_EXCEEDED",
            "request_id": _get_request_id(request),
        },
    )


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"request_id": _get_request_id(request)})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "code": "INTERNAL_ERROR",
            "request_id": _get_request_id(request),
        },
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
