# confdesk/core/errors.py
"""
Error envelopes.

Every error leaves the API as {"success": false, "message": ...}. HTTPException
keeps its `detail` key as well so existing clients reading `detail` still work.
Unexpected exceptions are logged with their traceback and answered with a
generic 500 that does not echo the exception text.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from .workflow import InvalidTransition

logger = logging.getLogger("uvicorn.error")


class ApiError(Exception):
    """Domain error that carries extra envelope keys, e.g. existingSubmission."""

    def __init__(self, status_code: int, message: str, **extra):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.extra = extra


def envelope(message: str, **extra) -> dict:
    return {"success": False, "message": message, **extra}


async def _api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=envelope(exc.message, **jsonable_encoder(exc.extra)))


async def _http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("code") or "Request failed"
    else:
        message = str(detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(message, detail=jsonable_encoder(detail)),
        headers=getattr(exc, "headers", None),
    )


async def _validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=envelope("Validation error", detail=jsonable_encoder(exc.errors())),
    )


async def _transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(status_code=409, content=envelope(str(exc), currentStatus=exc.current.value))


async def _unhandled_handler(request: Request, exc: Exception):
    logger.exception("[error] %s %s failed", request.method, request.url.path)
    return JSONResponse(status_code=500, content=envelope("Internal server error"))


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)
    app.add_exception_handler(InvalidTransition, _transition_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
