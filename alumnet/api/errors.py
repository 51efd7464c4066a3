from __future__ import annotations
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..services.errors import WorkflowError

log = logging.getLogger("alumnet.errors")


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("workflow_error", extra={"path": request.url.path, "error": exc.message})
    return _error(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.info("invalid_request", extra={"path": request.url.path, "errors": str(exc.errors())[:500]})
    return _error(400, "Invalid request")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("unhandled_error", extra={"path": request.url.path}, exc_info=exc)
    return _error(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    # every error body is {"error": "<message>"}
    app.add_exception_handler(WorkflowError, workflow_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
