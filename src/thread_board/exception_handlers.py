"""
Exception handlers that turn failures into JSON error bodies.
"""
import logging
from typing import List

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.routing import Match

from thread_board.errors import BoardError

logger = logging.getLogger(__name__)


def _allowed_methods(request: Request) -> List[str]:
    methods = set()
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match != Match.NONE:
            methods.update(getattr(route, "methods", None) or ())
    return sorted(methods)


async def board_exception_handler(request: Request, exc: BoardError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__}: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "message": exc.message,
            "detail": exc.detail,
            "status_code": exc.status_code,
            **exc.context,
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        allowed = _allowed_methods(request)
        logger.debug("Method %s not allowed on %s", request.method, request.url.path)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "Method Not Allowed",
                "message": "Method Not Allowed",
                "allowedMethods": allowed,
            },
            headers={"Allow": ", ".join(allowed)},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "message": exc.detail,
            "status_code": exc.status_code,
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.warning(
        f"Invalid request body: {errors}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid request body",
            "message": "Invalid request body",
            "detail": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in errors
            ],
            "status_code": status.HTTP_400_BAD_REQUEST,
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred",
            "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
        },
    )
