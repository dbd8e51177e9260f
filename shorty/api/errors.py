"""Translation of service exceptions into HTTP error responses."""

import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from shorty.core.config import settings
from shorty.repositories.base import RepositoryError
from shorty.services.exceptions import (
    ConflictError,
    InvalidInputError,
    LinkNotFoundError,
    SlugGenerationError,
)


async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return JSONResponse(status_code=400, content={"detail": exc.message, "errors": exc.errors})


async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def not_found_handler(request: Request, exc: LinkNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def slug_generation_handler(request: Request, exc: SlugGenerationError):
    logger.error("Short code generation exhausted", attempts=exc.attempts)
    return JSONResponse(
        status_code=503,
        content={"detail": "Could not allocate a short code, try again later"},
        headers={"Retry-After": "1"},
    )


async def repository_error_handler(request: Request, exc: RepositoryError):
    logger.error("Repository error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Database error occurred"})


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed information."""
    logger.warning(f"Request validation error: {exc}")
    return JSONResponse(
        status_code=422,
        content={"detail": "Validation error", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError):
    # ctx may carry exception instances that JSONResponse cannot encode
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to catch and log all unhandled exceptions."""
    error_id = f"error-{time.time()}"

    logger.opt(exception=exc).error(
        f"Unhandled exception in {request.method} {request.url.path}",
        error_id=error_id,
        url=str(request.url),
        query_params=dict(request.query_params),
        client_host=request.client.host if request.client else None,
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error occurred",
            "error_id": error_id,
            "message": str(exc) if settings.DEBUG else "Internal server error",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvalidInputError, invalid_input_handler)
    app.add_exception_handler(ConflictError, conflict_handler)
    app.add_exception_handler(LinkNotFoundError, not_found_handler)
    app.add_exception_handler(SlugGenerationError, slug_generation_handler)
    app.add_exception_handler(RepositoryError, repository_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
