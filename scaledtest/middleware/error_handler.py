"""Global exception handlers for consistent error responses."""

import traceback
from datetime import datetime, timezone
from typing import Any, Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.routing import compile_path

from scaledtest.exceptions import BaseAPIException, DependencyUnavailableError, ErrorSource
from scaledtest.schemas.errors import ErrorResponse
from scaledtest.utils.logger import get_logger, get_request_id

log = get_logger(__name__)

_HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"})

_HTTP_ERROR_CODES = {
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def _error_response(
    status_code: int,
    message: str,
    code: str,
    source: str = ErrorSource.API,
    details: Any = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    error_response = ErrorResponse(
        error=message,
        code=code,
        source=source,
        details=details,
        request_id=get_request_id(),
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json"),
        headers=headers,
    )


def allowed_methods(request: Request, allow_header: Optional[str] = None) -> list[str]:
    """Methods declared for the request path across every route, HEAD excluded.

    Starlette only reports the first matching route in ``Allow``, and included
    routers are not flat in ``app.router.routes``, so the path is matched
    against the generated OpenAPI paths as well.
    """
    methods = {m.strip().upper() for m in (allow_header or "").split(",") if m.strip()}
    path = request.scope.get("path", request.url.path)
    for template, operations in request.app.openapi().get("paths", {}).items():
        path_regex, _, _ = compile_path(template)
        if path_regex.match(path):
            methods.update(op.upper() for op in operations if op.upper() in _HTTP_METHODS)
    methods.discard("HEAD")
    return sorted(methods)


async def base_exception_handler(request: Request, exc: BaseAPIException) -> JSONResponse:
    """Handle custom API exceptions."""
    log_method = log.error if exc.status_code >= 500 else log.warning
    log_method(
        "api exception",
        error_code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        source=exc.source,
        details=exc.details,
    )
    return _error_response(
        exc.status_code,
        exc.message,
        exc.error_code,
        source=exc.source,
        details=exc.details,
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Handle Pydantic validation errors from request parsing."""
    log.warning("validation error", errors=exc.errors())

    # exc.errors() may contain non-serializable objects (e.g. ValueError in ctx),
    # so strip the ctx key which can hold raw exception instances.
    errors = [{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()]

    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Request validation failed",
        "VALIDATION_ERROR",
        details={"errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (unknown path, method not allowed) in the error envelope."""
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        methods = allowed_methods(request, (exc.headers or {}).get("Allow"))
        log.warning("method not allowed", method=request.method, path=request.url.path, allowed=methods)
        return _error_response(
            exc.status_code,
            f"Method not allowed. Supported methods: {', '.join(methods)}",
            "METHOD_NOT_ALLOWED",
            details={"allowed_methods": methods},
            headers={"Allow": ", ".join(methods)},
        )

    return _error_response(
        exc.status_code,
        str(exc.detail),
        _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        headers=getattr(exc, "headers", None),
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors that escaped the service layer."""
    log.error("database error", error=str(exc), traceback=traceback.format_exc())

    db_error = DependencyUnavailableError()
    return _error_response(
        db_error.status_code,
        db_error.message,
        db_error.error_code,
        source=db_error.source,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    log.critical(
        "unhandled exception",
        error_type=type(exc).__name__,
        error=str(exc),
        traceback=traceback.format_exc(),
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with FastAPI application."""
    app.add_exception_handler(BaseAPIException, base_exception_handler)  # type: ignore[invalid-argument-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[invalid-argument-type]
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)  # type: ignore[invalid-argument-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[invalid-argument-type]
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)  # type: ignore[invalid-argument-type]
    app.add_exception_handler(Exception, generic_exception_handler)  # type: ignore[invalid-argument-type]

    log.info("exception handlers registered")
