"""
Error handling for the WasteWatch API.

Every failure leaves the API as the same JSON envelope,
``{"success": false, "message": "..."}``, with a status code reflecting the
kind of error.
"""
import hashlib
import logging
import sys
import time
import traceback
from typing import Any, Dict, List, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import DataError, IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from wastewatch.services.errors import ServiceError

logger = logging.getLogger(__name__)


class ErrorDetail:
    """Standardized error payload."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_type: str,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.error_type = error_type
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        error_dict: Dict[str, Any] = {
            "success": False,
            "message": self.message,
        }
        if self.details:
            error_dict["errors"] = self.details
        return error_dict

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


def _error_id(request: Request) -> str:
    return hashlib.md5(f"{time.time()}-{request.url.path}".encode()).hexdigest()[:8]


def format_stack_trace(stack_trace: str) -> str:
    """Indent the stack trace so it stands out in the log."""
    lines = stack_trace.split("\n")
    return "\n".join(f"  │ {line}" for line in lines if line.strip())


def format_validation_errors(errors: List[Dict[str, Any]]) -> str:
    """
    Build a human-readable message from pydantic error entries.

    The request location prefix ("body", "query", "path") is dropped so the
    message names the field as the client sent it.
    """
    messages = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header", "form"):
            loc = loc[1:]
        field = ".".join(loc)
        msg = error.get("msg", "Invalid value")
        messages.append(f"{field}: {msg}" if field else msg)
    return "; ".join(messages) or "Invalid request"


def _serializable_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
        for e in errors
    ]


async def error_handler_middleware(request: Request, call_next):
    """
    Catch exceptions no handler claimed and answer with a 500 envelope.
    """
    try:
        return await call_next(request)
    except Exception as exc:
        return _unexpected_error_response(request, exc)


def _unexpected_error_response(request: Request, exc: Exception) -> JSONResponse:
    stack_trace = "".join(traceback.format_exception(*sys.exc_info()))
    error_msg = (
        f"❌ EXC#{_error_id(request)}: {request.method} {request.url.path} - "
        f"{exc.__class__.__name__}: {exc}"
    )
    logger.error(
        f"{error_msg}\n╭─ Stack Trace ─────────────────────────╮\n"
        f"{format_stack_trace(stack_trace)}\n╰───────────────────────────────────────╯"
    )
    return ErrorDetail(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message=str(exc) or "Server Error",
        error_type=exc.__class__.__name__,
    ).to_response()


def setup_error_handlers(app):
    """
    Register the exception handlers of the application.
    """

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        """Handler for domain errors raised by the services."""
        if exc.status_code >= 500:
            logger.error(f"❌ SVC#{_error_id(request)}: {request.method} {request.url.path} - {exc.message}")
        else:
            logger.warning(f"⚠️ SVC#{_error_id(request)}: {exc.status_code} - {exc.message}")
        return ErrorDetail(
            status_code=exc.status_code,
            message=exc.message,
            error_type=exc.__class__.__name__,
        ).to_response()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handler for HTTP exceptions."""
        message = str(exc.detail)
        if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
            message = "Route not found"

        if exc.status_code >= 500:
            logger.error(f"❌ HTTP#{_error_id(request)}: {request.method} {request.url.path} - {exc.status_code} - {message}")
        else:
            logger.warning(f"⚠️ HTTP#{_error_id(request)}: {exc.status_code} - {message}")

        response = ErrorDetail(
            status_code=exc.status_code,
            message=message,
            error_type="http_exception",
        ).to_response()
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Handler for malformed requests (missing or mistyped parameters)."""
        errors = exc.errors()
        message = format_validation_errors(errors)
        logger.warning(f"⚠️ VALID#{_error_id(request)}: {request.method} {request.url.path} - {message}")
        return ErrorDetail(
            status_code=status.HTTP_400_BAD_REQUEST,
            message=message,
            error_type="validation_error",
            details=_serializable_errors(errors),
        ).to_response()

    @app.exception_handler(ValidationError)
    async def schema_validation_handler(request: Request, exc: ValidationError):
        """Handler for schema validation failures raised inside the services."""
        errors = exc.errors()
        message = format_validation_errors(errors)
        logger.warning(f"⚠️ VALID#{_error_id(request)}: {request.method} {request.url.path} - {message}")
        return ErrorDetail(
            status_code=status.HTTP_400_BAD_REQUEST,
            message=message,
            error_type="validation_error",
            details=_serializable_errors(errors),
        ).to_response()

    @app.exception_handler(IntegrityError)
    @app.exception_handler(DataError)
    async def database_validation_handler(request: Request, exc: Exception):
        """Handler for rows rejected by database constraints."""
        origin = getattr(exc, "orig", None) or exc
        logger.warning(f"⚠️ DB#{_error_id(request)}: {request.method} {request.url.path} - {origin}")
        return ErrorDetail(
            status_code=status.HTTP_400_BAD_REQUEST,
            message=str(origin),
            error_type="database_validation_error",
        ).to_response()
