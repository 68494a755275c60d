"""
Custom exception classes and error handling for Request Runner.

Two families live here:

- ``APIException`` and its subclasses, raised by the HTTP surface and
  turned into consistent ``{detail, error_code}`` responses.
- The execution taxonomy (script and transport errors). These are raised
  inside the sandbox and the transport and captured into structured
  response fields; they never escape ``execute_request``.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError


class ErrorResponse(BaseModel):
    """Standard error response format."""
    detail: str
    error_code: str | None = None


class APIException(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str | None = None
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(detail)


class ResourceNotFoundError(APIException):
    """Exception raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            detail=f"{resource_type} with id {resource_id} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND"
        )


class ConflictError(APIException):
    """Exception raised when an operation does not fit the resource's current state."""

    def __init__(self, detail: str):
        super().__init__(
            detail=detail,
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONFLICT"
        )


# Execution taxonomy

class ScriptError(Exception):
    """Base exception for user script failures."""


class ScriptValidationError(ScriptError):
    """Raised when a script uses a construct the sandbox does not allow."""


class PreScriptError(ScriptError):
    """
    A pre-request script failed; the request must not be sent.

    Attributes:
        output: Console output produced before the failure, if any
    """

    def __init__(self, message: str, output: str | None = None):
        self.output = output
        super().__init__(message)


class PostScriptError(ScriptError):
    """A post-response script failed; the response is still returned."""


class RunnerStateError(Exception):
    """Raised when a runner operation is not allowed in the current state."""


class TransportError(Exception):
    """
    A transport-level failure (DNS, connection, timeout, TLS).

    Attributes:
        code: Stable reason code, one of ``TransportErrorCode``
        status_text: Human-readable description shown in place of the HTTP reason
    """

    def __init__(self, code: str, status_text: str, message: str):
        self.code = code
        self.status_text = status_text
        self.message = message
        super().__init__(message)


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handler for custom API exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code}
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    errors = exc.errors()
    error_messages = []
    for error in errors:
        loc = " -> ".join(str(l) for l in error["loc"])
        msg = error["msg"]
        error_messages.append(f"{loc}: {msg}")

    detail = "; ".join(error_messages) if error_messages else "Validation error"

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": detail, "error_code": "VALIDATION_ERROR"}
    )


async def sqlalchemy_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """Handler for SQLAlchemy database errors."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error occurred", "error_code": "DATABASE_ERROR"}
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
