"""
Centralized exception handling for the Marketplace API.

This module provides:
- Base APIException class extending FastAPI's HTTPException.
- Domain-specific exceptions with appropriate status codes and `X-Error` headers.
- `handle()` which normalizes raw exceptions (DB, Redis, Pydantic) into API exceptions.
- Exception handlers that render every failure in the response envelope.

Usage:
    - Raise specific exceptions in route handlers or workflow functions.
    - Wrap route bodies with `try/except Exception as e: exceptions.handle(e)`.
    - Register `registerHandlers(app)` on every sub-application.
"""

from traceback import format_exception
from logging import getLogger
from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError
from psycopg2.errorcodes import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION
from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy import Column


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------
def formatIntegrityError(e: IntegrityError) -> str:
    """
    Format a database integrity error into a user-friendly message.
    """
    diag = getattr(e.orig, "diag", None)
    errorMessage = getattr(diag, "message_detail", None)
    if not errorMessage:
        return str(e.orig)
    errorMessage = errorMessage.translate({ord(i): None for i in '\\"\\.\\(\\)'})
    errorMessage = errorMessage.replace("Key ", "For ")
    errorMessage = errorMessage.replace("=", " value ")
    return errorMessage


def integrityErrorCode(e: IntegrityError) -> str | None:
    """
    Resolve the SQLSTATE of an integrity error.

    PostgreSQL reports it through psycopg2 diagnostics; other drivers only
    carry the message, which is matched for the unique constraint case.
    """
    diag = getattr(e.orig, "diag", None)
    if diag is not None:
        return diag.sqlstate
    if "UNIQUE" in str(e.orig).upper():
        return UNIQUE_VIOLATION
    if "FOREIGN KEY" in str(e.orig).upper():
        return FOREIGN_KEY_VIOLATION
    return None


def logException(e: Exception) -> None:
    """Log an exception with traceback using Uvicorn's error logger."""
    detail = str(format_exception(type(e), e, e.__traceback__))
    logger = getLogger("uvicorn.error")
    logger.error(detail)


# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------
class APIException(HTTPException):
    """
    Base class for all application-specific exceptions.

    Provides default handling of status_code, detail, and headers.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None
    headers = None

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("status_code", self.status_code)
        kwargs.setdefault("detail", self.detail)
        kwargs.setdefault("headers", self.headers)
        super().__init__(*args, **kwargs)


# ---------------------------------------------------------------------------
# Exception handling entrypoint
# ---------------------------------------------------------------------------
def handle(e: Exception):
    """
    Normalize and re-raise exceptions as API-friendly errors.

    Converts raw exceptions from DB, Pydantic, Redis, etc. into
    corresponding APIException subclasses. Anything unknown is logged
    with its traceback and surfaced as `UnexpectedError`.
    """
    if isinstance(e, IntegrityError):
        sqlState = integrityErrorCode(e)
        if sqlState == UNIQUE_VIOLATION:
            raise UniqueViolation(formatIntegrityError(e))
        if sqlState == FOREIGN_KEY_VIOLATION:
            raise ForeignKeyViolation(formatIntegrityError(e))
    if isinstance(e, ValidationError):
        raise RequestValidation(detail=formatValidationErrors(e.errors()))
    if isinstance(e, APIException):
        raise e
    if isinstance(e, RedisError):
        raise RedisDBError(detail=str(e))

    logException(e)
    raise UnexpectedError() from e


# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------
def formatValidationErrors(errors: list) -> str:
    """
    Join Pydantic validation errors into one readable sentence.

    Example:
        >>> formatValidationErrors([{"loc": ("body", "otp"), "msg": "Field required"}])
        'otp: Field required'
    """
    messages = []
    for error in errors:
        location = [str(x) for x in error.get("loc", ()) if x not in ("body", "query")]
        field = ".".join(location)
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return "; ".join(messages)


def errorResponse(statusCode: int, message, headers: dict | None = None):
    return JSONResponse(
        status_code=statusCode,
        content={"data": None, "Status": {"Code": statusCode, "Message": str(message)}},
        headers=headers,
    )


async def httpExceptionHandler(request: Request, e: StarletteHTTPException):
    return errorResponse(e.status_code, e.detail, e.headers)


async def requestValidationHandler(request: Request, e: RequestValidationError):
    error = RequestValidation(detail=formatValidationErrors(e.errors()))
    return errorResponse(error.status_code, error.detail, error.headers)


def registerHandlers(app: FastAPI) -> None:
    """Render every HTTP and request validation error of `app` in the envelope."""
    app.add_exception_handler(StarletteHTTPException, httpExceptionHandler)
    app.add_exception_handler(RequestValidationError, requestValidationHandler)


# ---------------------------------------------------------------------------
# Exception Classes
# ---------------------------------------------------------------------------
class RequestValidation(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "RequestValidation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class UniqueViolation(APIException):
    status_code = status.HTTP_409_CONFLICT
    headers = {"X-Error": "UniqueViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class ForeignKeyViolation(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "ForeignKeyViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class UnknownValue(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "UnknownValue"}

    def __init__(self, column_name: Column | str):
        detail = f"Invalid {getattr(column_name, 'name', column_name)} is provided"
        super().__init__(detail=detail)


class InvalidIdentifier(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Invalid ID provided"
    headers = {"X-Error": "InvalidIdentifier"}


class PartialNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "PartialNotFound"}

    def __init__(self, orm_class):
        detail = f"One or more {orm_class.__name__.lower()}s not found"
        super().__init__(detail=detail)


class NoPermission(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "This user has no permission to perform this action"
    headers = {"X-Error": "NoPermission"}


class DuplicateAssignment(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "DuplicateAssignment"}

    def __init__(self, count: int | None = None):
        if count is None:
            detail = "Order already assigned to this rider"
        else:
            detail = f"{count} order(s) already assigned to this rider"
        super().__init__(detail=detail)


class NoOpReassignment(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Order is already assigned to this rider"
    headers = {"X-Error": "NoOpReassignment"}


class DuplicateReview(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "This delivery has already been reviewed"
    headers = {"X-Error": "DuplicateReview"}


class InvalidState(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InvalidState"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class InvalidStateTransition(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InvalidStateTransition"}

    def __init__(self, old_state, new_state):
        detail = (
            f"Invalid status transition from {getattr(old_state, 'name', old_state)}"
            f" to {getattr(new_state, 'name', new_state)}"
        )
        super().__init__(detail=detail)


class MissingParameter(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "MissingParameter"}

    def __init__(self, name: str):
        detail = f"{name} is required"
        super().__init__(detail=detail)


class EmptyParameter(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "EmptyParameter"}

    def __init__(self, name: str):
        detail = f"The {name} must not be empty"
        super().__init__(detail=detail)


class InvalidOTP(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid OTP"
    headers = {"X-Error": "InvalidOTP"}


class InvalidImage(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid image provided"
    headers = {"X-Error": "InvalidImage"}


class LockAcquireTimeout(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"X-Error": "LockAcquireTimeout"}
    detail = "Lock acquisition timed out"


class RedisDBError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"X-Error": "RedisAPIError"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class UnexpectedError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    headers = {"X-Error": "UnexpectedError"}
    detail = "An unexpected error occurred"
