"""
Error Handling for ReadCommons

Centralized error handling:
- Exception taxonomy mapped onto status codes
- ``{"error": ...}`` response bodies
- Server-side logging of anything unexpected
"""

from typing import Optional, Union

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...storage.errors import EditConflictError as StorageEditConflictError
from ...storage.errors import RecordNotFoundError, StorageError


SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"
NOT_FOUND_MESSAGE = "the requested resource could not be found"
EDIT_CONFLICT_MESSAGE = "unable to update the record due to an edit conflict, please try again"
RATE_LIMIT_MESSAGE = "rate limit exceeded"
INVALID_TOKEN_MESSAGE = "invalid or missing authentication token"
INVALID_CREDENTIALS_MESSAGE = "invalid authentication credentials"
AUTHENTICATION_REQUIRED_MESSAGE = "you must be authenticated to access this resource"
INACTIVE_ACCOUNT_MESSAGE = "your user account must be activated to access this resource"


ErrorBody = Union[str, dict[str, str]]


class ReadCommonsException(Exception):
    """Base exception for errors that map onto an HTTP response."""

    def __init__(
        self,
        message: ErrorBody,
        status_code: int = 500,
        headers: Optional[dict[str, str]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.headers = headers
        super().__init__(str(message))


class BadRequestError(ReadCommonsException):
    """Malformed, oversized or unparseable request."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class AuthenticationError(ReadCommonsException):
    """Missing, malformed or unknown credentials."""

    def __init__(self, message: str = INVALID_TOKEN_MESSAGE):
        super().__init__(
            message,
            status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InactiveAccountError(ReadCommonsException):
    def __init__(self):
        super().__init__(INACTIVE_ACCOUNT_MESSAGE, status.HTTP_403_FORBIDDEN)


class NotFoundError(ReadCommonsException):
    """Resource not found, or not visible to the caller."""

    def __init__(self):
        super().__init__(NOT_FOUND_MESSAGE, status.HTTP_404_NOT_FOUND)


class EditConflictError(ReadCommonsException):
    def __init__(self):
        super().__init__(EDIT_CONFLICT_MESSAGE, status.HTTP_409_CONFLICT)


class FailedValidationError(ReadCommonsException):
    """Field-level validation failures."""

    def __init__(self, errors: dict[str, str]):
        super().__init__(dict(errors), status.HTTP_422_UNPROCESSABLE_ENTITY)


class RateLimitError(ReadCommonsException):
    def __init__(self):
        super().__init__(RATE_LIMIT_MESSAGE, status.HTTP_429_TOO_MANY_REQUESTS)


def create_error_response(
    message: ErrorBody,
    status_code: int,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Create standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        headers=headers,
    )


def server_error_response(request: Request, exc: BaseException) -> JSONResponse:
    logger.opt(exception=exc).error(
        f"{type(exc).__name__}: {exc} [method={request.method} uri={request.url.path}]"
    )
    return create_error_response(SERVER_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)


def describe_validation_error(exc: RequestValidationError) -> str:
    """Turn a body-parsing failure into a client-facing sentence."""
    for error in exc.errors():
        kind = error.get("type", "")
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        if kind == "json_invalid":
            return "body contains badly-formed JSON"
        if kind == "extra_forbidden" and loc:
            return f'body contains unknown key "{loc[-1]}"'
        if kind == "missing" and not loc:
            return "body must not be empty"
        if loc:
            return f'body contains incorrect JSON type for "{".".join(loc)}"'
    return "body contains badly-formed JSON"


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(ReadCommonsException)
    async def readcommons_exception_handler(request: Request, exc: ReadCommonsException):
        return create_error_response(exc.message, exc.status_code, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return create_error_response(describe_validation_error(exc), status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return create_error_response(NOT_FOUND_MESSAGE, exc.status_code)
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            return create_error_response(
                f"the {request.method} method is not supported for this resource",
                exc.status_code,
                exc.headers,
            )
        return create_error_response(str(exc.detail), exc.status_code, exc.headers)

    @app.exception_handler(RecordNotFoundError)
    async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
        return create_error_response(NOT_FOUND_MESSAGE, status.HTTP_404_NOT_FOUND)

    @app.exception_handler(StorageEditConflictError)
    async def edit_conflict_handler(request: Request, exc: StorageEditConflictError):
        return create_error_response(EDIT_CONFLICT_MESSAGE, status.HTTP_409_CONFLICT)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        return server_error_response(request, exc)
