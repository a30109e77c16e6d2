"""
API middleware components.

Provides cross-cutting concerns for the API:
- Panic recovery
- Rate limiting
- Bearer-token authentication
- Error handling
- CORS configuration
- Request logging
"""

from .error_handler import (
    ReadCommonsException,
    BadRequestError,
    AuthenticationError,
    InactiveAccountError,
    NotFoundError,
    EditConflictError,
    FailedValidationError,
    RateLimitError,
    setup_exception_handlers,
    create_error_response,
)

from .recover import RecoverMiddleware

from .authenticate import (
    Anonymous,
    Authenticated,
    AuthState,
    AuthenticationMiddleware,
)

from .cors import (
    CORSConfig,
    parse_trusted_origins,
    setup_cors,
)

from .rate_limit import (
    RateLimitConfig,
    RateLimitState,
    InMemoryRateLimiter,
    RateLimitMiddleware,
    setup_rate_limiting,
)

from .logging import (
    LoggingConfig,
    StructuredLogFormatter,
    RequestLoggingMiddleware,
    setup_logging,
    get_request_id,
)


__all__ = [
    # Error handling
    "ReadCommonsException",
    "BadRequestError",
    "AuthenticationError",
    "InactiveAccountError",
    "NotFoundError",
    "EditConflictError",
    "FailedValidationError",
    "RateLimitError",
    "setup_exception_handlers",
    "create_error_response",
    # Recovery
    "RecoverMiddleware",
    # Authentication
    "Anonymous",
    "Authenticated",
    "AuthState",
    "AuthenticationMiddleware",
    # CORS
    "CORSConfig",
    "parse_trusted_origins",
    "setup_cors",
    # Rate limiting
    "RateLimitConfig",
    "RateLimitState",
    "InMemoryRateLimiter",
    "RateLimitMiddleware",
    "setup_rate_limiting",
    # Logging
    "LoggingConfig",
    "StructuredLogFormatter",
    "RequestLoggingMiddleware",
    "setup_logging",
    "get_request_id",
]
