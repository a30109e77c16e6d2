"""
Bearer-token authentication.

Resolves the ``Authorization`` header to an explicit auth state stored on
``request.state.auth``. Route-level gates (activation, permissions) live in
``readcommons.api.dependencies``.
"""

from dataclasses import dataclass
from typing import Callable, Union

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ...security import validate_token_plaintext
from ...storage.errors import RecordNotFoundError
from ...storage.tokens import TokenScope
from ...storage.users import User
from ...validator import Validator
from .error_handler import INVALID_TOKEN_MESSAGE, create_error_response


@dataclass(frozen=True)
class Anonymous:
    """No credentials were presented."""

    @property
    def is_anonymous(self) -> bool:
        return True


@dataclass(frozen=True)
class Authenticated:
    """A live authentication token resolved to ``user``."""

    user: User

    @property
    def is_anonymous(self) -> bool:
        return False


AuthState = Union[Anonymous, Authenticated]

ANONYMOUS = Anonymous()


def invalid_token_response() -> Response:
    return create_error_response(
        INVALID_TOKEN_MESSAGE,
        401,
        headers={"WWW-Authenticate": "Bearer", "Vary": "Authorization"},
    )


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Attach an ``AuthState`` to every request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        header = request.headers.get("Authorization", "")

        if not header:
            request.state.auth = ANONYMOUS
        else:
            parts = header.split(" ")
            if len(parts) != 2 or parts[0] != "Bearer":
                return invalid_token_response()

            token = parts[1]
            v = Validator()
            validate_token_plaintext(v, token)
            if not v.is_empty():
                return invalid_token_response()

            tokens = request.app.state.services.tokens
            try:
                user = await tokens.get_user_for_token(TokenScope.AUTHENTICATION, token)
            except RecordNotFoundError:
                return invalid_token_response()

            request.state.auth = Authenticated(user)

        response = await call_next(request)
        response.headers.append("Vary", "Authorization")
        return response
