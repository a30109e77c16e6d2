"""
Outermost safety net: no exception escapes a request.
"""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .error_handler import server_error_response


class RecoverMiddleware(BaseHTTPMiddleware):
    """Convert any unhandled exception into a logged 500 and close the connection."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            response = server_error_response(request, exc)
            response.headers["Connection"] = "close"
            return response
