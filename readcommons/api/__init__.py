"""
ReadCommons - FastAPI Backend.

REST API for a community of readers: books, reviews, reading lists and
comments behind bearer-token authentication.
"""

from .main import app, create_app, main
from .dependencies import (
    Settings,
    get_settings,
    get_service_container,
    ServiceContainer,
)
from .schemas import (
    BookCreate,
    BookUpdate,
    BookResponse,
    HealthResponse,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "get_service_container",
    "ServiceContainer",
    # Schemas
    "BookCreate",
    "BookUpdate",
    "BookResponse",
    "HealthResponse",
]
