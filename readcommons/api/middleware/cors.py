"""
CORS Configuration

Cross-origin access is granted only to explicitly trusted origins.
"""

from typing import List, Optional
from dataclasses import dataclass, field
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


@dataclass
class CORSConfig:
    """CORS configuration settings."""

    # Exact origins allowed to call the API from a browser
    trusted_origins: List[str] = field(default_factory=list)

    allowed_methods: List[str] = field(default_factory=lambda: [
        "GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"
    ])

    allowed_headers: List[str] = field(default_factory=lambda: [
        "Accept",
        "Content-Type",
        "Authorization",
        "X-Request-ID",
    ])

    expose_headers: List[str] = field(default_factory=lambda: [
        "X-Request-ID",
        "Location",
    ])

    # Max age for preflight cache (in seconds)
    max_age: int = 60


def parse_trusted_origins(raw: str) -> List[str]:
    """Split a space- or comma-separated origin list."""
    return [origin.strip() for origin in raw.replace(",", " ").split() if origin.strip()]


def setup_cors(app: FastAPI, config: Optional[CORSConfig] = None) -> bool:
    """
    Configure CORS middleware for the FastAPI application.

    Args:
        app: FastAPI application instance.
        config: CORS configuration.

    Returns:
        True if the middleware was installed (at least one trusted origin).
    """
    config = config or CORSConfig()
    if not config.trusted_origins:
        return False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.trusted_origins,
        allow_credentials=False,
        allow_methods=config.allowed_methods,
        allow_headers=config.allowed_headers,
        expose_headers=config.expose_headers,
        max_age=config.max_age,
    )
    return True
