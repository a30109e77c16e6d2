"""
Rate limiting middleware for API protection.

Per-client-IP token bucket:
- Each IP gets a bucket holding up to ``burst`` tokens, refilled at
  ``requests_per_second``
- A request spends one token; an empty bucket means 429
- A background sweep forgets IPs that have been idle for ``idle_window``

The limiter owns its lock, its sweep task and its clock, so tests can drive
it deterministically.
"""

import time
import asyncio
import logging
from typing import Callable, Dict, Optional
from dataclasses import dataclass, field

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .error_handler import RATE_LIMIT_MESSAGE, create_error_response

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    # Sustained requests per second per client
    requests_per_second: float = 2.0

    # Bucket capacity
    burst: int = 5

    # Enable rate limiting
    enabled: bool = True

    # How often idle clients are swept (seconds)
    sweep_interval: float = 60.0

    # Clients unseen for this long are forgotten (seconds)
    idle_window: float = 180.0

    # Honour proxy headers for the client IP (only behind a trusted proxy)
    trust_proxy_headers: bool = False

    trusted_proxy_headers: list = field(default_factory=lambda: [
        "X-Forwarded-For",
        "X-Real-IP",
    ])

    # Paths to exclude from rate limiting
    excluded_paths: list = field(default_factory=lambda: [
        "/docs",
        "/openapi.json",
        "/redoc",
    ])


@dataclass
class RateLimitState:
    """State for a single client bucket."""
    tokens: float
    last_seen: float


class InMemoryRateLimiter:
    """
    Token-bucket limiter keyed by client IP.

    Suitable for single-instance deployments.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            config: Rate limiting configuration.
            clock: Monotonic time source in seconds.
        """
        self.config = config or RateLimitConfig()
        self.clock = clock
        self._clients: Dict[str, RateLimitState] = {}
        self._lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._clients)

    @property
    def clients(self) -> frozenset:
        """IPs currently tracked."""
        return frozenset(self._clients)

    async def allow(self, ip: str) -> bool:
        """
        Spend one token from ``ip``'s bucket.

        Returns:
            True if the request may proceed.
        """
        async with self._lock:
            now = self.clock()
            state = self._clients.get(ip)
            if state is None:
                state = RateLimitState(tokens=float(self.config.burst), last_seen=now)
                self._clients[ip] = state

            elapsed = max(0.0, now - state.last_seen)
            state.tokens = min(
                float(self.config.burst),
                state.tokens + elapsed * self.config.requests_per_second,
            )
            state.last_seen = now

            if state.tokens >= 1:
                state.tokens -= 1
                return True
            return False

    async def sweep(self) -> int:
        """Forget clients idle longer than the idle window; returns how many."""
        async with self._lock:
            now = self.clock()
            idle = [
                ip for ip, state in self._clients.items()
                if now - state.last_seen > self.config.idle_window
            ]
            for ip in idle:
                del self._clients[ip]

        if idle:
            logger.debug(f"Evicted {len(idle)} idle rate limit client(s)")
        return len(idle)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.config.sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Rate limit sweep failed")

    def start(self) -> None:
        """Start the background sweep on the running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever())

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for rate limiting requests.
    """

    def __init__(self, app: FastAPI, limiter: InMemoryRateLimiter):
        """
        Initialize middleware.

        Args:
            app: FastAPI application.
            limiter: Shared rate limiter instance.
        """
        super().__init__(app)
        self.limiter = limiter

    @property
    def config(self) -> RateLimitConfig:
        return self.limiter.config

    def _get_client_ip(self, request: Request) -> str:
        if self.config.trust_proxy_headers:
            for header in self.config.trusted_proxy_headers:
                forwarded = request.headers.get(header)
                if forwarded:
                    # First IP in the chain is the original client
                    return forwarded.split(",")[0].strip()

        client = request.client
        if client:
            return client.host

        return "unknown"

    def _is_excluded(self, path: str) -> bool:
        """Check if path is excluded from rate limiting."""
        return any(path.startswith(excluded) for excluded in self.config.excluded_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with rate limiting."""
        if not self.config.enabled or self._is_excluded(request.url.path):
            return await call_next(request)

        ip = self._get_client_ip(request)
        if not await self.limiter.allow(ip):
            logger.warning(f"Rate limit exceeded for {ip} on {request.url.path}")
            return create_error_response(RATE_LIMIT_MESSAGE, 429)

        return await call_next(request)


def setup_rate_limiting(app: FastAPI, limiter: InMemoryRateLimiter) -> InMemoryRateLimiter:
    """
    Configure rate limiting middleware for the FastAPI application.

    Args:
        app: FastAPI application instance.
        limiter: Limiter shared with the lifespan, which runs its sweep.

    Returns:
        The rate limiter instance.
    """
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    return limiter
