"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- The service container (database, stores, limiter, mailer, tasks)
- List query parsing (pagination, sorting, search)
- Authentication state, activation and permission gates
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache
from typing import Callable, Optional, Sequence

from fastapi import Depends, Request
from loguru import logger
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..mailer import Mailer, Transport
from ..storage import (
    BookStore,
    CommentStore,
    Filters,
    PermissionStore,
    ReadingListStore,
    ReviewStore,
    TokenStore,
    User,
    UserStore,
    validate_filters,
)
from ..storage.models import MAX_ID
from ..validator import Validator
from .background import TaskTracker
from .middleware.authenticate import ANONYMOUS, AuthState, Authenticated
from .middleware.error_handler import (
    AuthenticationError,
    AUTHENTICATION_REQUIRED_MESSAGE,
    BadRequestError,
    FailedValidationError,
    InactiveAccountError,
    NotFoundError,
)
from .middleware.cors import parse_trusted_origins
from .middleware.rate_limit import InMemoryRateLimiter, RateLimitConfig


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./readcommons.db"
    database_echo: bool = False
    db_timeout_seconds: float = 3.0

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_rps: float = 2.0
    rate_limit_burst: int = 5
    rate_limit_sweep_seconds: float = 60.0
    rate_limit_idle_seconds: float = 180.0
    trust_proxy_headers: bool = False

    # CORS
    cors_trusted_origins: list = field(default_factory=list)

    # Tokens
    activation_token_ttl_hours: int = 72
    auth_token_ttl_hours: int = 24
    password_reset_ttl_minutes: int = 45

    # Requests
    max_body_bytes: int = 256_000

    # Passwords
    bcrypt_rounds: int = 12

    # Mail
    mail_sender: str = "ReadCommons <no-reply@readcommons.local>"

    # Server
    port: int = 4000
    shutdown_grace_seconds: int = 30

    # Environment
    environment: str = "development"
    debug: bool = False

    @property
    def activation_token_ttl(self) -> timedelta:
        return timedelta(hours=self.activation_token_ttl_hours)

    @property
    def auth_token_ttl(self) -> timedelta:
        return timedelta(hours=self.auth_token_ttl_hours)

    @property
    def password_reset_ttl(self) -> timedelta:
        return timedelta(minutes=self.password_reset_ttl_minutes)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=_env_bool("DATABASE_ECHO", False),
            db_timeout_seconds=float(os.getenv("DB_TIMEOUT_SECONDS", cls.db_timeout_seconds)),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
            rate_limit_rps=float(os.getenv("RATE_LIMIT_RPS", cls.rate_limit_rps)),
            rate_limit_burst=int(os.getenv("RATE_LIMIT_BURST", cls.rate_limit_burst)),
            rate_limit_sweep_seconds=float(os.getenv("RATE_LIMIT_SWEEP_SECONDS", cls.rate_limit_sweep_seconds)),
            rate_limit_idle_seconds=float(os.getenv("RATE_LIMIT_IDLE_SECONDS", cls.rate_limit_idle_seconds)),
            trust_proxy_headers=_env_bool("TRUST_PROXY_HEADERS", False),
            cors_trusted_origins=parse_trusted_origins(os.getenv("CORS_TRUSTED_ORIGINS", "")),
            activation_token_ttl_hours=int(os.getenv("ACTIVATION_TOKEN_TTL_HOURS", cls.activation_token_ttl_hours)),
            auth_token_ttl_hours=int(os.getenv("AUTH_TOKEN_TTL_HOURS", cls.auth_token_ttl_hours)),
            password_reset_ttl_minutes=int(os.getenv("PASSWORD_RESET_TTL_MINUTES", cls.password_reset_ttl_minutes)),
            max_body_bytes=int(os.getenv("MAX_BODY_BYTES", cls.max_body_bytes)),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", cls.bcrypt_rounds)),
            mail_sender=os.getenv("MAIL_SENDER", cls.mail_sender),
            port=int(os.getenv("PORT", cls.port)),
            shutdown_grace_seconds=int(os.getenv("SHUTDOWN_GRACE_SECONDS", cls.shutdown_grace_seconds)),
            environment=os.getenv("READCOMMONS_ENV", cls.environment),
            debug=_env_bool("DEBUG", False),
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Service Container
# =============================================================================

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class ServiceContainer:
    """
    Container for lazily created service instances.

    One container per application; it owns the database engine, so it is
    also where the engine gets disposed.
    """

    def __init__(self, settings: Settings, mail_transport: Optional[Transport] = None):
        self.settings = settings
        self._mail_transport = mail_transport
        self._engine = None
        self._session_factory = None
        self._books = None
        self._reviews = None
        self._reading_lists = None
        self._comments = None
        self._users = None
        self._tokens = None
        self._permissions = None
        self._rate_limiter = None
        self._mailer = None
        self._tasks = None

    # =========================================================================
    # Database
    # =========================================================================

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(
                self.settings.database_url,
                echo=self.settings.database_echo,
                pool_pre_ping=True,
            )
            if self._engine.dialect.name == "sqlite":
                event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return self._session_factory

    def _store(self, store_class, **kwargs):
        return store_class(
            self.session_factory,
            dialect_name=self.engine.dialect.name,
            timeout=self.settings.db_timeout_seconds,
            **kwargs,
        )

    async def create_tables(self) -> None:
        """Create database tables and seed permission codes."""
        from ..storage.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await self.permissions.seed()

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    # =========================================================================
    # Stores
    # =========================================================================

    @property
    def books(self) -> BookStore:
        if self._books is None:
            self._books = self._store(BookStore)
        return self._books

    @property
    def reviews(self) -> ReviewStore:
        if self._reviews is None:
            self._reviews = self._store(ReviewStore)
        return self._reviews

    @property
    def reading_lists(self) -> ReadingListStore:
        if self._reading_lists is None:
            self._reading_lists = self._store(ReadingListStore)
        return self._reading_lists

    @property
    def comments(self) -> CommentStore:
        if self._comments is None:
            self._comments = self._store(CommentStore)
        return self._comments

    @property
    def users(self) -> UserStore:
        if self._users is None:
            self._users = self._store(UserStore)
        return self._users

    @property
    def tokens(self) -> TokenStore:
        if self._tokens is None:
            self._tokens = self._store(TokenStore)
        return self._tokens

    @property
    def permissions(self) -> PermissionStore:
        if self._permissions is None:
            self._permissions = self._store(PermissionStore)
        return self._permissions

    # =========================================================================
    # Runtime services
    # =========================================================================

    @property
    def rate_limiter(self) -> InMemoryRateLimiter:
        if self._rate_limiter is None:
            self._rate_limiter = InMemoryRateLimiter(
                RateLimitConfig(
                    requests_per_second=self.settings.rate_limit_rps,
                    burst=self.settings.rate_limit_burst,
                    enabled=self.settings.rate_limit_enabled,
                    sweep_interval=self.settings.rate_limit_sweep_seconds,
                    idle_window=self.settings.rate_limit_idle_seconds,
                    trust_proxy_headers=self.settings.trust_proxy_headers,
                )
            )
        return self._rate_limiter

    @property
    def mailer(self) -> Mailer:
        if self._mailer is None:
            self._mailer = Mailer(self.settings.mail_sender, transport=self._mail_transport)
        return self._mailer

    @property
    def tasks(self) -> TaskTracker:
        if self._tasks is None:
            self._tasks = TaskTracker()
        return self._tasks


def get_service_container(request: Request) -> ServiceContainer:
    """Get the service container attached to the running application."""
    return request.app.state.services


def get_app_settings(container: ServiceContainer = Depends(get_service_container)) -> Settings:
    return container.settings


# =============================================================================
# Individual Service Dependencies
# =============================================================================

def get_book_store(container: ServiceContainer = Depends(get_service_container)) -> BookStore:
    return container.books


def get_review_store(container: ServiceContainer = Depends(get_service_container)) -> ReviewStore:
    return container.reviews


def get_reading_list_store(container: ServiceContainer = Depends(get_service_container)) -> ReadingListStore:
    return container.reading_lists


def get_comment_store(container: ServiceContainer = Depends(get_service_container)) -> CommentStore:
    return container.comments


def get_user_store(container: ServiceContainer = Depends(get_service_container)) -> UserStore:
    return container.users


def get_token_store(container: ServiceContainer = Depends(get_service_container)) -> TokenStore:
    return container.tokens


def get_permission_store(container: ServiceContainer = Depends(get_service_container)) -> PermissionStore:
    return container.permissions


def get_mailer(container: ServiceContainer = Depends(get_service_container)) -> Mailer:
    return container.mailer


def get_task_tracker(container: ServiceContainer = Depends(get_service_container)) -> TaskTracker:
    return container.tasks


# =============================================================================
# Request Body Dependencies
# =============================================================================

async def enforce_body_limit(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Reject request bodies above the configured size."""
    limit = settings.max_body_bytes
    message = f"body must not be larger than {limit} bytes"

    declared = request.headers.get("Content-Length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise BadRequestError(message)

    if request.method in ("POST", "PUT", "PATCH"):
        body = await request.body()
        if len(body) > limit:
            raise BadRequestError(message)


# =============================================================================
# List Query Dependencies
# =============================================================================

@dataclass
class ListParams:
    """Validated list request: pagination, sorting and search terms."""

    filters: Filters
    search: dict


def _read_int(request: Request, key: str, default: int, v: Validator) -> int:
    raw = request.query_params.get(key, "")
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        v.add_error(key, "must be an integer value")
        return default


class ListQuery:
    """
    Dependency parsing ``page``, ``page_size``, ``sorting`` and search terms.

    Invalid values fail the request with 422 before any store is touched.

    Usage:
        params: ListParams = Depends(ListQuery(BookStore.sort_safelist, ("title",)))
    """

    def __init__(self, sort_safelist: Sequence[str], search_params: Sequence[str] = ()):
        self.sort_safelist = tuple(sort_safelist)
        self.search_params = tuple(search_params)

    def __call__(self, request: Request) -> ListParams:
        v = Validator()
        filters = Filters(
            page=_read_int(request, "page", 1, v),
            page_size=_read_int(request, "page_size", 10, v),
            sort=request.query_params.get("sorting") or "id",
            sort_safelist=self.sort_safelist,
        )
        validate_filters(v, filters)
        if not v.is_empty():
            raise FailedValidationError(v.errors)

        search = {name: request.query_params.get(name, "") for name in self.search_params}
        return ListParams(filters=filters, search=search)


# =============================================================================
# Authentication Dependencies
# =============================================================================

def get_auth_state(request: Request) -> AuthState:
    return getattr(request.state, "auth", ANONYMOUS)


async def require_authenticated_user(auth: AuthState = Depends(get_auth_state)) -> User:
    if not isinstance(auth, Authenticated):
        raise AuthenticationError(AUTHENTICATION_REQUIRED_MESSAGE)
    return auth.user


async def require_activated_user(user: User = Depends(require_authenticated_user)) -> User:
    if not user.activated:
        raise InactiveAccountError()
    return user


def require_permission(code: str) -> Callable:
    """
    Build a dependency that admits activated users holding ``code``.

    Missing permissions surface as 404 so callers cannot discover
    resources they are not allowed to see.
    """
    async def dependency(
        user: User = Depends(require_activated_user),
        permissions: PermissionStore = Depends(get_permission_store),
    ) -> User:
        grants = await permissions.get_all_for_user(user.id)
        if not grants.includes(code):
            logger.info(f"User {user.id} lacks permission {code}")
            raise NotFoundError()
        return user

    return dependency


# =============================================================================
# Handler Helpers
# =============================================================================

def parse_id(raw: str) -> int:
    """Parse a path identifier; anything but an id the tables can hold is a 404."""
    try:
        value = int(raw)
    except ValueError:
        raise NotFoundError()
    if not 1 <= value <= MAX_ID:
        raise NotFoundError()
    return value


def ensure_valid(v: Validator) -> None:
    if not v.is_empty():
        raise FailedValidationError(v.errors)

