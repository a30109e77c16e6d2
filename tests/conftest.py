"""
Pytest configuration and fixtures for ReadCommons tests.
"""

from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from readcommons.api.dependencies import ServiceContainer, Settings
from readcommons.api.main import create_app
from readcommons.mailer import EmailMessage
from readcommons.security import hash_password
from readcommons.storage import DEFAULT_USER_PERMISSIONS, TokenScope, User
from readcommons.storage.permissions import BOOKS_WRITE


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings(database_url: str) -> Settings:
    """Return settings configured for testing."""
    return Settings(
        database_url=database_url,
        database_echo=False,
        environment="test",
        debug=False,
        rate_limit_enabled=False,
        bcrypt_rounds=4,
        shutdown_grace_seconds=1,
    )


class RecordingTransport:
    """Mail transport that keeps every message instead of delivering it."""

    def __init__(self):
        self.sent: list[EmailMessage] = []

    async def __call__(self, message: EmailMessage) -> None:
        self.sent.append(message)


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def settings(tmp_path) -> Settings:
    return get_test_settings(f"sqlite+aiosqlite:///{tmp_path / 'readcommons.db'}")


@pytest.fixture
def mail_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest_asyncio.fixture(scope="function")
async def services(settings, mail_transport) -> AsyncGenerator[ServiceContainer, None]:
    """Service container over a fresh, file-backed SQLite database."""
    container = ServiceContainer(settings, mail_transport=mail_transport)
    await container.create_tables()

    yield container

    await container.tasks.drain(1)
    await container.dispose()


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def app(services):
    """Create FastAPI application for testing."""
    application = create_app(services=services)

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# =============================================================================
# User Fixtures
# =============================================================================

async def make_user(
    services: ServiceContainer,
    email: str,
    password: str = "pa55word1234",
    activated: bool = True,
    permissions=DEFAULT_USER_PERMISSIONS,
) -> User:
    """Insert a user straight through the stores."""
    user = await services.users.insert(
        User(
            username=email.split("@")[0],
            email=email,
            password_hash=hash_password(password, rounds=4),
            activated=activated,
        )
    )
    if permissions:
        await services.permissions.add_for_user(user.id, *permissions)
    return user


async def auth_headers(services: ServiceContainer, user: User) -> dict:
    token = await services.tokens.new(user.id, services.settings.auth_token_ttl, TokenScope.AUTHENTICATION)
    return {"Authorization": f"Bearer {token.plaintext}"}


@pytest_asyncio.fixture
async def reader(services) -> User:
    """Activated user with the default permissions."""
    return await make_user(services, "reader@example.com")


@pytest_asyncio.fixture
async def reader_headers(services, reader) -> dict:
    return await auth_headers(services, reader)


@pytest_asyncio.fixture
async def librarian(services) -> User:
    """Activated user who may also curate the catalogue."""
    return await make_user(
        services,
        "librarian@example.com",
        permissions=DEFAULT_USER_PERMISSIONS + (BOOKS_WRITE,),
    )


@pytest_asyncio.fixture
async def librarian_headers(services, librarian) -> dict:
    return await auth_headers(services, librarian)


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def sample_book_data() -> dict:
    """Sample book data for testing."""
    return {
        "title": "The Great Gatsby",
        "authors": ["F. Scott Fitzgerald"],
        "isbn": 9780743273565,
        "publication_date": "1925-04-10",
        "genres": ["Fiction", "Classic"],
        "description": "A story of decadence and excess in the Jazz Age.",
    }


@pytest.fixture
def sample_books_batch() -> list:
    """Batch of sample books for testing."""
    return [
        {
            "title": "1984",
            "authors": ["George Orwell"],
            "isbn": 9780451524935,
            "publication_date": "1949-06-08",
            "genres": ["Fiction", "Dystopian"],
            "description": "A dystopian social science fiction novel.",
        },
        {
            "title": "To Kill a Mockingbird",
            "authors": ["Harper Lee"],
            "isbn": 9780061120084,
            "publication_date": "1960-07-11",
            "genres": ["Fiction", "Classic"],
            "description": "A novel about racial injustice in the Deep South.",
        },
        {
            "title": "Pride and Prejudice",
            "authors": ["Jane Austen"],
            "isbn": 9780141439518,
            "publication_date": "1813-01-28",
            "genres": ["Romance", "Classic"],
            "description": "A romantic novel of manners.",
        },
    ]


@pytest.fixture
def today() -> date:
    return date(2024, 6, 1)
