"""
Pydantic schemas for API request/response validation.

Request bodies reject unknown keys and carry permissive defaults: field
rules are enforced by the Validator so they come back as 422 field maps,
while structural problems (bad JSON, wrong types, unknown keys) are 400s.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Base Schemas
# =============================================================================

class RequestBody(BaseModel):
    """Base for request bodies: unknown keys are an error."""

    model_config = ConfigDict(extra="forbid")

    def changes(self) -> dict[str, Any]:
        """Fields the client explicitly supplied with a non-null value."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class MetadataResponse(BaseModel):
    current_page: int
    page_size: int
    first_page: int
    last_page: int
    total_records: int


class PagedEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    metadata: MetadataResponse = Field(alias="@metadata")


# =============================================================================
# Book Schemas
# =============================================================================

class BookCreate(RequestBody):
    title: str = ""
    authors: list[str] = Field(default_factory=list)
    isbn: Optional[int] = None
    publication_date: Optional[date] = None
    genres: list[str] = Field(default_factory=list)
    description: str = ""


class BookUpdate(RequestBody):
    title: Optional[str] = None
    authors: Optional[list[str]] = None
    isbn: Optional[int] = None
    publication_date: Optional[date] = None
    genres: Optional[list[str]] = None
    description: Optional[str] = None


class BookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    authors: list[str]
    isbn: int
    publication_date: date
    genres: list[str]
    description: str
    average_rating: float
    version: int


class BookEnvelope(BaseModel):
    book: BookResponse


class BookListEnvelope(PagedEnvelope):
    books: list[BookResponse]


# =============================================================================
# Review Schemas
# =============================================================================

class ReviewCreate(RequestBody):
    rating: Optional[float] = None
    review_text: str = ""


class ReviewUpdate(RequestBody):
    rating: Optional[float] = None
    review_text: Optional[str] = None


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    book_id: int
    user_id: int
    rating: float
    review_text: str
    helpful_count: int
    created_at: datetime
    version: int


class ReviewEnvelope(BaseModel):
    review: ReviewResponse


class ReviewListEnvelope(PagedEnvelope):
    reviews: list[ReviewResponse]


# =============================================================================
# Reading List Schemas
# =============================================================================

class ReadingListCreate(RequestBody):
    name: str = ""
    description: str = ""


class ReadingListUpdate(RequestBody):
    name: Optional[str] = None
    description: Optional[str] = None


class ReadingListBookAdd(RequestBody):
    book_id: Optional[int] = None
    status: str = "to-read"


class ReadingListEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    book_id: int
    title: str
    status: str
    added_at: datetime


class ReadingListResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    created_by: int
    version: int


class ReadingListDetailResponse(ReadingListResponse):
    books: list[ReadingListEntryResponse] = Field(default_factory=list)


class ReadingListEnvelope(BaseModel):
    reading_list: ReadingListResponse


class ReadingListDetailEnvelope(BaseModel):
    reading_list: ReadingListDetailResponse


class ReadingListListEnvelope(PagedEnvelope):
    reading_lists: list[ReadingListResponse]


class ReadingListEntryEnvelope(BaseModel):
    entry: ReadingListEntryResponse


# =============================================================================
# Comment Schemas
# =============================================================================

class CommentCreate(RequestBody):
    content: str = ""
    author: str = ""


class CommentUpdate(RequestBody):
    content: Optional[str] = None
    author: Optional[str] = None


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    content: str
    author: str
    version: int


class CommentEnvelope(BaseModel):
    comment: CommentResponse


class CommentListEnvelope(PagedEnvelope):
    comments: list[CommentResponse]


# =============================================================================
# User & Token Schemas
# =============================================================================

class UserCreate(RequestBody):
    username: str = ""
    email: str = ""
    password: str = ""


class UserActivate(RequestBody):
    token: str = ""


class PasswordReset(RequestBody):
    password: str = ""
    token: str = ""


class EmailRequest(RequestBody):
    email: str = ""


class Credentials(RequestBody):
    email: str = ""
    password: str = ""


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    username: str
    email: str
    activated: bool


class UserEnvelope(BaseModel):
    user: UserResponse


class AuthenticationToken(BaseModel):
    token: str
    expiry: datetime


class AuthenticationTokenEnvelope(BaseModel):
    authentication_token: AuthenticationToken


class MessageEnvelope(BaseModel):
    message: str


# =============================================================================
# System Schemas
# =============================================================================

class SystemInfo(BaseModel):
    environment: str
    version: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    system_info: SystemInfo
