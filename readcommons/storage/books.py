"""
Book catalogue storage.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy import String, cast

from ..validator import Validator, byte_length, unique
from .base import ResourceStore
from .models import MAX_ISBN, BookModel, utcnow


@dataclass
class Book:
    """Data class for book data transfer."""

    id: int = 0
    title: str = ""
    authors: list[str] = field(default_factory=list)
    isbn: int = 0
    publication_date: Optional[date] = None
    genres: list[str] = field(default_factory=list)
    description: str = ""
    average_rating: float = 0.0
    version: int = 1
    created_at: Optional[datetime] = None


def validate_book(v: Validator, book: Book, today: Optional[date] = None) -> None:
    today = today or utcnow().date()

    v.check(book.title != "", "title", "must be provided")
    v.check(byte_length(book.title) <= 100, "title", "must not be more than 100 bytes long")

    v.check(len(book.authors) > 0, "authors", "must contain at least one author")
    for i, author in enumerate(book.authors):
        v.check(author != "", f"authors[{i}]", "must not be empty")
        v.check(byte_length(author) <= 25, f"authors[{i}]", "must not be more than 25 bytes long")
    v.check(unique(book.authors), "authors", "must not contain duplicate values")

    v.check(book.isbn is not None, "isbn", "must be provided")
    v.check(book.isbn is not None and book.isbn > 0, "isbn", "must be a positive integer")
    v.check(book.isbn is None or book.isbn <= MAX_ISBN, "isbn", "must be a valid ISBN")

    v.check(book.publication_date is not None, "publication_date", "must be provided")
    v.check(
        book.publication_date is None or book.publication_date <= today,
        "publication_date",
        "must not be in the future",
    )

    v.check(len(book.genres) > 0, "genres", "must contain at least one genre")
    for i, genre in enumerate(book.genres):
        v.check(genre != "", f"genres[{i}]", "must not be empty")
        v.check(byte_length(genre) <= 25, f"genres[{i}]", "must not be more than 25 bytes long")
    v.check(unique(book.genres), "genres", "must not contain duplicate values")

    v.check(book.description != "", "description", "must be provided")
    v.check(byte_length(book.description) <= 500, "description", "must not be more than 500 bytes long")


class BookStore(ResourceStore[Book]):
    model = BookModel
    record_type = Book

    insert_fields = ("title", "authors", "isbn", "publication_date", "genres", "description")
    mutable_fields = insert_fields

    search_columns = {
        "title": BookModel.title,
        "author": cast(BookModel.authors, String),
        "genre": cast(BookModel.genres, String),
    }
    sort_safelist = ("id", "title", "isbn", "publication_date", "average_rating")
