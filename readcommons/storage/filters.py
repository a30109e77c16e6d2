"""
Pagination, sorting and search for list queries.

Sort keys are rendered into ORDER BY, so they are checked against a
per-resource safelist twice: once by ``validate_filters`` before a handler
calls a store, and again by ``Filters.sort_column`` inside the store.
"""

import re
from dataclasses import dataclass, field

from sqlalchemy import and_, func, literal_column, true
from sqlalchemy.sql.elements import ColumnElement

from ..validator import Validator, permitted_value
from .errors import UnsafeSortError


MAX_PAGE = 500
MAX_PAGE_SIZE = 100

_WORD_RX = re.compile(r"\w+", re.UNICODE)


@dataclass
class Filters:
    """Validated page and sort request for a list query."""

    page: int = 1
    page_size: int = 10
    sort: str = "id"
    sort_safelist: tuple[str, ...] = field(default_factory=tuple)

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def sort_column(self) -> str:
        """
        Return the bare column key for the requested sort.

        Raises:
            UnsafeSortError: If the sort was never validated against the safelist.
        """
        if self.sort not in self.allowed_sorts():
            raise UnsafeSortError(f"unsafe sort parameter: {self.sort!r}")
        return self.sort.lstrip("-")

    def sort_direction(self) -> str:
        return "DESC" if self.sort.startswith("-") else "ASC"

    def allowed_sorts(self) -> tuple[str, ...]:
        """Every accepted sort value: each safelisted key, ascending and descending."""
        keys = tuple(self.sort_safelist)
        return keys + tuple(f"-{key}" for key in keys)


def validate_filters(v: Validator, f: Filters) -> None:
    v.check(f.page > 0, "page", "must be greater than zero")
    v.check(f.page <= MAX_PAGE, "page", f"must be a maximum of {MAX_PAGE}")
    v.check(f.page_size > 0, "page_size", "must be greater than zero")
    v.check(f.page_size <= MAX_PAGE_SIZE, "page_size", f"must be a maximum of {MAX_PAGE_SIZE}")
    v.check(permitted_value(f.sort, *f.allowed_sorts()), "sort", "invalid sort value")


# =============================================================================
# Metadata
# =============================================================================

@dataclass
class Metadata:
    """Describes where a page sits in the full result set."""

    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0

    def to_dict(self) -> dict:
        return {
            "current_page": self.current_page,
            "page_size": self.page_size,
            "first_page": self.first_page,
            "last_page": self.last_page,
            "total_records": self.total_records,
        }


def calculate_metadata(total_records: int, page: int, page_size: int) -> Metadata:
    if total_records == 0:
        return Metadata()

    return Metadata(
        current_page=page,
        page_size=page_size,
        first_page=1,
        last_page=(total_records + page_size - 1) // page_size,
        total_records=total_records,
    )


# =============================================================================
# Full-text search
# =============================================================================

def text_search(column, term: str, dialect_name: str) -> ColumnElement:
    """
    Build a full-text predicate for ``column``.

    An empty term matches every row. PostgreSQL gets a real ``simple``-config
    tsvector match; other backends fall back to requiring every word of the
    term to appear in the column, case-insensitively.

    Args:
        column: Column or SQL expression holding the searchable text.
        term: Raw search string from the query string.
        dialect_name: ``engine.dialect.name`` of the backing database.
    """
    term = term.strip()
    if not term:
        return true()

    if dialect_name == "postgresql":
        config = literal_column("'simple'")
        return func.to_tsvector(config, column).op("@@")(
            func.plainto_tsquery(config, term)
        )

    words = _WORD_RX.findall(term.lower())
    if not words:
        return true()
    lowered = func.lower(column)
    return and_(*(lowered.contains(word, autoescape=True) for word in words))
