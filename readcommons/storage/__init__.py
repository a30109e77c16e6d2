"""
Storage Module for ReadCommons

Relational storage for the community's records:
- One generic store with paging, sorting, search and optimistic updates
- Thin per-entity stores declaring their columns
- Scoped bearer tokens and permission grants
"""

from readcommons.storage.errors import (
    StorageError,
    RecordNotFoundError,
    DuplicateRecordError,
    EditConflictError,
    StorageUnavailableError,
    UnsafeSortError,
)
from readcommons.storage.filters import (
    Filters,
    Metadata,
    calculate_metadata,
    validate_filters,
    text_search,
)
from readcommons.storage.base import StoreBase, ResourceStore
from readcommons.storage.books import Book, BookStore, validate_book
from readcommons.storage.reviews import Review, ReviewStore, validate_review
from readcommons.storage.reading_lists import (
    READING_STATUSES,
    ReadingList,
    ReadingListEntry,
    ReadingListStore,
    validate_reading_list,
    validate_reading_list_entry,
    validate_reading_status,
)
from readcommons.storage.comments import Comment, CommentStore, validate_comment
from readcommons.storage.users import User, UserStore, validate_email, validate_user
from readcommons.storage.tokens import Token, TokenScope, TokenStore
from readcommons.storage.permissions import (
    ALL_PERMISSIONS,
    DEFAULT_USER_PERMISSIONS,
    Permissions,
    PermissionStore,
)

__all__ = [
    # Errors
    "StorageError",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "EditConflictError",
    "StorageUnavailableError",
    "UnsafeSortError",
    # Filters
    "Filters",
    "Metadata",
    "calculate_metadata",
    "validate_filters",
    "text_search",
    # Stores
    "StoreBase",
    "ResourceStore",
    "Book",
    "BookStore",
    "validate_book",
    "Review",
    "ReviewStore",
    "validate_review",
    "READING_STATUSES",
    "ReadingList",
    "ReadingListEntry",
    "ReadingListStore",
    "validate_reading_list",
    "validate_reading_list_entry",
    "validate_reading_status",
    "Comment",
    "CommentStore",
    "validate_comment",
    "User",
    "UserStore",
    "validate_email",
    "validate_user",
    "Token",
    "TokenScope",
    "TokenStore",
    "ALL_PERMISSIONS",
    "DEFAULT_USER_PERMISSIONS",
    "Permissions",
    "PermissionStore",
]
