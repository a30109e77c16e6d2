"""
Books API Routes for ReadCommons.

Handles:
- Book CRUD operations
- Paged, sorted, searchable catalogue listing
"""

from dataclasses import replace

from fastapi import APIRouter, Depends, Response, status
from loguru import logger

from readcommons.api.dependencies import (
    ListParams,
    ListQuery,
    ensure_valid,
    get_book_store,
    parse_id,
    require_permission,
)
from readcommons.api.schemas import (
    BookCreate,
    BookEnvelope,
    BookListEnvelope,
    BookUpdate,
    MessageEnvelope,
)
from readcommons.storage import Book, BookStore, User, validate_book
from readcommons.storage.permissions import BOOKS_READ, BOOKS_WRITE
from readcommons.validator import Validator

router = APIRouter(prefix="/books", tags=["books"])

book_query = ListQuery(BookStore.sort_safelist, ("title", "author", "genre"))


# =============================================================================
# CRUD Endpoints
# =============================================================================

@router.get("", response_model=BookListEnvelope)
async def list_books(
    user: User = Depends(require_permission(BOOKS_READ)),
    params: ListParams = Depends(book_query),
    books: BookStore = Depends(get_book_store),
):
    """
    List the catalogue.

    Supports ``title``, ``author`` and ``genre`` search terms plus the usual
    ``page``, ``page_size`` and ``sorting`` parameters.
    """
    records, metadata = await books.list(params.search, params.filters)
    return {"books": records, "@metadata": metadata}


@router.post("", response_model=BookEnvelope, status_code=status.HTTP_201_CREATED)
async def create_book(
    body: BookCreate,
    response: Response,
    user: User = Depends(require_permission(BOOKS_WRITE)),
    books: BookStore = Depends(get_book_store),
):
    """Add a book to the catalogue."""
    book = Book(**body.model_dump())

    v = Validator()
    validate_book(v, book)
    ensure_valid(v)

    book = await books.insert(book)
    logger.info(f"User {user.id} added book {book.id}")

    response.headers["Location"] = f"/api/v1/books/{book.id}"
    return {"book": book}


@router.get("/{book_id}", response_model=BookEnvelope)
async def get_book(
    book_id: str,
    user: User = Depends(require_permission(BOOKS_READ)),
    books: BookStore = Depends(get_book_store),
):
    book = await books.get(parse_id(book_id))
    return {"book": book}


@router.patch("/{book_id}", response_model=BookEnvelope)
async def update_book(
    book_id: str,
    body: BookUpdate,
    user: User = Depends(require_permission(BOOKS_WRITE)),
    books: BookStore = Depends(get_book_store),
):
    """
    Partially update a book.

    Only fields present in the body change. A concurrent update between the
    read and the write yields 409.
    """
    book = await books.get(parse_id(book_id))
    book = replace(book, **body.changes())

    v = Validator()
    validate_book(v, book)
    ensure_valid(v)

    book = await books.update(book)
    return {"book": book}


@router.delete("/{book_id}", response_model=MessageEnvelope)
async def delete_book(
    book_id: str,
    user: User = Depends(require_permission(BOOKS_WRITE)),
    books: BookStore = Depends(get_book_store),
):
    book_id = parse_id(book_id)
    await books.delete(book_id)
    logger.info(f"User {user.id} deleted book {book_id}")
    return {"message": "book successfully deleted"}
