"""
Reading List API Routes for ReadCommons.

Handles:
- Reading list CRUD (owner-only writes)
- Adding and removing books with a reading status
"""

from dataclasses import asdict, replace

from fastapi import APIRouter, Depends, Response, status

from readcommons.api.dependencies import (
    ListParams,
    ListQuery,
    ensure_valid,
    get_book_store,
    get_reading_list_store,
    parse_id,
    require_activated_user,
    require_permission,
)
from readcommons.api.middleware.error_handler import FailedValidationError, NotFoundError
from readcommons.api.schemas import (
    MessageEnvelope,
    ReadingListBookAdd,
    ReadingListCreate,
    ReadingListDetailEnvelope,
    ReadingListEntryEnvelope,
    ReadingListEnvelope,
    ReadingListListEnvelope,
    ReadingListUpdate,
)
from readcommons.storage import (
    BookStore,
    DuplicateRecordError,
    ReadingList,
    ReadingListStore,
    User,
    validate_reading_list,
    validate_reading_list_entry,
)
from readcommons.storage.permissions import LISTS_WRITE
from readcommons.validator import Validator

router = APIRouter(prefix="/lists", tags=["reading lists"])

reading_list_query = ListQuery(ReadingListStore.sort_safelist, ("name", "description"))


async def _get_owned_list(lists: ReadingListStore, list_id: str, user: User) -> ReadingList:
    reading_list = await lists.get(parse_id(list_id))
    if reading_list.created_by != user.id:
        raise NotFoundError()
    return reading_list


# =============================================================================
# CRUD Endpoints
# =============================================================================

@router.get("", response_model=ReadingListListEnvelope)
async def list_reading_lists(
    user: User = Depends(require_activated_user),
    params: ListParams = Depends(reading_list_query),
    lists: ReadingListStore = Depends(get_reading_list_store),
):
    records, metadata = await lists.list(params.search, params.filters)
    return {"reading_lists": records, "@metadata": metadata}


@router.post("", response_model=ReadingListEnvelope, status_code=status.HTTP_201_CREATED)
async def create_reading_list(
    body: ReadingListCreate,
    response: Response,
    user: User = Depends(require_permission(LISTS_WRITE)),
    lists: ReadingListStore = Depends(get_reading_list_store),
):
    reading_list = ReadingList(name=body.name, description=body.description, created_by=user.id)

    v = Validator()
    validate_reading_list(v, reading_list)
    ensure_valid(v)

    reading_list = await lists.insert(reading_list)
    response.headers["Location"] = f"/api/v1/lists/{reading_list.id}"
    return {"reading_list": reading_list}


@router.get("/{list_id}", response_model=ReadingListDetailEnvelope)
async def get_reading_list(
    list_id: str,
    user: User = Depends(require_activated_user),
    lists: ReadingListStore = Depends(get_reading_list_store),
):
    """Fetch a reading list together with the books on it."""
    reading_list = await lists.get(parse_id(list_id))
    entries = await lists.list_books(reading_list.id)
    return {"reading_list": {**asdict(reading_list), "books": entries}}


@router.patch("/{list_id}", response_model=ReadingListEnvelope)
async def update_reading_list(
    list_id: str,
    body: ReadingListUpdate,
    user: User = Depends(require_permission(LISTS_WRITE)),
    lists: ReadingListStore = Depends(get_reading_list_store),
):
    reading_list = await _get_owned_list(lists, list_id, user)
    reading_list = replace(reading_list, **body.changes())

    v = Validator()
    validate_reading_list(v, reading_list)
    ensure_valid(v)

    return {"reading_list": await lists.update(reading_list)}


@router.delete("/{list_id}", response_model=MessageEnvelope)
async def delete_reading_list(
    list_id: str,
    user: User = Depends(require_permission(LISTS_WRITE)),
    lists: ReadingListStore = Depends(get_reading_list_store),
):
    reading_list = await _get_owned_list(lists, list_id, user)
    await lists.delete(reading_list.id)
    return {"message": "reading list successfully deleted"}


# =============================================================================
# Membership Endpoints
# =============================================================================

@router.post(
    "/{list_id}/books",
    response_model=ReadingListEntryEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def add_book_to_reading_list(
    list_id: str,
    body: ReadingListBookAdd,
    response: Response,
    user: User = Depends(require_permission(LISTS_WRITE)),
    lists: ReadingListStore = Depends(get_reading_list_store),
    books: BookStore = Depends(get_book_store),
):
    v = Validator()
    validate_reading_list_entry(v, body.book_id, body.status)
    ensure_valid(v)

    reading_list = await _get_owned_list(lists, list_id, user)
    if not await books.exists(body.book_id):
        raise NotFoundError()

    try:
        entry = await lists.add_book(reading_list.id, body.book_id, body.status)
    except DuplicateRecordError:
        raise FailedValidationError({"book": "book already exists in this reading list"})

    response.headers["Location"] = f"/api/v1/lists/{reading_list.id}"
    return {"entry": entry}


@router.delete("/{list_id}/books/{book_id}", response_model=MessageEnvelope)
async def remove_book_from_reading_list(
    list_id: str,
    book_id: str,
    user: User = Depends(require_permission(LISTS_WRITE)),
    lists: ReadingListStore = Depends(get_reading_list_store),
):
    reading_list = await _get_owned_list(lists, list_id, user)
    await lists.remove_book(reading_list.id, parse_id(book_id))
    return {"message": "book successfully removed from reading list"}
