"""
Reading lists and their book memberships.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..validator import Validator, byte_length, permitted_value
from .base import ResourceStore
from .errors import DuplicateRecordError, RecordNotFoundError
from .filters import Filters, Metadata
from .models import MAX_ID, BookModel, ReadingListBookModel, ReadingListModel


READING_STATUSES = ("to-read", "reading", "completed")


@dataclass
class ReadingList:
    id: int = 0
    name: str = ""
    description: str = ""
    created_by: int = 0
    version: int = 1
    created_at: Optional[datetime] = None


@dataclass
class ReadingListEntry:
    """A book's membership of a reading list."""

    reading_list_id: int = 0
    book_id: int = 0
    status: str = "to-read"
    title: str = ""
    added_at: Optional[datetime] = None


def validate_reading_list(v: Validator, reading_list: ReadingList) -> None:
    v.check(reading_list.name != "", "name", "must be provided")
    v.check(byte_length(reading_list.name) <= 25, "name", "must not be more than 25 bytes long")
    v.check(reading_list.description != "", "description", "must be provided")
    v.check(
        byte_length(reading_list.description) <= 250,
        "description",
        "must not be more than 250 bytes long",
    )


def validate_reading_status(v: Validator, status: str) -> None:
    v.check(status != "", "status", "must be provided")
    v.check(
        permitted_value(status, *READING_STATUSES),
        "status",
        f"must be one of: {', '.join(READING_STATUSES)}",
    )


def validate_reading_list_entry(v: Validator, book_id: Optional[int], status: str) -> None:
    v.check(book_id is not None, "book_id", "must be provided")
    v.check(
        book_id is None or 1 <= book_id <= MAX_ID,
        "book_id",
        "must be a valid book id",
    )
    validate_reading_status(v, status)


class ReadingListStore(ResourceStore[ReadingList]):
    model = ReadingListModel
    record_type = ReadingList

    insert_fields = ("name", "description", "created_by")
    mutable_fields = ("name", "description")

    search_columns = {
        "name": ReadingListModel.name,
        "description": ReadingListModel.description,
    }
    sort_safelist = ("id", "name", "created_at")

    async def list_for_user(self, user_id: int, filters: Filters) -> tuple[list[ReadingList], Metadata]:
        return await self.list({}, filters, created_by=user_id)

    # =========================================================================
    # Membership
    # =========================================================================

    async def add_book(self, list_id: int, book_id: int, status: str) -> ReadingListEntry:
        """
        Put a book on a reading list.

        Raises:
            DuplicateRecordError: The book is already on the list.
        """
        async def op(session: AsyncSession) -> ReadingListEntry:
            already = await session.scalar(
                select(ReadingListBookModel.id).where(
                    ReadingListBookModel.reading_list_id == list_id,
                    ReadingListBookModel.book_id == book_id,
                )
            )
            if already is not None:
                raise DuplicateRecordError("book already exists in this reading list")

            entry = ReadingListBookModel(reading_list_id=list_id, book_id=book_id, status=status)
            session.add(entry)
            await session.flush()
            await session.refresh(entry)

            title = await session.scalar(select(BookModel.title).where(BookModel.id == book_id))
            return ReadingListEntry(
                reading_list_id=entry.reading_list_id,
                book_id=entry.book_id,
                status=entry.status,
                title=title or "",
                added_at=entry.added_at,
            )

        return await self._run(op)

    async def remove_book(self, list_id: int, book_id: int) -> None:
        async def op(session: AsyncSession) -> None:
            result = await session.execute(
                delete(ReadingListBookModel)
                .where(
                    ReadingListBookModel.reading_list_id == list_id,
                    ReadingListBookModel.book_id == book_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise RecordNotFoundError()

        await self._run(op)

    async def list_books(self, list_id: int) -> list[ReadingListEntry]:
        stmt = (
            select(ReadingListBookModel, BookModel.title)
            .join(BookModel, BookModel.id == ReadingListBookModel.book_id)
            .where(ReadingListBookModel.reading_list_id == list_id)
            .order_by(ReadingListBookModel.added_at.asc(), ReadingListBookModel.id.asc())
        )

        async def op(session: AsyncSession) -> list[ReadingListEntry]:
            rows = (await session.execute(stmt)).all()
            return [
                ReadingListEntry(
                    reading_list_id=entry.reading_list_id,
                    book_id=entry.book_id,
                    status=entry.status,
                    title=title,
                    added_at=entry.added_at,
                )
                for entry, title in rows
            ]

        return await self._run(op)
