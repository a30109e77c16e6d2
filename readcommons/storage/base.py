"""
Generic resource store.

Every entity table shares the same CRUD contract:
- Insert/get/exists/delete by integer id
- Paged, sorted, full-text searchable listing with a window count
- Optimistic-concurrency updates keyed on ``(id, version)``

Each entity store only declares its model, its record dataclass and which
columns are insertable, mutable, searchable and sortable.

Every operation runs in its own transaction and is bounded by a timeout, so
a stalled database surfaces as ``StorageUnavailableError`` instead of a hung
request.
"""

import asyncio
from dataclasses import fields, replace
from typing import Any, Awaitable, Callable, ClassVar, Generic, Mapping, Optional, TypeVar

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .errors import (
    DuplicateRecordError,
    EditConflictError,
    RecordNotFoundError,
    StorageUnavailableError,
)
from .filters import Filters, Metadata, calculate_metadata, text_search


R = TypeVar("R")
T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 3.0


class StoreBase:
    """Transaction and error-translation plumbing shared by every store."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        dialect_name: str = "sqlite",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """
        Args:
            session_factory: Factory producing ``AsyncSession`` objects.
            dialect_name: Name of the database dialect, used to pick the
                full-text search strategy.
            timeout: Upper bound in seconds for a single operation.
        """
        self.session_factory = session_factory
        self.dialect_name = dialect_name
        self.timeout = timeout

    async def _transaction(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self.session_factory() as session:
            async with session.begin():
                return await operation(session)

    async def _run(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """
        Run ``operation`` inside a fresh transaction under the store timeout.

        Raises:
            DuplicateRecordError: A uniqueness or integrity constraint failed.
            StorageUnavailableError: Timeout or any other database failure.
        """
        try:
            return await asyncio.wait_for(self._transaction(operation), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"{type(self).__name__}: operation exceeded {self.timeout}s")
            raise StorageUnavailableError("database operation timed out") from e
        except IntegrityError as e:
            raise DuplicateRecordError(str(e.orig)) from e
        except SQLAlchemyError as e:
            raise StorageUnavailableError(str(e)) from e


class ResourceStore(StoreBase, Generic[R]):
    """
    CRUD store for one versioned entity table.

    Subclasses set the class attributes below; records are plain dataclasses
    whose field names match the model's column names.
    """

    model: ClassVar[Any] = None
    record_type: ClassVar[type] = None

    # Columns written on insert (server-side defaults fill the rest)
    insert_fields: ClassVar[tuple[str, ...]] = ()

    # Columns written on update, besides the version bump
    mutable_fields: ClassVar[tuple[str, ...]] = ()

    # Search parameter name -> column expression
    search_columns: ClassVar[Mapping[str, Any]] = {}

    # Sort keys accepted from clients; each must name a model column
    sort_safelist: ClassVar[tuple[str, ...]] = ("id",)

    # =========================================================================
    # Record conversion
    # =========================================================================

    def _to_record(self, obj) -> R:
        values = {}
        for f in fields(self.record_type):
            value = getattr(obj, f.name)
            if isinstance(value, list):
                value = list(value)
            values[f.name] = value
        return self.record_type(**values)

    async def _after_write(self, session: AsyncSession, record: R) -> None:
        """Hook for derived data maintained in the same transaction."""

    # =========================================================================
    # Operations
    # =========================================================================

    async def insert(self, record: R) -> R:
        """
        Persist a new record.

        Returns:
            The stored record with id, version and timestamps filled in.
        """
        async def op(session: AsyncSession) -> R:
            obj = self.model(**{name: getattr(record, name) for name in self.insert_fields})
            session.add(obj)
            await session.flush()
            await session.refresh(obj)
            stored = self._to_record(obj)
            await self._after_write(session, stored)
            return stored

        return await self._run(op)

    async def get(self, record_id: int) -> R:
        if record_id < 1:
            raise RecordNotFoundError()

        async def op(session: AsyncSession) -> R:
            obj = await session.get(self.model, record_id)
            if obj is None:
                raise RecordNotFoundError()
            return self._to_record(obj)

        return await self._run(op)

    async def exists(self, record_id: int) -> bool:
        if record_id < 1:
            return False

        async def op(session: AsyncSession) -> bool:
            found = await session.scalar(select(self.model.id).where(self.model.id == record_id))
            return found is not None

        return await self._run(op)

    async def list(
        self,
        search: Optional[Mapping[str, str]],
        filters: Filters,
        **scope: Any,
    ) -> tuple[list[R], Metadata]:
        """
        Fetch one page of records.

        Args:
            search: Search parameter name -> term; empty terms match everything.
            filters: Validated pagination and sort request.
            **scope: Exact-match column constraints, e.g. ``book_id=3``.

        Returns:
            The page of records and its metadata.
        """
        predicates = [
            text_search(self.search_columns[name], term or "", self.dialect_name)
            for name, term in (search or {}).items()
        ]
        predicates.extend(getattr(self.model, column) == value for column, value in scope.items())

        sort_column = getattr(self.model, filters.sort_column())
        ordering = sort_column.desc() if filters.sort_direction() == "DESC" else sort_column.asc()

        stmt = (
            select(func.count().over().label("total_records"), self.model)
            .where(*predicates)
            .order_by(ordering, self.model.id.asc())
            .limit(filters.limit)
            .offset(filters.offset)
        )

        async def op(session: AsyncSession) -> tuple[list[R], Metadata]:
            rows = (await session.execute(stmt)).all()
            total_records = rows[0].total_records if rows else 0
            records = [self._to_record(row[1]) for row in rows]
            return records, calculate_metadata(total_records, filters.page, filters.page_size)

        return await self._run(op)

    async def update(self, record: R) -> R:
        """
        Write the mutable fields of ``record`` if nobody else has since.

        The record must carry the version it was read with.

        Returns:
            The record with its version advanced.

        Raises:
            EditConflictError: The stored version no longer matches.
            RecordNotFoundError: The record was deleted meanwhile.
        """
        values = {name: getattr(record, name) for name in self.mutable_fields}
        stmt = (
            update(self.model)
            .where(self.model.id == record.id, self.model.version == record.version)
            .values(**values, version=self.model.version + 1)
            .execution_options(synchronize_session=False)
        )

        async def op(session: AsyncSession) -> R:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                found = await session.scalar(select(self.model.id).where(self.model.id == record.id))
                if found is None:
                    raise RecordNotFoundError()
                raise EditConflictError()
            updated = replace(record, version=record.version + 1)
            await self._after_write(session, updated)
            return updated

        return await self._run(op)

    async def delete(self, record_id: int) -> None:
        if record_id < 1:
            raise RecordNotFoundError()

        async def op(session: AsyncSession) -> None:
            result = await session.execute(
                delete(self.model)
                .where(self.model.id == record_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise RecordNotFoundError()

        await self._run(op)
