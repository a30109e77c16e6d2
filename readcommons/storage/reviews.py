"""
Book reviews.

A book's ``average_rating`` is derived from its reviews and recomputed in
the same transaction as every review write.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..validator import Validator, byte_length
from .base import ResourceStore
from .errors import RecordNotFoundError
from .filters import Filters, Metadata
from .models import BookModel, ReviewModel


MIN_RATING = 1
MAX_RATING = 5


@dataclass
class Review:
    id: int = 0
    book_id: int = 0
    user_id: int = 0
    rating: float = 0.0
    review_text: str = ""
    helpful_count: int = 0
    version: int = 1
    created_at: Optional[datetime] = None


def validate_review(v: Validator, review: Review) -> None:
    v.check(review.rating is not None, "rating", "must be provided")
    v.check(
        review.rating is not None and MIN_RATING <= review.rating <= MAX_RATING,
        "rating",
        f"must be between {MIN_RATING} and {MAX_RATING}",
    )
    v.check(review.review_text != "", "review_text", "must be provided")
    v.check(byte_length(review.review_text) <= 100, "review_text", "must not be more than 100 bytes long")


class ReviewStore(ResourceStore[Review]):
    model = ReviewModel
    record_type = Review

    insert_fields = ("book_id", "user_id", "rating", "review_text")
    mutable_fields = ("rating", "review_text")

    search_columns = {"text": ReviewModel.review_text}
    sort_safelist = ("id", "rating", "helpful_count", "created_at")

    async def _after_write(self, session: AsyncSession, record: Review) -> None:
        await self._refresh_average_rating(session, record.book_id)

    async def _refresh_average_rating(self, session: AsyncSession, book_id: int) -> None:
        average = await session.scalar(
            select(func.coalesce(func.avg(ReviewModel.rating), 0.0)).where(
                ReviewModel.book_id == book_id
            )
        )
        await session.execute(
            update(BookModel)
            .where(BookModel.id == book_id)
            .values(average_rating=round(float(average), 2))
            .execution_options(synchronize_session=False)
        )

    async def list_for_book(self, book_id: int, text: str, filters: Filters) -> tuple[list[Review], Metadata]:
        return await self.list({"text": text}, filters, book_id=book_id)

    async def list_for_user(self, user_id: int, filters: Filters) -> tuple[list[Review], Metadata]:
        return await self.list({}, filters, user_id=user_id)

    async def delete(self, record_id: int) -> None:
        if record_id < 1:
            raise RecordNotFoundError()

        async def op(session: AsyncSession) -> None:
            book_id = await session.scalar(
                select(ReviewModel.book_id).where(ReviewModel.id == record_id)
            )
            if book_id is None:
                raise RecordNotFoundError()
            await session.execute(
                delete(ReviewModel)
                .where(ReviewModel.id == record_id)
                .execution_options(synchronize_session=False)
            )
            await self._refresh_average_rating(session, book_id)

        await self._run(op)
