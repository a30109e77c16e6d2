"""
Review API Routes for ReadCommons.

Reviews hang off a book for listing and creation, and are addressed
directly for reads and writes. Only the author of a review may change it.
"""

from dataclasses import replace

from fastapi import APIRouter, Depends, Response, status

from readcommons.api.dependencies import (
    ListParams,
    ListQuery,
    ensure_valid,
    get_book_store,
    get_review_store,
    parse_id,
    require_permission,
)
from readcommons.api.middleware.error_handler import NotFoundError
from readcommons.api.schemas import (
    MessageEnvelope,
    ReviewCreate,
    ReviewEnvelope,
    ReviewListEnvelope,
    ReviewUpdate,
)
from readcommons.storage import (
    BookStore,
    DuplicateRecordError,
    Review,
    ReviewStore,
    User,
    validate_review,
)
from readcommons.storage.permissions import BOOKS_READ, REVIEWS_WRITE
from readcommons.validator import Validator

router = APIRouter(tags=["reviews"])

review_query = ListQuery(ReviewStore.sort_safelist, ("text",))


async def _get_owned_review(reviews: ReviewStore, review_id: str, user: User) -> Review:
    review = await reviews.get(parse_id(review_id))
    if review.user_id != user.id:
        raise NotFoundError()
    return review


@router.get("/books/{book_id}/reviews", response_model=ReviewListEnvelope)
async def list_book_reviews(
    book_id: str,
    user: User = Depends(require_permission(BOOKS_READ)),
    params: ListParams = Depends(review_query),
    books: BookStore = Depends(get_book_store),
    reviews: ReviewStore = Depends(get_review_store),
):
    book_id = parse_id(book_id)
    if not await books.exists(book_id):
        raise NotFoundError()

    records, metadata = await reviews.list_for_book(book_id, params.search["text"], params.filters)
    return {"reviews": records, "@metadata": metadata}


@router.post(
    "/books/{book_id}/reviews",
    response_model=ReviewEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_review(
    book_id: str,
    body: ReviewCreate,
    response: Response,
    user: User = Depends(require_permission(REVIEWS_WRITE)),
    books: BookStore = Depends(get_book_store),
    reviews: ReviewStore = Depends(get_review_store),
):
    """Review a book; the book's average rating follows."""
    book_id = parse_id(book_id)
    if not await books.exists(book_id):
        raise NotFoundError()

    review = Review(book_id=book_id, user_id=user.id, rating=body.rating, review_text=body.review_text)

    v = Validator()
    validate_review(v, review)
    ensure_valid(v)

    try:
        review = await reviews.insert(review)
    except DuplicateRecordError:
        # Foreign key failure: the book was deleted after the existence check
        raise NotFoundError()
    response.headers["Location"] = f"/api/v1/reviews/{review.id}"
    return {"review": review}


@router.get("/reviews/{review_id}", response_model=ReviewEnvelope)
async def get_review(
    review_id: str,
    user: User = Depends(require_permission(BOOKS_READ)),
    reviews: ReviewStore = Depends(get_review_store),
):
    return {"review": await reviews.get(parse_id(review_id))}


@router.patch("/reviews/{review_id}", response_model=ReviewEnvelope)
async def update_review(
    review_id: str,
    body: ReviewUpdate,
    user: User = Depends(require_permission(REVIEWS_WRITE)),
    reviews: ReviewStore = Depends(get_review_store),
):
    review = await _get_owned_review(reviews, review_id, user)
    review = replace(review, **body.changes())

    v = Validator()
    validate_review(v, review)
    ensure_valid(v)

    return {"review": await reviews.update(review)}


@router.delete("/reviews/{review_id}", response_model=MessageEnvelope)
async def delete_review(
    review_id: str,
    user: User = Depends(require_permission(REVIEWS_WRITE)),
    reviews: ReviewStore = Depends(get_review_store),
):
    review = await _get_owned_review(reviews, review_id, user)
    await reviews.delete(review.id)
    return {"message": "review successfully deleted"}
