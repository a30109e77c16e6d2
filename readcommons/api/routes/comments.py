"""
Comment API Routes for ReadCommons.

Reading comments is open to everyone, including anonymous callers.
"""

from dataclasses import replace

from fastapi import APIRouter, Depends, Response, status

from readcommons.api.dependencies import (
    ListParams,
    ListQuery,
    ensure_valid,
    get_comment_store,
    parse_id,
    require_permission,
)
from readcommons.api.schemas import (
    CommentCreate,
    CommentEnvelope,
    CommentListEnvelope,
    CommentUpdate,
    MessageEnvelope,
)
from readcommons.storage import Comment, CommentStore, User, validate_comment
from readcommons.storage.permissions import COMMENTS_WRITE
from readcommons.validator import Validator

router = APIRouter(prefix="/comments", tags=["comments"])

comment_query = ListQuery(CommentStore.sort_safelist, ("content", "author"))


@router.get("", response_model=CommentListEnvelope)
async def list_comments(
    params: ListParams = Depends(comment_query),
    comments: CommentStore = Depends(get_comment_store),
):
    records, metadata = await comments.list(params.search, params.filters)
    return {"comments": records, "@metadata": metadata}


@router.post("", response_model=CommentEnvelope, status_code=status.HTTP_201_CREATED)
async def create_comment(
    body: CommentCreate,
    response: Response,
    user: User = Depends(require_permission(COMMENTS_WRITE)),
    comments: CommentStore = Depends(get_comment_store),
):
    comment = Comment(content=body.content, author=body.author)

    v = Validator()
    validate_comment(v, comment)
    ensure_valid(v)

    comment = await comments.insert(comment)
    response.headers["Location"] = f"/api/v1/comments/{comment.id}"
    return {"comment": comment}


@router.get("/{comment_id}", response_model=CommentEnvelope)
async def get_comment(
    comment_id: str,
    comments: CommentStore = Depends(get_comment_store),
):
    return {"comment": await comments.get(parse_id(comment_id))}


@router.patch("/{comment_id}", response_model=CommentEnvelope)
async def update_comment(
    comment_id: str,
    body: CommentUpdate,
    user: User = Depends(require_permission(COMMENTS_WRITE)),
    comments: CommentStore = Depends(get_comment_store),
):
    comment = await comments.get(parse_id(comment_id))
    comment = replace(comment, **body.changes())

    v = Validator()
    validate_comment(v, comment)
    ensure_valid(v)

    return {"comment": await comments.update(comment)}


@router.delete("/{comment_id}", response_model=MessageEnvelope)
async def delete_comment(
    comment_id: str,
    user: User = Depends(require_permission(COMMENTS_WRITE)),
    comments: CommentStore = Depends(get_comment_store),
):
    await comments.delete(parse_id(comment_id))
    return {"message": "comment successfully deleted"}
