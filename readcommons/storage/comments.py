"""
Community comments.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..validator import Validator, byte_length
from .base import ResourceStore
from .models import CommentModel


@dataclass
class Comment:
    id: int = 0
    content: str = ""
    author: str = ""
    version: int = 1
    created_at: Optional[datetime] = None


def validate_comment(v: Validator, comment: Comment) -> None:
    v.check(comment.content != "", "content", "must be provided")
    v.check(byte_length(comment.content) <= 100, "content", "must not be more than 100 bytes long")
    v.check(comment.author != "", "author", "must be provided")
    v.check(byte_length(comment.author) <= 25, "author", "must not be more than 25 bytes long")


class CommentStore(ResourceStore[Comment]):
    model = CommentModel
    record_type = Comment

    insert_fields = ("content", "author")
    mutable_fields = insert_fields

    search_columns = {
        "content": CommentModel.content,
        "author": CommentModel.author,
    }
    sort_safelist = ("id", "author", "created_at")
