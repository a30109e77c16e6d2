"""
Database models for ReadCommons.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
    Index,
    func,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Largest values the Integer id columns and the BigInteger isbn column hold
MAX_ID = 2 ** 31 - 1
MAX_ISBN = 2 ** 63 - 1


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the timezone-less DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BookModel(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    title = Column(String(100), nullable=False, index=True)
    authors = Column(JSON, nullable=False, default=list)
    isbn = Column(BigInteger, nullable=False, index=True)
    publication_date = Column(Date, nullable=False)
    genres = Column(JSON, nullable=False, default=list)
    description = Column(Text, nullable=False)
    average_rating = Column(Float, nullable=False, default=0.0)
    version = Column(Integer, nullable=False, default=1)


class ReviewModel(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Float, nullable=False)
    review_text = Column(String(100), nullable=False)
    helpful_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)


class ReadingListModel(Base):
    __tablename__ = "reading_lists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    name = Column(String(25), nullable=False)
    description = Column(String(250), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)


class ReadingListBookModel(Base):
    __tablename__ = "reading_list_books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reading_list_id = Column(
        Integer, ForeignKey("reading_lists.id", ondelete="CASCADE"), nullable=False
    )
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False)
    added_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("reading_list_id", "book_id", name="uq_reading_list_book"),
    )


class CommentModel(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    content = Column(String(100), nullable=False)
    author = Column(String(25), nullable=False)
    version = Column(Integer, nullable=False, default=1)


class UserModel(Base):
    """User model for authentication."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    username = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(LargeBinary, nullable=False)
    activated = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)


# Email uniqueness is case-insensitive, matching UserStore.get_by_email
Index("idx_users_email_lower", func.lower(UserModel.email), unique=True)


class TokenModel(Base):
    __tablename__ = "tokens"

    hash = Column(LargeBinary, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expiry = Column(DateTime, nullable=False)
    scope = Column(String(32), nullable=False)

    __table_args__ = (
        Index("idx_tokens_user_scope", "user_id", "scope"),
    )


class PermissionModel(Base):
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(64), unique=True, nullable=False)


class UserPermissionModel(Base):
    __tablename__ = "users_permissions"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    permission_id = Column(
        Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )
