"""
User accounts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..security import validate_password_plaintext
from ..validator import EMAIL_RX, Validator, byte_length, matches
from .base import ResourceStore
from .errors import RecordNotFoundError
from .models import UserModel


@dataclass
class User:
    id: int = 0
    username: str = ""
    email: str = ""
    password_hash: bytes = field(default=b"", repr=False)
    activated: bool = False
    version: int = 1
    created_at: Optional[datetime] = None


def validate_email(v: Validator, email: str) -> None:
    v.check(email != "", "email", "must be provided")
    v.check(matches(email, EMAIL_RX), "email", "must be a valid email address")


def validate_user(v: Validator, user: User, password: Optional[str] = None) -> None:
    """
    Validate a user record.

    Args:
        v: Validator collecting errors.
        user: Record under validation.
        password: Plaintext password, when one is being set.
    """
    v.check(user.username != "", "username", "must be provided")
    v.check(byte_length(user.username) <= 200, "username", "must not be more than 200 bytes long")

    validate_email(v, user.email)

    if password is not None:
        validate_password_plaintext(v, password)


class UserStore(ResourceStore[User]):
    model = UserModel
    record_type = User

    insert_fields = ("username", "email", "password_hash", "activated")
    mutable_fields = insert_fields

    search_columns = {
        "username": UserModel.username,
        "email": UserModel.email,
    }
    sort_safelist = ("id", "username", "created_at")

    async def get_by_email(self, email: str) -> User:
        """Look up a user by email address, case-insensitively."""
        async def op(session: AsyncSession) -> User:
            obj = await session.scalar(
                select(UserModel).where(func.lower(UserModel.email) == email.lower())
            )
            if obj is None:
                raise RecordNotFoundError()
            return self._to_record(obj)

        return await self._run(op)
