"""
Permission codes and per-user grants.
"""

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from .base import StoreBase
from .models import PermissionModel, UserPermissionModel


BOOKS_READ = "books:read"
BOOKS_WRITE = "books:write"
REVIEWS_WRITE = "reviews:write"
LISTS_WRITE = "lists:write"
COMMENTS_WRITE = "comments:write"

ALL_PERMISSIONS = (BOOKS_READ, BOOKS_WRITE, REVIEWS_WRITE, LISTS_WRITE, COMMENTS_WRITE)

# Granted at registration; the catalogue itself is curated
DEFAULT_USER_PERMISSIONS = (BOOKS_READ, REVIEWS_WRITE, LISTS_WRITE, COMMENTS_WRITE)


class Permissions(frozenset):
    """A user's grant set."""

    def includes(self, code: str) -> bool:
        return code in self


class PermissionStore(StoreBase):

    async def seed(self, codes=ALL_PERMISSIONS) -> None:
        """Ensure every permission code has a row."""
        async def op(session: AsyncSession) -> None:
            existing = set((await session.scalars(select(PermissionModel.code))).all())
            for code in codes:
                if code not in existing:
                    session.add(PermissionModel(code=code))

        await self._run(op)

    async def get_all_for_user(self, user_id: int) -> Permissions:
        stmt = (
            select(PermissionModel.code)
            .join(UserPermissionModel, UserPermissionModel.permission_id == PermissionModel.id)
            .where(UserPermissionModel.user_id == user_id)
        )

        async def op(session: AsyncSession) -> Permissions:
            return Permissions((await session.scalars(stmt)).all())

        return await self._run(op)

    async def add_for_user(self, user_id: int, *codes: str) -> None:
        """
        Grant permission codes to a user.

        Raises:
            DuplicateRecordError: The user already holds one of the codes.
            ValueError: One of the codes was never seeded.
        """
        async def op(session: AsyncSession) -> None:
            ids = (
                await session.scalars(select(PermissionModel.id).where(PermissionModel.code.in_(codes)))
            ).all()
            if len(ids) != len(set(codes)):
                raise ValueError(f"unknown permission code in {codes!r}")
            await session.execute(
                insert(UserPermissionModel),
                [{"user_id": user_id, "permission_id": permission_id} for permission_id in ids],
            )

        await self._run(op)
