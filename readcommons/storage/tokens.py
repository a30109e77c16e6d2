"""
Scoped bearer tokens.

The plaintext of a token leaves the server exactly once, in the response
that issued it. Only its sha256 digest is persisted, alongside the owner,
expiry and scope.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..security import generate_token_plaintext, hash_token
from .base import StoreBase
from .errors import RecordNotFoundError
from .models import TokenModel, UserModel, utcnow
from .users import User


class TokenScope(str, Enum):
    """What a token may be used for."""

    ACTIVATION = "activation"
    AUTHENTICATION = "authentication"
    PASSWORD_RESET = "password-reset"


@dataclass
class Token:
    plaintext: str
    hash: bytes = field(repr=False)
    user_id: int
    expiry: datetime
    scope: TokenScope


class TokenStore(StoreBase):
    """Issue, resolve and revoke tokens."""

    def __init__(self, *args, clock: Optional[Callable[[], datetime]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.clock = clock or utcnow

    def generate(self, user_id: int, ttl: timedelta, scope: TokenScope) -> Token:
        plaintext = generate_token_plaintext()
        return Token(
            plaintext=plaintext,
            hash=hash_token(plaintext),
            user_id=user_id,
            expiry=self.clock() + ttl,
            scope=TokenScope(scope),
        )

    async def new(self, user_id: int, ttl: timedelta, scope: TokenScope) -> Token:
        """
        Create and persist a token.

        Args:
            user_id: Owner of the token.
            ttl: How long the token stays valid.
            scope: What the token may be used for.

        Returns:
            The token, including its one-time plaintext.
        """
        token = self.generate(user_id, ttl, scope)
        await self.insert(token)
        return token

    async def insert(self, token: Token) -> None:
        async def op(session: AsyncSession) -> None:
            session.add(
                TokenModel(
                    hash=token.hash,
                    user_id=token.user_id,
                    expiry=token.expiry,
                    scope=token.scope.value,
                )
            )

        await self._run(op)

    async def get_user_for_token(self, scope: TokenScope, plaintext: str) -> User:
        """
        Resolve a live token to its owner.

        Wrong, expired and out-of-scope tokens are indistinguishable.

        Raises:
            RecordNotFoundError: No live token matches.
        """
        token_hash = hash_token(plaintext)
        now = self.clock()
        stmt = (
            select(UserModel)
            .join(TokenModel, TokenModel.user_id == UserModel.id)
            .where(
                TokenModel.hash == token_hash,
                TokenModel.scope == TokenScope(scope).value,
                TokenModel.expiry > now,
            )
        )

        async def op(session: AsyncSession) -> User:
            obj = await session.scalar(stmt)
            if obj is None:
                raise RecordNotFoundError()
            return User(
                id=obj.id,
                username=obj.username,
                email=obj.email,
                password_hash=obj.password_hash,
                activated=obj.activated,
                version=obj.version,
                created_at=obj.created_at,
            )

        return await self._run(op)

    async def delete_all_for_user(self, scope: TokenScope, user_id: int) -> int:
        """Revoke every token of ``scope`` owned by ``user_id``; returns how many."""
        async def op(session: AsyncSession) -> int:
            result = await session.execute(
                delete(TokenModel)
                .where(TokenModel.scope == TokenScope(scope).value, TokenModel.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        return await self._run(op)
