"""
Bonafide Portal — Identity provider adapter

Issues opaque user ids and bearer tokens, and resolves a bearer token back
to (id, role, metadata). Backed by the `users` table; the rest of the portal
never touches that table directly.
"""
import asyncio
import logging
from typing import Any, Awaitable, TypeVar

from jose import JWTError
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bonafide_portal.core.config import get_settings
from bonafide_portal.core.errors import (
    AuthenticationError,
    AuthProviderError,
    UpstreamTimeoutError,
)
from bonafide_portal.core.security import (
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)
from bonafide_portal.models.user import Role, User
from bonafide_portal.schemas.auth import Identity

settings = get_settings()
logger = logging.getLogger(__name__)

T = TypeVar("T")

DUPLICATE_EMAIL_MESSAGE = "A user with this email address has already been registered"


def _to_identity(user: User) -> Identity:
    return Identity(id=user.id, email=user.email, role=Role(user.role), metadata=dict(user.profile or {}))


class IdentityProvider:
    def __init__(self, db: AsyncSession, timeout: float | None = None):
        self.db = db
        self._timeout = timeout or settings.IDENTITY_TIMEOUT_SECONDS

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError:
            raise UpstreamTimeoutError("Identity provider did not respond in time.")

    async def _get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def create_user(
        self, email: str, password: str, role: Role, metadata: dict[str, Any]
    ) -> Identity:
        """Create an identity with its role fixed at creation. Raises AuthProviderError."""

        async def _create() -> User:
            if await self._get_by_email(email):
                raise AuthProviderError(DUPLICATE_EMAIL_MESSAGE)
            user = User(
                email=email.lower(),
                hashed_password=hash_password(password),
                role=role,
                profile={**metadata, "role": role.value},
            )
            self.db.add(user)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise AuthProviderError(DUPLICATE_EMAIL_MESSAGE)
            await self.db.refresh(user)
            return user

        try:
            user = await self._call(_create())
        except SQLAlchemyError as exc:
            logger.error("Identity creation failed for %s: %s", email, exc)
            raise AuthProviderError(f"Identity provider error: {exc}")
        return _to_identity(user)

    async def delete_user(self, user_id: str) -> None:
        async def _delete() -> None:
            await self.db.execute(delete(User).where(User.id == user_id))
            await self.db.commit()

        try:
            await self._call(_delete())
        except SQLAlchemyError as exc:
            raise AuthProviderError(f"Identity provider error: {exc}")

    async def authenticate(self, email: str, password: str) -> Identity:
        try:
            user = await self._call(self._get_by_email(email))
        except SQLAlchemyError as exc:
            raise AuthProviderError(f"Identity provider error: {exc}")
        if not user or not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid login credentials")
        return _to_identity(user)

    def issue_token(self, identity: Identity) -> str:
        return create_access_token({"sub": identity.id, "role": identity.role.value})

    async def resolve_token(self, token: str) -> Identity:
        """Validate a bearer token and load the identity it names."""
        try:
            claims = decode_token(token)
            if claims.get("type") != "access" or not claims.get("sub"):
                raise ValueError("Wrong token type")
        except (JWTError, ValueError):
            raise AuthenticationError("Unauthorized")

        try:
            user = await self._call(self.db.get(User, claims["sub"]))
        except SQLAlchemyError as exc:
            raise AuthProviderError(f"Identity provider error: {exc}")
        if user is None:
            raise AuthenticationError("Unauthorized")
        return _to_identity(user)

    async def ping(self) -> None:
        await self._call(self.db.execute(select(1)))
