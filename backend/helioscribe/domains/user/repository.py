"""User repository for database operations."""

from typing import Iterable, Optional
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer
from helioscribe.domains.user.models import User, AUTH_PROVIDER_LOCAL
from helioscribe.domains.user.passwords import get_password_hash

# Columns that are never part of a default read
SECRET_FIELDS = (
    "password_hash",
    "email_verification_code",
    "email_verification_code_expire",
    "password_reset_code",
    "password_reset_code_expire",
    "password_reset_token",
    "password_reset_token_expire",
    "mfa_secret",
    "mfa_backup_codes",
)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    def _options(secrets: Iterable[str]):
        unknown = set(secrets) - set(SECRET_FIELDS)
        if unknown:
            raise ValueError(f"Not a secret field: {', '.join(sorted(unknown))}")
        return [undefer(getattr(User, name)) for name in secrets]

    async def get_by_id(
        self, session: AsyncSession, user_id: str, secrets: Iterable[str] = ()
    ) -> Optional[User]:
        """Get user by ID, loading the requested secret fields."""
        stmt = select(User).where(User.id == user_id).options(*self._options(secrets))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(
        self, session: AsyncSession, email: str, secrets: Iterable[str] = ()
    ) -> Optional[User]:
        """Get user by email (case-insensitive)."""
        stmt = (
            select(User)
            .where(User.email == normalize_email(email))
            .options(*self._options(secrets))
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email_or_google_id(
        self, session: AsyncSession, email: str, google_id: str
    ) -> Optional[User]:
        """Get user matching either the email or the Google subject id; a google_id match wins."""
        stmt = select(User).where(
            or_(User.email == normalize_email(email), User.google_id == google_id)
        )
        result = await session.execute(stmt)
        users = result.scalars().all()
        for user in users:
            if google_id and user.google_id == google_id:
                return user
        return users[0] if users else None

    async def email_exists(self, session: AsyncSession, email: str) -> bool:
        """Check if email already exists."""
        user = await self.get_by_email(session, email)
        return user is not None

    async def create(self, session: AsyncSession, **fields) -> User:
        """
        Create a user.

        A plaintext ``password`` is hashed here, exactly once. Callers holding
        an already-hashed value must use ``set_password_hash`` instead.
        """
        password = fields.pop("password", None)
        if password is not None:
            fields["password_hash"] = get_password_hash(password)
        fields["email"] = normalize_email(fields["email"])
        fields.setdefault("auth_provider", AUTH_PROVIDER_LOCAL)
        fields.setdefault("registered_with_google", False)
        fields.setdefault("is_email_verified", False)
        fields.setdefault("mfa_enabled", False)
        fields.setdefault("mfa_backup_codes", [])
        for name in SECRET_FIELDS:
            fields.setdefault(name, None)

        user = User(**fields)
        session.add(user)
        await session.flush()
        return user

    async def save(self, session: AsyncSession, user: User) -> User:
        """Flush pending changes on a loaded user."""
        session.add(user)
        await session.flush()
        return user

    async def set_password_hash(self, session: AsyncSession, user: User, password_hash: str) -> User:
        """Write an already-computed hash without re-hashing."""
        user.password_hash = password_hash
        return await self.save(session, user)


# Singleton instance
user_repository = UserRepository()
