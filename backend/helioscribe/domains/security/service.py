"""
Security Service - 修改密码 & MFA 注册/停用

Every method takes the already-authenticated user id and reloads the row with
the secret columns it needs. Commit is left to the caller.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from helioscribe.common.exceptions import (
    AuthenticationError,
    NotFoundError,
    ValidationError,
)
from helioscribe.domains.auth.mfa import MfaService, MfaSetup
from helioscribe.domains.user.accounts import require_local_account
from helioscribe.domains.user.models import User
from helioscribe.domains.user.passwords import get_password_hash, verify_password
from helioscribe.domains.user.repository import UserRepository, user_repository

logger = logging.getLogger(__name__)

GOOGLE_NO_PASSWORD_CHANGE = (
    "This account was registered using Google. "
    "Password changes are not available for Google accounts."
)
GOOGLE_NO_MFA_DISABLE = (
    "This account was registered using Google. "
    "Please sign in with Google to manage MFA."
)


class SecurityService:
    def __init__(self, mfa: MfaService, repository: Optional[UserRepository] = None):
        self.mfa = mfa
        self.repository = repository or user_repository

    async def _load(self, session: AsyncSession, user_id: str, *secrets: str) -> User:
        user = await self.repository.get_by_id(session, user_id, secrets=secrets)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def change_password(
        self, session: AsyncSession, user_id: str, current_password: str, new_password: str
    ) -> None:
        user = await self._load(session, user_id, "password_hash")
        account = require_local_account(user, GOOGLE_NO_PASSWORD_CHANGE)

        if not verify_password(current_password, account.password_hash):
            raise AuthenticationError("Current password is incorrect")
        if verify_password(new_password, account.password_hash):
            raise ValidationError("New password must be different from your current password")

        await self.repository.set_password_hash(session, user, get_password_hash(new_password))
        logger.info(f"Password changed for user {user.id}")

    async def setup_mfa(self, session: AsyncSession, user_id: str) -> MfaSetup:
        """Generate a fresh secret and backup codes; MFA stays off until verified."""
        user = await self._load(session, user_id, "mfa_secret", "mfa_backup_codes")
        if user.mfa_enabled:
            raise ValidationError("MFA is already enabled. Disable it before setting it up again.")

        setup = self.mfa.setup(user)
        await self.repository.save(session, user)
        return setup

    async def verify_mfa(self, session: AsyncSession, user_id: str, token: str) -> list:
        user = await self._load(session, user_id, "mfa_secret", "mfa_backup_codes")
        if not self.mfa.has_secret(user):
            raise ValidationError("MFA secret not found. Please set up MFA first.")
        if not self.mfa.verify_totp(user, token):
            raise ValidationError("Invalid verification code. Please try again.")

        self.mfa.enable(user)
        await self.repository.save(session, user)
        logger.info(f"MFA enabled for user {user.id}")
        return list(user.mfa_backup_codes or [])

    async def disable_mfa(self, session: AsyncSession, user_id: str, password: str) -> None:
        user = await self._load(session, user_id, "password_hash", "mfa_secret", "mfa_backup_codes")
        account = require_local_account(user, GOOGLE_NO_MFA_DISABLE)

        if not verify_password(password, account.password_hash):
            raise AuthenticationError("Password is incorrect")

        self.mfa.disable(user)
        await self.repository.save(session, user)
        logger.info(f"MFA disabled for user {user.id}")

    async def mfa_status(self, session: AsyncSession, user_id: str) -> dict:
        user = await self._load(session, user_id, "mfa_secret")
        return {"mfa_enabled": bool(user.mfa_enabled), "has_secret": self.mfa.has_secret(user)}
