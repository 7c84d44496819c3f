"""User domain models for authentication."""

from datetime import datetime
from typing import List, Optional
from sqlalchemy import String, Boolean, DateTime, JSON, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
from helioscribe.common.base import Base, UUIDMixin, TimestampMixin, get_table_args

AUTH_PROVIDER_LOCAL = "local"
AUTH_PROVIDER_GOOGLE = "google"

HOW_HEARD_OPTIONS = (
    "Reddit",
    "Search Engine",
    "Friend",
    "AI Chat Bot",
    "Social Media",
    "Ad",
    "Other",
)


def _secret(type_, **kwargs):
    """Column excluded from default loads; reading it unloaded raises."""
    return mapped_column(type_, nullable=True, deferred=True, deferred_raiseload=True, **kwargs)


class User(Base, UUIDMixin, TimestampMixin):
    """User account, local (password) or Google-registered."""

    __tablename__ = "users"
    __table_args__ = get_table_args(
        Index("idx_users_email", "email", unique=True),
        Index("idx_users_google_id", "google_id", unique=True),
        schema="auth",
    )

    # Identity
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile (required for local accounts only)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    how_heard: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    profile_picture: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Audit-lite
    registration_ip: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    device_fingerprint: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Credential
    password_hash: Mapped[Optional[str]] = _secret(String(255))

    # Provider linkage
    auth_provider: Mapped[str] = mapped_column(String(20), nullable=False, default=AUTH_PROVIDER_LOCAL)
    google_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    registered_with_google: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Email verification
    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_verification_code: Mapped[Optional[str]] = _secret(String(6))
    email_verification_code_expire: Mapped[Optional[datetime]] = _secret(DateTime)

    # Password reset (code phase, then token phase)
    password_reset_code: Mapped[Optional[str]] = _secret(String(6))
    password_reset_code_expire: Mapped[Optional[datetime]] = _secret(DateTime)
    password_reset_token: Mapped[Optional[str]] = _secret(Text)
    password_reset_token_expire: Mapped[Optional[datetime]] = _secret(DateTime)

    # MFA (secret is Fernet-encrypted)
    mfa_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mfa_secret: Mapped[Optional[str]] = _secret(Text)
    mfa_backup_codes: Mapped[Optional[List[str]]] = _secret(JSON)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} provider={self.auth_provider}>"
