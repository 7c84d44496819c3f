"""Password hashing and complexity rules."""

import re
from functools import lru_cache

from passlib.context import CryptContext

from helioscribe.common.config import settings

PASSWORD_MIN_LENGTH = 8
_COMPLEXITY_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


@lru_cache(maxsize=4)
def _context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def get_password_hash(password: str) -> str:
    """Hash a plaintext password with bcrypt."""
    return _context(settings.bcrypt_rounds).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of a plaintext password against a stored hash."""
    if not password or not password_hash:
        return False
    return _context(settings.bcrypt_rounds).verify(password, password_hash)


def password_complexity_error(password: str) -> str | None:
    """Return the user-facing reason a password is too weak, or None."""
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    if not _COMPLEXITY_RE.match(password):
        return "Password must contain at least one uppercase letter, one lowercase letter, and one number"
    return None
