"""Six-digit one-time codes for email verification and password reset."""

import hmac
import secrets
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple

from helioscribe.common.base import utcnow

CODE_DIGITS = 6


class CodeCheck(str, Enum):
    OK = "ok"
    MISSING = "missing"
    EXPIRED = "expired"
    MISMATCH = "mismatch"


def generate_numeric_code(digits: int = CODE_DIGITS) -> str:
    """Uniformly random zero-padded decimal string."""
    return f"{secrets.randbelow(10 ** digits):0{digits}d}"


def issue_code(expire_minutes: int, now: Optional[datetime] = None) -> Tuple[str, datetime]:
    """Fresh code and its expiry; callers overwrite any pending pair."""
    now = now or utcnow()
    return generate_numeric_code(), now + timedelta(minutes=expire_minutes)


def check_code(
    stored: Optional[str],
    expires_at: Optional[datetime],
    submitted: str,
    now: Optional[datetime] = None,
) -> CodeCheck:
    if not stored or not expires_at:
        return CodeCheck.MISSING
    if expires_at < (now or utcnow()):
        return CodeCheck.EXPIRED
    if not hmac.compare_digest(stored.encode(), (submitted or "").encode()):
        return CodeCheck.MISMATCH
    return CodeCheck.OK
