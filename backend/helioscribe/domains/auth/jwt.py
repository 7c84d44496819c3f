"""
JWT Token Utilities - 会话令牌与密码重置令牌
"""
import uuid
from datetime import timedelta
from typing import Optional, Dict, Any
from jose import jwt, JWTError, ExpiredSignatureError
import logging

from helioscribe.common.base import utcnow
from helioscribe.common.config import settings

logger = logging.getLogger(__name__)

# JWT Configuration
ALGORITHM = "HS256"
PASSWORD_RESET_TOKEN_TYPE = "password_reset"


class ResetTokenError(Exception):
    """Reset token rejected by signature/claims checks."""

    EXPIRED = "expired"
    MALFORMED = "malformed"
    WRONG_TYPE = "wrong_type"

    def __init__(self, reason: str, claims: Optional[Dict[str, Any]] = None):
        super().__init__(reason)
        self.reason = reason
        # Unverified-expiry claims, only set for EXPIRED
        self.claims = claims


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """创建JWT token"""
    to_encode = data.copy()
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(days=settings.session_token_expire_days)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)
    return encoded_jwt


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """验证JWT token并返回payload"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
        return payload
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def create_session_token(user_id: str) -> str:
    """Session token: subject only, no ``type`` claim."""
    return create_access_token({"sub": user_id})


def decode_session_token(token: str) -> Optional[str]:
    """Return the user id of a valid session token, else None."""
    payload = verify_token(token)
    if payload is None or "type" in payload:
        return None
    return payload.get("sub")


def create_password_reset_token(user_id: str, email: str) -> str:
    return create_access_token(
        {
            "sub": user_id,
            "email": email.lower(),
            "type": PASSWORD_RESET_TOKEN_TYPE,
            # unique per issue
            "jti": uuid.uuid4().hex,
        },
        expires_delta=timedelta(minutes=settings.password_reset_token_expire_minutes),
    )


def decode_password_reset_token(token: str) -> Dict[str, Any]:
    """
    Validate signature, expiry and ``type`` of a reset token.

    Raises:
        ResetTokenError: with reason EXPIRED, MALFORMED or WRONG_TYPE
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        claims = jwt.decode(
            token, settings.secret_key, algorithms=[ALGORITHM], options={"verify_exp": False}
        )
        raise ResetTokenError(ResetTokenError.EXPIRED, claims=claims)
    except JWTError as e:
        logger.warning(f"Reset token rejected: {e}")
        raise ResetTokenError(ResetTokenError.MALFORMED)

    if payload.get("type") != PASSWORD_RESET_TOKEN_TYPE:
        raise ResetTokenError(ResetTokenError.WRONG_TYPE)
    if not payload.get("sub") or not payload.get("email"):
        raise ResetTokenError(ResetTokenError.MALFORMED)
    return payload
