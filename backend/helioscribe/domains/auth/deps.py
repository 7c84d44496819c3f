"""
Auth Dependencies - 依赖注入函数
"""
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from helioscribe.common.database import get_db_session
from helioscribe.common.exceptions import AuthenticationError
from helioscribe.domains.auth.jwt import decode_session_token
from helioscribe.domains.auth.mailer import EmailSender, get_email_sender
from helioscribe.domains.auth.mfa import MfaService, get_mfa_service
from helioscribe.domains.auth.recaptcha import RecaptchaVerifier, get_bot_verifier
from helioscribe.domains.auth.service import AuthService
from helioscribe.domains.user.models import User
from helioscribe.domains.user.repository import user_repository

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def get_auth_service(
    bot_verifier: RecaptchaVerifier = Depends(get_bot_verifier),
    email_sender: EmailSender = Depends(get_email_sender),
    mfa: MfaService = Depends(get_mfa_service),
) -> AuthService:
    return AuthService(bot_verifier=bot_verifier, email_sender=email_sender, mfa=mfa)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """获取当前用户（必须登录，未登录返回401）"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Not authorized, no token")

    user_id = decode_session_token(credentials.credentials)
    if user_id is None:
        raise AuthenticationError("Not authorized, token failed")

    user = await user_repository.get_by_id(session, user_id)
    if user is None:
        raise AuthenticationError("Not authorized, user not found")
    return user
