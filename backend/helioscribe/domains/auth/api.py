"""
Auth API - 注册、登录、邮箱验证、Google OAuth、密码重置
"""
from fastapi import APIRouter, Depends, Request, Query, status
from fastapi.responses import RedirectResponse
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from helioscribe.common.database import get_db_session
from helioscribe.common.exceptions import ExternalServiceError
from helioscribe.domains.auth.deps import get_auth_service, get_client_ip, get_current_user
from helioscribe.domains.auth.google import GoogleOAuthClient, GoogleOAuthClients, get_google_clients
from helioscribe.domains.auth.schemas import (
    EmailRequest,
    LoginRequest,
    LoginUser,
    RegisterRequest,
    ResetPasswordRequest,
    UserProfile,
    VerifyEmailRequest,
    VerifyResetCodeRequest,
)
from helioscribe.domains.auth.service import (
    FORGOT_PASSWORD_SENT,
    GOOGLE_AUTH_FAILED,
    AuthService,
    GoogleCallbackError,
    LoginResult,
    frontend_redirect,
)
from helioscribe.domains.user.models import User

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_payload(result: LoginResult, message: str) -> dict:
    return {
        "success": True,
        "message": message,
        "token": result.token,
        "user": LoginUser.model_validate(result.user).model_dump(by_alias=True),
    }


# =============================================================================
# Registration & verification
# =============================================================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Register a new local user; a verification code is emailed."""
    user = await auth_service.register(session, data, client_ip=get_client_ip(request))
    return {
        "success": True,
        "message": "Registration successful. Please check your email for verification code.",
        "userId": user.id,
    }


@router.post("/verify-email")
async def verify_email(
    data: VerifyEmailRequest,
    session: AsyncSession = Depends(get_db_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    result = await auth_service.verify_email(session, data.email, data.code)
    await session.commit()
    return _session_payload(result, "Email verified successfully")


@router.post("/resend-verification")
async def resend_verification(
    data: EmailRequest,
    session: AsyncSession = Depends(get_db_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.resend_verification(session, data.email)
    return {"success": True, "message": "Verification code sent to your email"}


# =============================================================================
# Password login
# =============================================================================

@router.post("/login")
async def login(
    data: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Password login. MFA accounts answer ``mfaRequired`` until mfaToken is sent."""
    result = await auth_service.login(session, data, client_ip=get_client_ip(request))
    if result.mfa_required:
        return {
            "success": True,
            "mfaRequired": True,
            "message": "MFA verification required. Please enter the code from your authenticator app.",
        }
    await session.commit()
    return _session_payload(result, "Login successful")


@router.get("/me")
async def get_me(user: User = Depends(get_current_user)):
    """获取当前登录用户信息"""
    return {"success": True, "user": UserProfile.model_validate(user).model_dump(by_alias=True, mode="json")}


# =============================================================================
# Google OAuth
# =============================================================================

def _consent_redirect(client: GoogleOAuthClient) -> RedirectResponse:
    if not client.configured:
        raise ExternalServiceError("Google OAuth is not configured")
    return RedirectResponse(url=client.authorization_url())


@router.get("/google")
async def google_login(clients: GoogleOAuthClients = Depends(get_google_clients)):
    """发起 Google OAuth 登录 (existing users)"""
    return _consent_redirect(clients.login)


@router.get("/google/register")
async def google_register(clients: GoogleOAuthClients = Depends(get_google_clients)):
    """发起 Google OAuth 注册 (new users)"""
    return _consent_redirect(clients.register)


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    clients: GoogleOAuthClients = Depends(get_google_clients),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Google OAuth 登录回调"""
    try:
        result = await auth_service.google_login(session, clients.login, code, error)
        await session.commit()
    except GoogleCallbackError as e:
        return RedirectResponse(url=frontend_redirect(e.page, error=e.code))
    except Exception as e:
        logger.error(f"Google OAuth callback error: {e}", exc_info=True)
        await session.rollback()
        return RedirectResponse(url=frontend_redirect("/login", error=GOOGLE_AUTH_FAILED))
    return RedirectResponse(url=frontend_redirect("/dashboard", token=result.token))


@router.get("/google/callback/register")
async def google_register_callback(
    request: Request,
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    fingerprint: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    clients: GoogleOAuthClients = Depends(get_google_clients),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Google OAuth 注册回调"""
    try:
        result = await auth_service.google_register(
            session,
            clients.register,
            code,
            error,
            client_ip=get_client_ip(request),
            device_fingerprint=fingerprint,
        )
        await session.commit()
    except GoogleCallbackError as e:
        return RedirectResponse(url=frontend_redirect(e.page, error=e.code))
    except Exception as e:
        logger.error(f"Google OAuth registration callback error: {e}", exc_info=True)
        await session.rollback()
        return RedirectResponse(url=frontend_redirect("/register", error=GOOGLE_AUTH_FAILED))
    return RedirectResponse(url=frontend_redirect("/dashboard", token=result.token))


# =============================================================================
# Forgot / reset password
# =============================================================================

@router.post("/forgot-password")
async def forgot_password(
    data: EmailRequest,
    session: AsyncSession = Depends(get_db_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.forgot_password(session, data.email)
    return {"success": True, "message": FORGOT_PASSWORD_SENT}


@router.post("/verify-reset-code")
async def verify_reset_code(
    data: VerifyResetCodeRequest,
    session: AsyncSession = Depends(get_db_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    reset_token = await auth_service.verify_reset_code(session, data.email, data.code)
    await session.commit()
    return {"success": True, "message": "Reset code verified", "resetToken": reset_token}


@router.post("/reset-password")
async def reset_password(
    data: ResetPasswordRequest,
    session: AsyncSession = Depends(get_db_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.reset_password(session, data.reset_token, data.new_password)
    await session.commit()
    return {"success": True, "message": "Password has been reset successfully. You can now log in."}
