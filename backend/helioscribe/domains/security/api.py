"""
Security API - 修改密码、MFA 设置/验证/停用/状态
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from helioscribe.common.database import get_db_session
from helioscribe.domains.auth.deps import get_current_user
from helioscribe.domains.auth.mfa import MfaService, get_mfa_service
from helioscribe.domains.security.schemas import (
    ChangePasswordRequest,
    MfaDisableRequest,
    MfaSetupResponse,
    MfaStatusResponse,
    MfaVerifyRequest,
)
from helioscribe.domains.security.service import SecurityService
from helioscribe.domains.user.models import User

router = APIRouter()


def get_security_service(mfa: MfaService = Depends(get_mfa_service)) -> SecurityService:
    return SecurityService(mfa=mfa)


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    security: SecurityService = Depends(get_security_service),
):
    await security.change_password(session, user.id, data.current_password, data.new_password)
    await session.commit()
    return {"success": True, "message": "Password has been changed successfully"}


@router.get("/mfa/setup")
async def mfa_setup(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    security: SecurityService = Depends(get_security_service),
):
    """生成 TOTP 密钥、二维码和备用码（尚未启用）"""
    setup = await security.setup_mfa(session, user.id)
    await session.commit()
    data = MfaSetupResponse(
        secret=setup.secret,
        qr_code=setup.qr_code,
        backup_codes=setup.backup_codes,
        manual_entry_key=setup.secret,
    )
    return {"success": True, "data": data.model_dump(by_alias=True)}


@router.post("/mfa/verify")
async def mfa_verify(
    data: MfaVerifyRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    security: SecurityService = Depends(get_security_service),
):
    """校验一次验证码后启用 MFA"""
    backup_codes = await security.verify_mfa(session, user.id, data.token)
    await session.commit()
    return {
        "success": True,
        "message": "MFA has been enabled successfully",
        "data": {"backupCodes": backup_codes},
    }


@router.post("/mfa/disable")
async def mfa_disable(
    data: MfaDisableRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    security: SecurityService = Depends(get_security_service),
):
    await security.disable_mfa(session, user.id, data.password)
    await session.commit()
    return {"success": True, "message": "MFA has been disabled successfully"}


@router.get("/mfa/status")
async def mfa_status(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    security: SecurityService = Depends(get_security_service),
):
    status = await security.mfa_status(session, user.id)
    return {"success": True, "data": MfaStatusResponse(**status).model_dump(by_alias=True)}
