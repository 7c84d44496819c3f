"""
Website API - 添加网站、列出当前用户的网站
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helioscribe.common.database import get_db_session
from helioscribe.domains.auth.deps import get_current_user
from helioscribe.domains.user.models import User
from helioscribe.domains.website.schemas import WebsiteCreateRequest, WebsiteResponse
from helioscribe.domains.website.service import WebsiteRegistration, list_websites
from helioscribe.domains.website.vector_store import VectorIndexProvisioner, get_vector_provisioner

router = APIRouter()


def _serialize(website) -> dict:
    return WebsiteResponse.model_validate(website).model_dump(by_alias=True, mode="json")


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_website(
    data: WebsiteCreateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    provisioner: VectorIndexProvisioner = Depends(get_vector_provisioner),
):
    """注册网站并创建对应的向量集合"""
    website = await WebsiteRegistration(session, provisioner).run(user.email, data)
    return {
        "success": True,
        "message": f"Successfully added {website.domain}. Your website has been added to your account and is ready to use.",
        "data": {"website": _serialize(website)},
    }


@router.get("")
async def get_websites(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """当前用户的网站，最新在前"""
    websites = await list_websites(session, user.email)
    return {"success": True, "data": {"websites": [_serialize(w) for w in websites]}}
