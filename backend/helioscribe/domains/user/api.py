"""User API endpoints."""

from fastapi import APIRouter, Depends

from helioscribe.domains.auth.deps import get_current_user
from helioscribe.domains.auth.schemas import UserProfile
from helioscribe.domains.user.models import User

router = APIRouter()


@router.get("/dashboard")
async def dashboard(current_user: User = Depends(get_current_user)):
    """Profile plus account stats for the dashboard page."""
    profile = UserProfile.model_validate(current_user).model_dump(by_alias=True, mode="json")
    return {
        "success": True,
        "data": {
            "user": profile,
            "stats": {
                "accountCreated": profile["createdAt"],
                "lastLogin": profile["lastLogin"],
                "emailVerified": profile["isEmailVerified"],
            },
        },
    }
