from fastapi import APIRouter, Depends

from ..auth import get_current_user, get_services
from ..models import User, UserPreferences
from ..services.registry import Services

router = APIRouter()


@router.put("/preferences")
async def update_preferences(
    payload: UserPreferences,
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    await services.auth.update_preferences(current_user.id, payload)
    return {"message": "Preferences updated successfully."}
