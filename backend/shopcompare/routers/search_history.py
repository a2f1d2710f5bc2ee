from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response
from pydantic import BaseModel, Field

from ..auth import get_optional_user, get_services
from ..models import User
from ..services.registry import Services

router = APIRouter()

SESSION_COOKIE = "sessionId"
SESSION_MAX_AGE = 30 * 24 * 60 * 60  # 30 days


class RecordSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    product_id: Optional[str] = None


@router.post("/history")
async def record_search(
    payload: RecordSearchRequest,
    response: Response,
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
    current_user: Optional[User] = Depends(get_optional_user),
    services: Services = Depends(get_services),
):
    result = await services.search_history.record_search(
        payload.query,
        user_id=current_user.id if current_user else None,
        session_id=session_id,
        product_id=payload.product_id,
    )
    if result.get("session_id"):
        response.set_cookie(SESSION_COOKIE, result["session_id"], max_age=SESSION_MAX_AGE)
    return result


@router.get("/history")
async def get_search_history(
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
    current_user: Optional[User] = Depends(get_optional_user),
    services: Services = Depends(get_services),
):
    return await services.search_history.get_search_history(
        user_id=current_user.id if current_user else None,
        session_id=session_id,
    )
