from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from ..auth import get_current_user, get_services
from ..models import User
from ..services.registry import Services

router = APIRouter()


class WishlistAddRequest(BaseModel):
    product_id: str = Field(min_length=1)
    product_url: Optional[str] = None
    platform: Optional[str] = None
    target_price: Optional[float] = Field(default=None, ge=0)


class WishlistPlatform(BaseModel):
    name: str
    price: float
    product_url: str


class WishlistItem(BaseModel):
    product_id: str
    title: str
    image_url: str
    current_lowest_price: Optional[float] = None
    target_price: Optional[float] = None
    platforms: List[WishlistPlatform] = []
    added_at: datetime


@router.get("", response_model=List[WishlistItem])
async def get_wishlist(
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return await services.wishlist.get_wishlist(current_user.id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_to_wishlist(
    payload: WishlistAddRequest,
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    await services.wishlist.add_to_wishlist(
        current_user.id,
        payload.product_id,
        product_url=payload.product_url,
        platform=payload.platform,
        target_price=payload.target_price,
    )
    return {"message": "Product added to wishlist."}


@router.delete("/{product_id}")
async def remove_from_wishlist(
    product_id: str,
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    await services.wishlist.remove_from_wishlist(current_user.id, product_id)
    return {"message": "Product removed from wishlist."}
