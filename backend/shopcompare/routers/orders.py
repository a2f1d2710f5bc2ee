from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from ..auth import get_current_user, get_services
from ..models import Order, User
from ..services.registry import Services

router = APIRouter()


class OrderCreateRequest(BaseModel):
    order_id: str = Field(min_length=1)
    product_name: str = Field(min_length=1)
    platform: str = Field(min_length=1)
    purchase_date: datetime
    order_url: str = Field(min_length=1)


@router.get("", response_model=List[Order])
async def get_orders(
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return await services.orders.get_orders(current_user.id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_order(
    payload: OrderCreateRequest,
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    order = await services.orders.add_order(current_user.id, **payload.model_dump())
    return {"message": "Order added for tracking.", "order": order}


@router.put("/{order_id}/refresh-status")
async def refresh_order_status(
    order_id: str,
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    order = await services.orders.refresh_order_status(current_user.id, order_id)
    return {"message": "Order status updated.", "new_status": order.status}


@router.delete("/{order_id}")
async def delete_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    await services.orders.delete_order(current_user.id, order_id)
    return {"message": "Order removed."}
