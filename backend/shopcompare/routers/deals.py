from typing import List

from fastapi import APIRouter, Depends

from ..auth import get_services
from ..models import DailyDeal
from ..services.registry import Services

router = APIRouter()


@router.get("", response_model=List[DailyDeal])
async def get_daily_deals(services: Services = Depends(get_services)):
    return await services.deals.get_daily_deals()
