from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query

from ..auth import get_services
from ..models import ProductDetail, ProductSearchResult
from ..services.registry import Services

router = APIRouter()


@router.get("/search", response_model=List[ProductSearchResult])
async def search_products(
    q: str = Query(min_length=1),
    sort: Optional[Literal["price_asc", "price_desc"]] = None,
    platform: Optional[str] = Query(default=None, description="Comma-separated platform names"),
    services: Services = Depends(get_services),
):
    """
    Search the product cache, refreshing from SerpAPI when no fresh match exists.
    """
    return await services.products.search_products(q, sort=sort, platform=platform)


@router.get("/{product_id}", response_model=ProductDetail)
async def product_details(product_id: str, services: Services = Depends(get_services)):
    return await services.products.get_product_details(product_id)
