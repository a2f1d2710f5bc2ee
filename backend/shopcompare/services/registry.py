"""Builds the service graph around one store handle."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..config import Settings
from ..providers.deals import CatalogDealSource, DealSource, SerpDealSource
from ..providers.order_status import OrderStatusChecker
from ..providers.serp import SerpProvider
from ..store.base import DocumentStore
from ..store.memory import MemoryStore
from ..store.supabase_store import SupabaseStore
from ..supabase_client import create_supabase
from .auth import AuthService
from .daily_deals import DailyDealsService
from .freshness import FreshnessPolicy, now_utc
from .orders import OrderTrackingService, StatusChecker
from .product_search import ProductSearchService, ShoppingProvider
from .search_history import SearchHistoryService
from .wishlist import WishlistService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: DocumentStore
    auth: AuthService
    products: ProductSearchService
    deals: DailyDealsService
    wishlist: WishlistService
    orders: OrderTrackingService
    search_history: SearchHistoryService


def create_store(settings: Settings) -> DocumentStore:
    backend = settings.store_backend.lower()
    if backend == "memory":
        return MemoryStore()
    if backend == "supabase":
        return SupabaseStore(create_supabase(settings))
    raise RuntimeError(f"Unknown STORE_BACKEND: {settings.store_backend}")


def create_deal_source(settings: Settings, provider: SerpProvider) -> DealSource:
    mode = settings.deals_source.lower()
    if mode == "serp" or (mode == "auto" and settings.serp_api_key):
        return SerpDealSource(provider)
    if mode in ("catalog", "auto"):
        return CatalogDealSource()
    raise RuntimeError(f"Unknown DEALS_SOURCE: {settings.deals_source}")


def build_services(
    settings: Settings,
    store: Optional[DocumentStore] = None,
    provider: Optional[ShoppingProvider] = None,
    deal_source: Optional[DealSource] = None,
    status_checker: Optional[StatusChecker] = None,
    clock: Callable[[], datetime] = now_utc,
) -> Services:
    store = store or create_store(settings)
    serp = SerpProvider(settings)
    provider = provider or serp
    deal_source = deal_source or create_deal_source(settings, serp)
    logger.info(
        "Services ready: store=%s deals=%s", type(store).__name__, type(deal_source).__name__
    )

    return Services(
        store=store,
        auth=AuthService(
            store,
            secret=settings.jwt_secret,
            expires=timedelta(days=settings.jwt_expires_days),
            bcrypt_rounds=settings.bcrypt_rounds,
            clock=clock,
        ),
        products=ProductSearchService(
            store, provider, FreshnessPolicy(settings.product_freshness), clock=clock
        ),
        deals=DailyDealsService(
            store,
            deal_source,
            platforms=settings.deal_platform_list,
            freshness=FreshnessPolicy(settings.deals_freshness),
            retention=FreshnessPolicy(settings.deals_retention),
            per_platform=settings.deals_per_platform,
            clock=clock,
        ),
        wishlist=WishlistService(store, clock=clock),
        orders=OrderTrackingService(store, status_checker or OrderStatusChecker(), clock=clock),
        search_history=SearchHistoryService(store, settings.common_query_list, clock=clock),
    )
