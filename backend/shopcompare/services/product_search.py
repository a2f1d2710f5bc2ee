"""
Product cache reconciler.

Serves product searches from the cache while it is fresh and refreshes it
from the shopping provider otherwise. Provider results are merged into
canonical products keyed by normalized title, and each observation is
appended to the per-platform price history.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol

from ..errors import NotFoundError, UpstreamError, ValidationError, store_errors
from ..models import (
    Platform,
    PriceHistoryEntry,
    Product,
    ProductDetail,
    ProductSearchResult,
)
from ..providers.serp import ShoppingResult
from ..store.base import PRODUCTS, DocumentStore
from .freshness import (
    FreshnessPolicy,
    SingleFlight,
    as_utc,
    cheapest_platform,
    lowest_price,
    mark_best_value,
    normalize_query,
    normalize_title,
    now_utc,
)

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "search_keywords")
SORT_OPTIONS = ("price_asc", "price_desc")


class ShoppingProvider(Protocol):
    async def search(self, query: str) -> List[ShoppingResult]:
        ...


def _platform_from_result(item: ShoppingResult, now: datetime) -> Platform:
    price = item.price_value
    old_price = item.old_price_value
    return Platform(
        name=item.source,
        product_url=item.url,
        current_price=price,
        original_price=old_price,
        discount=round(old_price - price, 2) if old_price and old_price > price else 0,
        inclusive_price=price,
        price_history=[PriceHistoryEntry(date=now, price=price)],
        last_updated=now,
    )


def _group_by_title(results: List[ShoppingResult]) -> Dict[str, List[ShoppingResult]]:
    grouped: Dict[str, List[ShoppingResult]] = {}
    for item in results:
        grouped.setdefault(normalize_title(item.title), []).append(item)
    return grouped


def _carry_history(new: List[Platform], old: List[Platform]) -> List[Platform]:
    """Prefix each new platform's history with the history of the same-named old platform."""
    previous = {p.name.lower(): p.price_history for p in old}
    merged = []
    for platform in new:
        history = previous.get(platform.name.lower(), []) + platform.price_history
        merged.append(platform.model_copy(update={"price_history": history}))
    return merged


def _platform_allow_list(platform_filter: Optional[str]) -> List[str]:
    if not platform_filter:
        return []
    return [p.strip().lower() for p in platform_filter.split(",") if p.strip()]


def post_process(products: List[Product], sort: Optional[str] = None, platform_filter: Optional[str] = None) -> List[ProductSearchResult]:
    results = [
        ProductSearchResult(**p.model_dump(), lowest_price=lowest_price(p.platforms))
        for p in products
    ]

    allowed = _platform_allow_list(platform_filter)
    if allowed:
        results = [r for r in results if any(pl.name.lower() in allowed for pl in r.platforms)]

    if sort in SORT_OPTIONS:
        priced = [r for r in results if r.lowest_price is not None]
        unpriced = [r for r in results if r.lowest_price is None]
        priced.sort(key=lambda r: r.lowest_price, reverse=sort == "price_desc")
        results = priced + unpriced

    return mark_best_value(results)


class ProductSearchService:
    def __init__(
        self,
        store: DocumentStore,
        provider: ShoppingProvider,
        freshness: FreshnessPolicy,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self.provider = provider
        self.freshness = freshness
        self.clock = clock
        self._flights = SingleFlight()

    async def _cached_matches(self, query: str) -> List[Product]:
        with store_errors("read the product cache"):
            docs = await self.store.find_by_text(PRODUCTS, query, SEARCH_FIELDS)
        return [Product.model_validate(d) for d in docs]

    async def search_products(self, query: str, sort: Optional[str] = None, platform: Optional[str] = None) -> List[ProductSearchResult]:
        key = normalize_query(query)
        if not key:
            raise ValidationError("Search query must not be blank")
        matches = await self._cached_matches(key)
        now = self.clock()
        fresh, stale = self.freshness.partition(matches, lambda p: p.last_scraped_at, now)

        if fresh:
            logger.info("Cache hit for %r: %d fresh of %d cached products", key, len(fresh), len(matches))
            products = fresh
        else:
            logger.info("Cache miss for %r (%d stale products); refreshing", key, len(stale))
            try:
                products = await self._flights.do(key, lambda: self._refresh(key))
            except UpstreamError as exc:
                logger.warning("Provider unavailable for %r, returning no results: %s", key, exc.message)
                products = []

        return post_process(products, sort=sort, platform_filter=platform)

    async def _refresh(self, query: str) -> List[Product]:
        results = await self.provider.search(query)
        now = self.clock()
        products = []
        for title, items in _group_by_title(results).items():
            products.append(await self._upsert(title, items, query, now))
        logger.info("Reconciled %d provider results into %d products for %r", len(results), len(products), query)
        return products

    async def _upsert(self, title: str, items: List[ShoppingResult], query: str, now: datetime) -> Product:
        platforms = [_platform_from_result(item, now) for item in items]
        first = items[0]
        rated = [i for i in items if i.rating is not None]

        with store_errors("update the product cache"):
            existing_docs = await self.store.find_by_field(PRODUCTS, "name", title)
            if existing_docs:
                existing = Product.model_validate(existing_docs[0])
                keywords = existing.search_keywords + ([query] if query not in existing.search_keywords else [])
                patch = {
                    "platforms": [p.model_dump() for p in _carry_history(platforms, existing.platforms)],
                    "search_keywords": keywords,
                    "last_scraped_at": max(as_utc(existing.last_scraped_at), now),
                    "last_price_change_at": now,
                    "updated_at": now,
                }
                if rated:
                    patch["rating"] = rated[0].rating
                    patch["reviews_count"] = rated[0].reviews
                doc = await self.store.update_by_id(PRODUCTS, existing.id, patch)
                if doc is not None:
                    return Product.model_validate(doc)
                # Deleted between read and write; fall through and re-create it.

            product = Product(
                name=title,
                image_url=next(iter(first.images), ""),
                rating=rated[0].rating if rated else None,
                reviews_count=rated[0].reviews if rated else None,
                search_keywords=[query],
                platforms=platforms,
                last_scraped_at=now,
                last_price_change_at=now,
                created_at=now,
                updated_at=now,
            )
            doc = await self.store.insert(PRODUCTS, product.model_dump(exclude={"id"}))
        return Product.model_validate(doc)

    async def get_product_details(self, product_id: str) -> ProductDetail:
        with store_errors("read the product cache"):
            doc = await self.store.find_by_id(PRODUCTS, product_id)
        if doc is None:
            raise NotFoundError("Product not found")

        product = Product.model_validate(doc)
        now = self.clock()
        for platform in product.platforms:
            platform.price_history.append(PriceHistoryEntry(date=now, price=platform.current_price))

        with store_errors("update the product cache"):
            updated = await self.store.update_by_id(
                PRODUCTS,
                product_id,
                {
                    "platforms": [p.model_dump() for p in product.platforms],
                    "last_price_change_at": now,
                    "updated_at": now,
                },
            )
        if updated is None:
            raise NotFoundError("Product not found")

        product = Product.model_validate(updated)
        return ProductDetail(
            **product.model_dump(),
            lowest_price=lowest_price(product.platforms),
            best_value_store=cheapest_platform(product.platforms),
        )
