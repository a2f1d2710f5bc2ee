import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..errors import ConflictError, NotFoundError, store_errors
from ..models import Product, WishlistEntry
from ..store.base import PRODUCTS, WISHLISTS, DocumentStore
from .freshness import as_utc, lowest_price, now_utc

logger = logging.getLogger(__name__)


class WishlistService:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.clock = clock

    async def _find_entry(self, user_id: str, product_id: str) -> Optional[WishlistEntry]:
        docs = await self.store.find(WISHLISTS, {"user_id": user_id, "product_id": product_id})
        return WishlistEntry.model_validate(docs[0]) if docs else None

    async def get_wishlist(self, user_id: str) -> List[dict]:
        with store_errors("read wishlist"):
            entries = [WishlistEntry.model_validate(d) for d in await self.store.find_by_field(WISHLISTS, "user_id", user_id)]
            items = []
            for entry in sorted(entries, key=lambda e: as_utc(e.added_at), reverse=True):
                doc = await self.store.find_by_id(PRODUCTS, entry.product_id)
                product = Product.model_validate(doc) if doc else None
                items.append(
                    {
                        "product_id": entry.product_id,
                        "title": product.name if product else "Product details not available",
                        "image_url": product.image_url if product else "",
                        "current_lowest_price": lowest_price(product.platforms) if product else None,
                        "target_price": entry.target_price,
                        "platforms": [
                            {"name": p.name, "price": p.current_price, "product_url": p.product_url}
                            for p in (product.platforms if product else [])
                        ],
                        "added_at": entry.added_at,
                    }
                )
        logger.info("Retrieved wishlist for user: %s", user_id)
        return items

    async def add_to_wishlist(
        self,
        user_id: str,
        product_id: str,
        product_url: Optional[str] = None,
        platform: Optional[str] = None,
        target_price: Optional[float] = None,
    ) -> WishlistEntry:
        with store_errors("add to wishlist"):
            if await self._find_entry(user_id, product_id):
                raise ConflictError("Product already in wishlist")
            entry = WishlistEntry(
                user_id=user_id,
                product_id=product_id,
                product_url=product_url,
                platform=platform,
                target_price=target_price,
                added_at=self.clock(),
            )
            doc = await self.store.insert(WISHLISTS, entry.model_dump(exclude={"id"}))
        logger.info("Added product %s to wishlist for user %s", product_id, user_id)
        return WishlistEntry.model_validate(doc)

    async def remove_from_wishlist(self, user_id: str, product_id: str) -> None:
        with store_errors("remove from wishlist"):
            removed = await self.store.delete_by_filter(WISHLISTS, {"user_id": user_id, "product_id": product_id})
        if not removed:
            raise NotFoundError("Product not found in wishlist")
        logger.info("Removed product %s from wishlist for user %s", product_id, user_id)
