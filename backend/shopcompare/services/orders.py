import logging
from datetime import datetime
from typing import Callable, List, Protocol

from ..errors import NotFoundError, store_errors
from ..models import Order
from ..store.base import ORDERS, DocumentStore
from .freshness import as_utc, now_utc

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "Pending"


class StatusChecker(Protocol):
    async def check(self, order_url: str) -> str:
        ...


class OrderTrackingService:
    def __init__(self, store: DocumentStore, checker: StatusChecker, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.checker = checker
        self.clock = clock

    async def _owned_order(self, user_id: str, order_id: str) -> Order:
        with store_errors("read order"):
            doc = await self.store.find_by_id(ORDERS, order_id)
        if doc is None or doc.get("user_id") != user_id:
            raise NotFoundError("Order not found")
        return Order.model_validate(doc)

    async def get_orders(self, user_id: str) -> List[Order]:
        with store_errors("read orders"):
            docs = await self.store.find_by_field(ORDERS, "user_id", user_id)
        logger.info("Retrieved orders for user: %s", user_id)
        return sorted((Order.model_validate(d) for d in docs), key=lambda o: as_utc(o.purchase_date), reverse=True)

    async def add_order(self, user_id: str, order_id: str, product_name: str, platform: str, purchase_date: datetime, order_url: str) -> Order:
        now = self.clock()
        order = Order(
            user_id=user_id,
            order_id=order_id,
            product_name=product_name,
            platform=platform,
            purchase_date=purchase_date,
            status=DEFAULT_STATUS,
            order_url=order_url,
            created_at=now,
            updated_at=now,
        )
        order.status = await self.checker.check(order_url)
        order.last_status_check_at = self.clock()

        with store_errors("create order"):
            doc = await self.store.insert(ORDERS, order.model_dump(exclude={"id"}))
        logger.info("Added order %s for user %s", order_id, user_id)
        return Order.model_validate(doc)

    async def refresh_order_status(self, user_id: str, order_id: str) -> Order:
        order = await self._owned_order(user_id, order_id)
        new_status = await self.checker.check(order.order_url)
        now = self.clock()
        with store_errors("update order"):
            doc = await self.store.update_by_id(
                ORDERS, order_id, {"status": new_status, "updated_at": now, "last_status_check_at": now}
            )
        if doc is None:
            raise NotFoundError("Order not found")
        logger.info("Updated order %s status to: %s", order_id, new_status)
        return Order.model_validate(doc)

    async def delete_order(self, user_id: str, order_id: str) -> None:
        await self._owned_order(user_id, order_id)
        with store_errors("delete order"):
            removed = await self.store.delete_by_filter(ORDERS, {"id": order_id, "user_id": user_id})
        if not removed:
            raise NotFoundError("Order not found")
        logger.info("Deleted order %s for user %s", order_id, user_id)
