import logging
from datetime import datetime
from typing import Callable, List, Optional
from uuid import uuid4

from ..errors import ValidationError, store_errors
from ..models import SearchHistory
from ..store.base import PRODUCTS, SEARCH_HISTORY, DocumentStore
from .freshness import as_utc, now_utc

logger = logging.getLogger(__name__)


class SearchHistoryService:
    def __init__(self, store: DocumentStore, common_queries: List[str], clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.common_queries = {q.lower() for q in common_queries}
        self.clock = clock

    async def record_search(
        self,
        query: str,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        product_id: Optional[str] = None,
    ) -> dict:
        query = query.strip()
        if not query:
            raise ValidationError("Search query must not be empty")
        if query.lower() in self.common_queries:
            return {"message": "Common search not recorded."}

        if user_id:
            session_id = None
        elif not session_id:
            session_id = uuid4().hex

        entry = SearchHistory(
            query=query,
            timestamp=self.clock(),
            user_id=user_id,
            session_id=session_id,
            product_id=product_id,
        )
        with store_errors("record search"):
            await self.store.insert(SEARCH_HISTORY, entry.model_dump(exclude={"id"}))
        logger.info("Recorded search: %s", query)

        result = {"message": "Search query recorded."}
        if not user_id:
            result["session_id"] = session_id
        return result

    async def get_search_history(self, user_id: Optional[str] = None, session_id: Optional[str] = None) -> List[dict]:
        if user_id:
            field, value = "user_id", user_id
        elif session_id:
            field, value = "session_id", session_id
        else:
            raise ValidationError("User ID or session ID required")

        with store_errors("read search history"):
            docs = await self.store.find_by_field(SEARCH_HISTORY, field, value)
            history = sorted((SearchHistory.model_validate(d) for d in docs), key=lambda h: as_utc(h.timestamp), reverse=True)
            enriched = []
            for item in history:
                product_name = None
                if item.product_id:
                    product = await self.store.find_by_id(PRODUCTS, item.product_id)
                    product_name = product.get("name") if product else None
                enriched.append(
                    {
                        "query": item.query,
                        "timestamp": item.timestamp,
                        "product_id": item.product_id,
                        "product_name": product_name,
                    }
                )
        logger.info("Retrieved search history for %s", "user" if user_id else "session")
        return enriched
