"""
Document store contract.

Documents are plain dicts keyed by ``id``. Filters are Mongo-style: a bare
value means equality, a dict maps operators (``$lt``, ``$lte``, ``$gt``,
``$gte``) to operands.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

Document = Dict[str, Any]
Filters = Dict[str, Any]

USERS = "users"
PRODUCTS = "products"
WISHLISTS = "wishlists"
ORDERS = "orders"
SEARCH_HISTORY = "search_history"
DAILY_DEALS = "daily_deals"

COMPARISON_OPERATORS = ("$lt", "$lte", "$gt", "$gte")


class StoreError(Exception):
    """Raised by store backends when the underlying storage fails."""


class DocumentStore(ABC):
    @abstractmethod
    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def find(self, collection: str, filters: Optional[Filters] = None) -> List[Document]:
        ...

    async def find_by_field(self, collection: str, field: str, value: Any) -> List[Document]:
        return await self.find(collection, {field: value})

    @abstractmethod
    async def find_by_text(self, collection: str, query: str, fields: Iterable[str]) -> List[Document]:
        """Case-insensitive substring match of ``query`` against any of ``fields``."""

    @abstractmethod
    async def insert(self, collection: str, doc: Document) -> Document:
        """Persist ``doc`` under a generated id and return the stored copy."""

    @abstractmethod
    async def update_by_id(self, collection: str, doc_id: str, patch: Document) -> Optional[Document]:
        """Apply a partial patch; None when the id is unknown."""

    @abstractmethod
    async def delete_by_filter(self, collection: str, filters: Filters) -> int:
        """Delete every matching document and return how many were removed."""
