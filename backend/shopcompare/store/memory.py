import copy
import operator
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from .base import Document, DocumentStore, Filters, StoreError

_OPERATORS = {
    "$lt": operator.lt,
    "$lte": operator.le,
    "$gt": operator.gt,
    "$gte": operator.ge,
}


def matches(doc: Document, filters: Optional[Filters]) -> bool:
    for field, cond in (filters or {}).items():
        value = doc.get(field)
        if isinstance(cond, dict):
            for op, operand in cond.items():
                compare = _OPERATORS.get(op)
                if compare is None:
                    raise StoreError(f"Unsupported filter operator: {op}")
                if value is None or not compare(value, operand):
                    return False
        elif value != cond:
            return False
    return True


def _contains_text(value: Any, needle: str) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple)):
        return any(_contains_text(v, needle) for v in value)
    return needle in str(value).lower()


class MemoryStore(DocumentStore):
    """
    In-process store for local runs and tests.

    Every read returns deep copies so callers can never mutate stored state.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Document]] = {}

    def _table(self, collection: str) -> Dict[str, Document]:
        return self._collections.setdefault(collection, {})

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        doc = self._table(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find(self, collection: str, filters: Optional[Filters] = None) -> List[Document]:
        return [copy.deepcopy(d) for d in self._table(collection).values() if matches(d, filters)]

    async def find_by_text(self, collection: str, query: str, fields: Iterable[str]) -> List[Document]:
        needle = query.strip().lower()
        if not needle:
            return []
        fields = list(fields)
        return [
            copy.deepcopy(d)
            for d in self._table(collection).values()
            if any(_contains_text(d.get(f), needle) for f in fields)
        ]

    async def insert(self, collection: str, doc: Document) -> Document:
        record = copy.deepcopy(doc)
        record["id"] = record.get("id") or uuid4().hex
        table = self._table(collection)
        if record["id"] in table:
            raise StoreError(f"Duplicate id {record['id']} in {collection}")
        table[record["id"]] = record
        return copy.deepcopy(record)

    async def update_by_id(self, collection: str, doc_id: str, patch: Document) -> Optional[Document]:
        table = self._table(collection)
        current = table.get(doc_id)
        if current is None:
            return None
        current.update(copy.deepcopy({k: v for k, v in patch.items() if k != "id"}))
        return copy.deepcopy(current)

    async def delete_by_filter(self, collection: str, filters: Filters) -> int:
        table = self._table(collection)
        doomed = [doc_id for doc_id, d in table.items() if matches(d, filters)]
        for doc_id in doomed:
            del table[doc_id]
        return len(doomed)
