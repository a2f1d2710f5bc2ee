"""
Supabase (PostgREST) backend for the document store.

Each collection is a table with an ``id`` text primary key. Nested values
(``platforms``, ``preferences``, ``specifications``) live in jsonb columns,
``search_keywords`` and ``features`` in text[] columns.
"""
import logging
from typing import Any, Callable, Iterable, List, Optional
from uuid import uuid4

import httpx
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from postgrest.exceptions import APIError
from supabase import Client

from .base import COMPARISON_OPERATORS, Document, DocumentStore, Filters, StoreError

logger = logging.getLogger(__name__)

ARRAY_FIELDS = {"search_keywords", "features"}


def _quote(value: str) -> str:
    # PostgREST logic-tree values may be double-quoted; drop characters that would break quoting.
    return value.replace("\\", "").replace('"', "")


def _apply_filters(query, filters: Optional[Filters]):
    for field, cond in (filters or {}).items():
        if isinstance(cond, dict):
            for op, operand in cond.items():
                if op not in COMPARISON_OPERATORS:
                    raise StoreError(f"Unsupported filter operator: {op}")
                # "$lt" -> query.lt(...)
                query = getattr(query, op[1:])(field, jsonable_encoder(operand))
        elif cond is None:
            query = query.is_(field, "null")
        else:
            query = query.eq(field, jsonable_encoder(cond))
    return query


class SupabaseStore(DocumentStore):
    def __init__(self, client: Client):
        self.client = client

    async def _execute(self, build: Callable[[], Any]) -> List[Document]:
        try:
            resp = await run_in_threadpool(lambda: build().execute())
        except (APIError, httpx.HTTPError) as exc:
            logger.error("Supabase request failed: %s", exc)
            raise StoreError(f"Supabase error: {exc}") from exc
        return getattr(resp, "data", None) or []

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        rows = await self._execute(
            lambda: self.client.table(collection).select("*").eq("id", doc_id).limit(1)
        )
        return rows[0] if rows else None

    async def find(self, collection: str, filters: Optional[Filters] = None) -> List[Document]:
        return await self._execute(
            lambda: _apply_filters(self.client.table(collection).select("*"), filters)
        )

    async def find_by_text(self, collection: str, query: str, fields: Iterable[str]) -> List[Document]:
        needle = _quote(query.strip().lower())
        if not needle:
            return []
        clauses = []
        for field in fields:
            if field in ARRAY_FIELDS:
                # Arrays only support containment, so keywords match whole entries.
                clauses.append(f'{field}.cs.{{"{needle}"}}')
            else:
                clauses.append(f'{field}.ilike."*{needle}*"')
        return await self._execute(
            lambda: self.client.table(collection).select("*").or_(",".join(clauses))
        )

    async def insert(self, collection: str, doc: Document) -> Document:
        record = jsonable_encoder(doc)
        record["id"] = record.get("id") or str(uuid4())
        rows = await self._execute(lambda: self.client.table(collection).insert(record))
        if not rows:
            raise StoreError(f"Insert into {collection} returned no rows")
        return rows[0]

    async def update_by_id(self, collection: str, doc_id: str, patch: Document) -> Optional[Document]:
        record = jsonable_encoder({k: v for k, v in patch.items() if k != "id"})
        rows = await self._execute(
            lambda: self.client.table(collection).update(record).eq("id", doc_id)
        )
        return rows[0] if rows else None

    async def delete_by_filter(self, collection: str, filters: Filters) -> int:
        rows = await self._execute(
            lambda: _apply_filters(self.client.table(collection).delete(), filters)
        )
        return len(rows)
