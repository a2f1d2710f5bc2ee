import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from shopcompare.store.base import StoreError
from shopcompare.store.supabase_store import SupabaseStore


def _client(data):
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value.data = data
    return client


def test_delete_by_filter_maps_operators_and_counts_rows():
    client = MagicMock()
    delete = client.table.return_value.delete.return_value
    delete.lt.return_value.execute.return_value.data = [{"id": "a"}, {"id": "b"}]
    cutoff = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    removed = asyncio.run(SupabaseStore(client).delete_by_filter("daily_deals", {"scraped_at": {"$lt": cutoff}}))

    assert removed == 2
    client.table.assert_called_with("daily_deals")
    delete.lt.assert_called_once_with("scraped_at", cutoff.isoformat())


def test_find_by_id_returns_first_row_or_none():
    assert asyncio.run(SupabaseStore(_client([{"id": "p1"}])).find_by_id("products", "p1")) == {"id": "p1"}
    assert asyncio.run(SupabaseStore(_client([])).find_by_id("products", "p1")) is None


def test_find_by_text_builds_or_clause():
    client = MagicMock()
    select = client.table.return_value.select.return_value
    select.or_.return_value.execute.return_value.data = []

    asyncio.run(SupabaseStore(client).find_by_text("products", ' iPhone "15" ', ["name", "search_keywords"]))

    select.or_.assert_called_once_with('name.ilike."*iphone 15*",search_keywords.cs.{"iphone 15"}')


def test_api_errors_become_store_errors():
    client = MagicMock()
    client.table.return_value.select.return_value.execute.side_effect = APIError({"message": "boom"})

    with pytest.raises(StoreError):
        asyncio.run(SupabaseStore(client).find("products"))
