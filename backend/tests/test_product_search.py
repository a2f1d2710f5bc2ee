import asyncio

import pytest

from shopcompare.errors import NotFoundError, UpstreamError, ValidationError
from shopcompare.models import Product
from shopcompare.services.product_search import post_process
from shopcompare.store.base import PRODUCTS


def _iphone_payload(item):
    return {
        "shopping_results": [
            item("Apple iPhone 15 (128 GB) - Black", "Amazon.in", "₹69,999.00"),
            item("Apple iPhone 15 (256 GB) - Blue", "Flipkart", "₹79,999"),
            item("Apple iPhone 15 Plus (128 GB)", "Croma", "₹79,999.00"),
        ]
    }


def test_cold_search_creates_one_product_per_result(services, provider, store, clock, item):
    provider.payload = _iphone_payload(item)

    results = asyncio.run(services.products.search_products("iphone 15"))

    assert provider.calls == ["iphone 15"]
    assert len(results) == 3
    stored = asyncio.run(store.find(PRODUCTS))
    assert len(stored) == 3
    for doc in stored:
        product = Product.model_validate(doc)
        assert len(product.platforms) == 1
        assert len(product.platforms[0].price_history) == 1
        assert product.platforms[0].price_history[0].date == clock.now
        assert product.last_scraped_at == clock.now
        assert "iphone 15" in product.search_keywords


def test_repeat_within_window_is_served_from_cache(services, provider, clock, item):
    provider.payload = _iphone_payload(item)
    first = asyncio.run(services.products.search_products("iphone 15"))

    clock.advance(minutes=30)
    second = asyncio.run(services.products.search_products("iPhone 15"))

    assert len(provider.calls) == 1
    assert sorted(r.id for r in first) == sorted(r.id for r in second)


def test_stale_cache_is_refreshed_in_place(services, provider, store, clock, item):
    provider.payload = {"shopping_results": [item("Pixel 8", "Amazon.in", "₹59,999")]}
    first = asyncio.run(services.products.search_products("pixel 8"))

    clock.advance(minutes=61)
    provider.payload = {"shopping_results": [item("Pixel 8", "Amazon.in", "₹54,999")]}
    second = asyncio.run(services.products.search_products("pixel 8"))

    assert len(provider.calls) == 2
    assert [r.id for r in second] == [r.id for r in first]
    product = Product.model_validate(asyncio.run(store.find_by_id(PRODUCTS, first[0].id)))
    history = product.platforms[0].price_history
    assert [h.price for h in history] == [59999.0, 54999.0]
    assert product.platforms[0].current_price == 54999.0
    assert product.last_scraped_at == clock.now


def test_same_title_from_several_stores_merges_platforms(services, provider, item):
    provider.payload = {
        "shopping_results": [
            item("Sony WH-1000XM5", "Amazon.in", "₹26,990"),
            item("Sony  WH-1000XM5 ", "Flipkart", "₹25,990"),
        ]
    }

    results = asyncio.run(services.products.search_products("sony"))

    assert len(results) == 1
    assert sorted(p.name for p in results[0].platforms) == ["Amazon.in", "Flipkart"]
    assert results[0].lowest_price == 25990.0


def test_dedup_by_name_matches_products_found_by_other_queries(services, provider, store, clock, item):
    provider.payload = {"shopping_results": [item("Galaxy Buds 2", "Amazon.in", "₹5,999")]}
    asyncio.run(services.products.search_products("galaxy buds"))

    asyncio.run(services.products.search_products("samsung earbuds"))

    assert len(asyncio.run(store.find(PRODUCTS))) == 1
    product = Product.model_validate(asyncio.run(store.find(PRODUCTS))[0])
    assert product.search_keywords == ["galaxy buds", "samsung earbuds"]
    assert len(product.platforms[0].price_history) == 2


def test_best_value_marks_every_tied_product(services, provider, item):
    provider.payload = {
        "shopping_results": [
            item("Kettle A", "Amazon.in", "₹999"),
            item("Kettle B", "Flipkart", "₹999"),
            item("Kettle C", "Croma", "₹1,499"),
        ]
    }

    results = asyncio.run(services.products.search_products("kettle"))

    flags = {r.name: r.best_value for r in results}
    assert flags == {"Kettle A": True, "Kettle B": True, "Kettle C": False}


def test_sort_and_platform_filter(services, provider, item):
    provider.payload = {
        "shopping_results": [
            item("Mixer 1", "Amazon.in", "₹3,000"),
            item("Mixer 2", "Flipkart", "₹1,000"),
            item("Mixer 3", "Croma", "₹2,000"),
        ]
    }

    asc = asyncio.run(services.products.search_products("mixer", sort="price_asc"))
    desc = asyncio.run(services.products.search_products("mixer", sort="price_desc"))
    filtered = asyncio.run(services.products.search_products("mixer", platform="croma, AMAZON.IN"))

    assert [r.lowest_price for r in asc] == [1000.0, 2000.0, 3000.0]
    assert [r.lowest_price for r in desc] == [3000.0, 2000.0, 1000.0]
    assert sorted(r.name for r in filtered) == ["Mixer 1", "Mixer 3"]
    # best value is recomputed over the filtered set
    assert [r.name for r in filtered if r.best_value] == ["Mixer 3"]
    assert len(provider.calls) == 1


def test_products_without_platforms_sort_last(clock):
    bare = Product(name="a", platforms=[], last_scraped_at=clock.now, last_price_change_at=clock.now)
    results = post_process([bare], sort="price_asc")
    assert results[0].lowest_price is None
    assert results[0].best_value is False


def test_upstream_failure_returns_empty_even_with_stale_cache(services, provider, store, clock, item):
    provider.payload = {"shopping_results": [item("Air Fryer", "Amazon.in", "₹4,999")]}
    asyncio.run(services.products.search_products("air fryer"))

    clock.advance(hours=2)
    provider.error = UpstreamError("SerpAPI rate limit reached", rate_limited=True)
    results = asyncio.run(services.products.search_products("air fryer"))

    assert results == []
    assert len(provider.calls) == 2
    # the stale record stays cached for the next successful refresh
    assert len(asyncio.run(store.find(PRODUCTS))) == 1


@pytest.mark.parametrize("query", ["", "   ", "\t\n"])
def test_blank_query_is_rejected_before_any_lookup(services, provider, store, query):
    with pytest.raises(ValidationError):
        asyncio.run(services.products.search_products(query))

    assert provider.calls == []
    assert asyncio.run(store.find(PRODUCTS)) == []


def test_upstream_failure_with_empty_cache_returns_nothing(services, provider):
    provider.error = UpstreamError("Network error calling SerpAPI")
    assert asyncio.run(services.products.search_products("anything")) == []


def test_malformed_payload_is_an_empty_result(services, provider, store):
    provider.payload = {"error": "Google hasn't returned any results"}
    assert asyncio.run(services.products.search_products("zzz")) == []
    assert asyncio.run(store.find(PRODUCTS)) == []


def test_concurrent_misses_share_one_provider_call(services, provider, store, item):
    provider.payload = {"shopping_results": [item("Desk Lamp", "Amazon.in", "₹899")]}
    provider.delay = 0.05

    async def run():
        return await asyncio.gather(
            services.products.search_products("desk lamp"),
            services.products.search_products("Desk  Lamp"),
        )

    first, second = asyncio.run(run())

    assert len(provider.calls) == 1
    assert [r.id for r in first] == [r.id for r in second]
    assert len(asyncio.run(store.find(PRODUCTS))) == 1


def test_product_details_append_one_observation_per_call(services, provider, clock, item):
    provider.payload = {
        "shopping_results": [
            item("Trimmer", "Amazon.in", "₹1,499"),
            item("Trimmer", "Flipkart", "₹1,399"),
        ]
    }
    product_id = asyncio.run(services.products.search_products("trimmer"))[0].id

    lengths = []
    for _ in range(3):
        clock.advance(minutes=5)
        detail = asyncio.run(services.products.get_product_details(product_id))
        lengths.append([len(p.price_history) for p in detail.platforms])
        assert detail.last_price_change_at == clock.now

    assert lengths == [[2, 2], [3, 3], [4, 4]]
    assert detail.best_value_store == "Flipkart"
    assert detail.lowest_price == 1399.0
    assert len(provider.calls) == 1


def test_product_details_unknown_id(services):
    with pytest.raises(NotFoundError):
        asyncio.run(services.products.get_product_details("missing"))
