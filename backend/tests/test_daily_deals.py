import asyncio
from datetime import timedelta

from shopcompare.models import DailyDeal
from shopcompare.services.freshness import discount_percentage
from shopcompare.store.base import DAILY_DEALS


def _deal(name, scraped_at):
    return DailyDeal(
        name=name,
        original_price=100,
        deal_price=80,
        discount_percentage=20,
        platform="Amazon",
        product_url=f"https://amazon.com/product/{name}",
        scraped_at=scraped_at,
    ).model_dump(exclude={"id"})


def test_first_read_scrapes_every_platform(services, deal_source, clock):
    deals = asyncio.run(services.deals.get_daily_deals())

    assert deal_source.calls == ["Amazon", "Flipkart"]
    assert len(deals) == 4
    assert all(d.id for d in deals)
    assert all(d.scraped_at == clock.now for d in deals)
    headphones = next(d for d in deals if d.name == "Amazon Headphones")
    assert headphones.discount_percentage == 33


def test_second_read_within_window_returns_same_records(services, deal_source, store, clock):
    first = asyncio.run(services.deals.get_daily_deals())
    clock.advance(hours=5, minutes=59)
    second = asyncio.run(services.deals.get_daily_deals())

    assert sorted(d.id for d in first) == sorted(d.id for d in second)
    assert len(deal_source.calls) == 2  # one per platform, first read only
    assert len(asyncio.run(store.find(DAILY_DEALS))) == 4


def test_stale_deals_trigger_a_refresh_but_are_kept_until_retention(services, deal_source, store, clock):
    first = asyncio.run(services.deals.get_daily_deals())
    clock.advance(hours=7)
    second = asyncio.run(services.deals.get_daily_deals())

    assert len(deal_source.calls) == 4
    assert not {d.id for d in first} & {d.id for d in second}
    assert all(d.scraped_at == clock.now for d in second)
    assert len(asyncio.run(store.find(DAILY_DEALS))) == 8


def test_recent_deals_are_sorted_newest_first(services, store, clock):
    asyncio.run(store.insert(DAILY_DEALS, _deal("older", clock.now - timedelta(hours=2))))
    asyncio.run(store.insert(DAILY_DEALS, _deal("newer", clock.now - timedelta(hours=1))))

    deals = asyncio.run(services.deals.get_daily_deals())

    assert [d.name for d in deals] == ["newer", "older"]


def test_prune_removes_all_and_only_expired_deals(services, store, clock):
    ages = {"fresh": 1, "edge": 23, "expired": 25, "ancient": 24 * 30}
    for name, hours in ages.items():
        asyncio.run(store.insert(DAILY_DEALS, _deal(name, clock.now - timedelta(hours=hours))))

    removed = asyncio.run(services.deals.prune_expired())

    assert removed == 2
    remaining = sorted(d["name"] for d in asyncio.run(store.find(DAILY_DEALS)))
    assert remaining == ["edge", "fresh"]


def test_failing_platform_is_skipped(services, deal_source):
    deal_source.failing.add("Amazon")

    deals = asyncio.run(services.deals.get_daily_deals())

    assert {d.platform for d in deals} == {"Flipkart"}


def test_concurrent_refreshes_share_one_scrape(services, deal_source, store):
    async def run():
        return await asyncio.gather(services.deals.get_daily_deals(), services.deals.get_daily_deals())

    first, second = asyncio.run(run())

    assert deal_source.calls == ["Amazon", "Flipkart"]
    assert sorted(d.id for d in first) == sorted(d.id for d in second)
    assert len(asyncio.run(store.find(DAILY_DEALS))) == 4


def test_discount_percentage_rounds_and_clamps():
    assert discount_percentage(79999, 59999) == 25
    assert discount_percentage(200, 199) == 1  # 0.5 rounds up
    assert discount_percentage(100, 100) == 0
    assert discount_percentage(100, 150) == 0
    assert discount_percentage(100, -20) == 100
    assert discount_percentage(0, 10) == 0
