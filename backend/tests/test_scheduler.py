import asyncio
from datetime import timedelta

from shopcompare.scheduler import create_scheduler, prune_daily_deals
from shopcompare.store.base import DAILY_DEALS


class BrokenDeals:
    async def prune_expired(self):
        raise RuntimeError("store offline")


def test_scheduler_registers_one_prune_job(services):
    scheduler = create_scheduler(services.deals, interval_minutes=30)

    (job,) = scheduler.get_jobs()
    assert job.id == "prune_daily_deals"
    assert job.trigger.interval == timedelta(minutes=30)
    assert job.max_instances == 1


def test_prune_job_removes_expired_deals(services, store, clock):
    asyncio.run(
        store.insert(
            DAILY_DEALS,
            {
                "name": "Old",
                "original_price": 10,
                "deal_price": 5,
                "discount_percentage": 50,
                "platform": "Amazon",
                "product_url": "https://amazon.com/product/old",
                "scraped_at": clock.now - timedelta(days=2),
            },
        )
    )

    asyncio.run(prune_daily_deals(services.deals))

    assert asyncio.run(store.find(DAILY_DEALS)) == []


def test_prune_job_survives_failures(caplog):
    asyncio.run(prune_daily_deals(BrokenDeals()))
    assert "pruning failed" in caplog.text
