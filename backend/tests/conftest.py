import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from shopcompare.config import Settings
from shopcompare.errors import UpstreamError
from shopcompare.main import create_app
from shopcompare.providers.deals import DealCandidate
from shopcompare.providers.serp import ShoppingResult, parse_shopping_results
from shopcompare.services.registry import build_services
from shopcompare.store.memory import MemoryStore


class Clock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeProvider:
    """Stands in for SerpAPI; records every query it is asked."""

    def __init__(self):
        self.calls: List[str] = []
        self.payload: dict = {"shopping_results": []}
        self.error: Optional[Exception] = None
        self.delay = 0.0

    async def search(self, query: str) -> List[ShoppingResult]:
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return parse_shopping_results(self.payload)


class FakeDealSource:
    def __init__(self):
        self.calls: List[str] = []
        self.failing = set()

    async def fetch_deals(self, platform: str, limit: int) -> List[DealCandidate]:
        self.calls.append(platform)
        if platform in self.failing:
            raise UpstreamError(f"{platform} is down")
        return [
            DealCandidate(
                name=f"{platform} Headphones",
                original_price=29990,
                deal_price=19990,
                platform=platform,
                product_url=f"https://{platform.lower()}.com/product/headphones",
            ),
            DealCandidate(
                name=f"{platform} Sneakers",
                original_price=12995,
                deal_price=8995,
                platform=platform,
                product_url=f"https://{platform.lower()}.com/product/sneakers",
            ),
        ][:limit]


class FakeStatusChecker:
    def __init__(self, statuses: Optional[List[str]] = None):
        self.statuses = list(statuses or ["Shipped"])
        self.calls: List[str] = []

    async def check(self, order_url: str) -> str:
        self.calls.append(order_url)
        return self.statuses[min(len(self.calls), len(self.statuses)) - 1]


def shopping_item(title: str, source: str = "Amazon.in", price: str = "₹1,299.00", **extra) -> dict:
    item = {
        "title": title,
        "source": source,
        "price": price,
        "product_link": f"https://example.com/{source.lower()}/{title.lower().replace(' ', '-')}",
        "thumbnail": "https://example.com/thumb.jpg",
    }
    item.update(extra)
    return item


@pytest.fixture
def clock():
    return Clock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        scheduler_enabled=False,
        deal_platforms="Amazon,Flipkart",
        deals_per_platform=2,
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def deal_source():
    return FakeDealSource()


@pytest.fixture
def status_checker():
    return FakeStatusChecker(["Confirmed", "Shipped"])


@pytest.fixture
def services(settings, store, provider, deal_source, status_checker, clock):
    return build_services(
        settings,
        store=store,
        provider=provider,
        deal_source=deal_source,
        status_checker=status_checker,
        clock=clock,
    )


@pytest.fixture
def client(settings, store, provider, deal_source, status_checker, clock):
    app = create_app(
        settings,
        store=store,
        provider=provider,
        deal_source=deal_source,
        status_checker=status_checker,
        clock=clock,
    )
    return TestClient(app)


@pytest.fixture
def auth_headers(client):
    resp = client.post(
        "/api/auth/register",
        json={"name": "Asha", "email": "asha@example.com", "password": "correct-horse"},
    )
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def item():
    return shopping_item
