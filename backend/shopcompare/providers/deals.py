"""Sources of daily-deal candidates, one small batch per platform."""
import logging
import random
from typing import List, Optional, Protocol
from urllib.parse import quote

from pydantic import BaseModel
from slugify import slugify

from .serp import SerpProvider

logger = logging.getLogger(__name__)


class DealCandidate(BaseModel):
    name: str
    image_url: str = ""
    original_price: float
    deal_price: float
    platform: str
    product_url: str


class DealSource(Protocol):
    async def fetch_deals(self, platform: str, limit: int) -> List[DealCandidate]:
        ...


class SerpDealSource:
    """Asks SerpAPI for discounted listings and keeps those sold on ``platform``."""

    def __init__(self, provider: SerpProvider):
        self.provider = provider

    async def fetch_deals(self, platform: str, limit: int) -> List[DealCandidate]:
        results = await self.provider.search(f"{platform} deals of the day")
        wanted = platform.lower()
        deals: List[DealCandidate] = []
        for item in results:
            if wanted not in item.source.lower():
                continue
            price, old_price = item.price_value, item.old_price_value
            if price is None or old_price is None or old_price <= price:
                continue
            deals.append(
                DealCandidate(
                    name=item.title,
                    image_url=next(iter(item.images), ""),
                    original_price=old_price,
                    deal_price=price,
                    platform=platform,
                    product_url=item.url,
                )
            )
            if len(deals) >= limit:
                break
        logger.info("SerpAPI yielded %d deal candidates for %s", len(deals), platform)
        return deals


# (name, original price, deal price) in INR.
CATALOG = [
    ("Samsung Galaxy S24", 79999, 59999),
    ("iPhone 15 Pro", 134900, 119900),
    ("MacBook Air M2", 114900, 104900),
    ("Sony WH-1000XM4", 29990, 19990),
    ("Nike Air Max 270", 12995, 8995),
]


class CatalogDealSource:
    """Offline source: a random 2-4 item slice of a fixed catalog per platform."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    async def fetch_deals(self, platform: str, limit: int) -> List[DealCandidate]:
        count = min(limit, self.rng.randint(2, 4), len(CATALOG))
        picked = self.rng.sample(CATALOG, count)
        return [
            DealCandidate(
                name=name,
                image_url=f"https://via.placeholder.com/300x300?text={quote(name)}",
                original_price=original,
                deal_price=deal,
                platform=platform,
                product_url=f"https://{platform.lower()}.com/product/{slugify(name)}",
            )
            for name, original, deal in picked
        ]
