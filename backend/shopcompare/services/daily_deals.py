import logging
from datetime import datetime
from typing import Callable, List

from ..errors import UpstreamError, store_errors
from ..models import DailyDeal
from ..providers.deals import DealSource
from ..store.base import DAILY_DEALS, DocumentStore
from .freshness import FreshnessPolicy, SingleFlight, as_utc, discount_percentage, now_utc

logger = logging.getLogger(__name__)

REFRESH_KEY = "daily-deals"


def _newest_first(deals: List[DailyDeal]) -> List[DailyDeal]:
    return sorted(deals, key=lambda d: as_utc(d.scraped_at), reverse=True)


class DailyDealsService:
    """
    Rolling cache of deal records per platform.

    Deals older than ``retention`` are pruned on every read (and by the
    background scheduler); a refresh from ``source`` only happens when no
    deal was scraped within ``freshness``.
    """

    def __init__(
        self,
        store: DocumentStore,
        source: DealSource,
        platforms: List[str],
        freshness: FreshnessPolicy,
        retention: FreshnessPolicy,
        per_platform: int = 3,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self.source = source
        self.platforms = platforms
        self.freshness = freshness
        self.retention = retention
        self.per_platform = per_platform
        self.clock = clock
        self._flights = SingleFlight()

    async def prune_expired(self) -> int:
        cutoff = self.retention.cutoff(self.clock())
        with store_errors("prune daily deals"):
            removed = await self.store.delete_by_filter(DAILY_DEALS, {"scraped_at": {"$lt": cutoff}})
        if removed:
            logger.info("Pruned %d daily deals scraped before %s", removed, cutoff.isoformat())
        return removed

    async def get_daily_deals(self) -> List[DailyDeal]:
        await self.prune_expired()

        with store_errors("read daily deals"):
            docs = await self.store.find(DAILY_DEALS)
        deals = [DailyDeal.model_validate(d) for d in docs]
        recent, _ = self.freshness.partition(deals, lambda d: d.scraped_at, self.clock())
        if recent:
            logger.info("Returning %d cached daily deals", len(recent))
            return _newest_first(recent)

        logger.info("No recent daily deals; refreshing from source")
        return await self._flights.do(REFRESH_KEY, self._refresh)

    async def _refresh(self) -> List[DailyDeal]:
        stored: List[DailyDeal] = []
        for platform in self.platforms:
            try:
                candidates = await self.source.fetch_deals(platform, self.per_platform)
            except UpstreamError as exc:
                logger.warning("Skipping deals for %s: %s", platform, exc.message)
                continue

            for candidate in candidates[: self.per_platform]:
                now = self.clock()
                deal = DailyDeal(
                    name=candidate.name,
                    image_url=candidate.image_url,
                    original_price=candidate.original_price,
                    deal_price=candidate.deal_price,
                    discount_percentage=discount_percentage(candidate.original_price, candidate.deal_price),
                    platform=platform,
                    product_url=candidate.product_url,
                    scraped_at=now,
                    created_at=now,
                    updated_at=now,
                )
                with store_errors("store daily deals"):
                    doc = await self.store.insert(DAILY_DEALS, deal.model_dump(exclude={"id"}))
                stored.append(DailyDeal.model_validate(doc))

        logger.info("Scraped and stored %d daily deals", len(stored))
        return _newest_first(stored)
