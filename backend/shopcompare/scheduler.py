import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .services.daily_deals import DailyDealsService

logger = logging.getLogger(__name__)


async def prune_daily_deals(deals: DailyDealsService) -> None:
    try:
        removed = await deals.prune_expired()
    except Exception:
        # Keep the scheduler alive; the next run retries.
        logger.exception("Background daily-deal pruning failed")
        return
    logger.info("Background pruning removed %d expired daily deals", removed)


def create_scheduler(deals: DailyDealsService, interval_minutes: int) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        prune_daily_deals,
        trigger=IntervalTrigger(minutes=interval_minutes),
        args=[deals],
        id="prune_daily_deals",
        max_instances=1,          # Prevent overlapping runs
        misfire_grace_time=300,   # 5 min grace if a run is missed
    )
    return scheduler
