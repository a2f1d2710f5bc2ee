"""Freshness policy, title normalization and pricing helpers shared by the caches."""
import asyncio
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ..models import Platform, ProductSearchResult


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    # Naive timestamps coming back from storage are UTC.
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class FreshnessPolicy:
    max_age: timedelta

    def is_fresh(self, ts: Optional[datetime], now: datetime) -> bool:
        if ts is None:
            return False
        return now - as_utc(ts) < self.max_age

    def cutoff(self, now: datetime) -> datetime:
        return now - self.max_age

    def partition(self, items: Iterable[Any], key: Callable[[Any], Optional[datetime]], now: datetime) -> Tuple[List[Any], List[Any]]:
        fresh, stale = [], []
        for item in items:
            (fresh if self.is_fresh(key(item), now) else stale).append(item)
        return fresh, stale


def normalize_title(title: str) -> str:
    return " ".join(title.split())


def normalize_query(query: str) -> str:
    return " ".join(query.lower().split())


def lowest_price(platforms: List[Platform]) -> Optional[float]:
    prices = [p.current_price for p in platforms]
    return min(prices) if prices else None


def cheapest_platform(platforms: List[Platform]) -> Optional[str]:
    if not platforms:
        return None
    return min(platforms, key=lambda p: p.current_price).name


def mark_best_value(results: List[ProductSearchResult]) -> List[ProductSearchResult]:
    prices = [r.lowest_price for r in results if r.lowest_price is not None]
    best = min(prices) if prices else None
    for r in results:
        r.best_value = best is not None and r.lowest_price == best
    return results


def discount_percentage(original: float, deal: float) -> int:
    if original <= 0:
        return 0
    pct = math.floor((original - deal) / original * 100 + 0.5)
    return max(0, min(100, int(pct)))


class SingleFlight:
    """
    Collapses concurrent calls that share a key into one in-flight task.

    Callers arriving while the task runs await the same result (or exception);
    the key is released once the task finishes.
    """

    def __init__(self):
        self._inflight: Dict[str, asyncio.Task] = {}

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        return await asyncio.shield(task)
