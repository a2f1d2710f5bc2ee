#!/usr/bin/env python
"""
Seed script to create a demo user, cached products and daily deals for local smoke tests.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from uuid import NAMESPACE_DNS, uuid5

from shopcompare.config import get_settings
from shopcompare.models import DailyDeal, Platform, PriceHistoryEntry, Product
from shopcompare.services.freshness import discount_percentage
from shopcompare.services.registry import build_services
from shopcompare.store.base import DAILY_DEALS, PRODUCTS, USERS


def _stable_id(name: str) -> str:
    return str(uuid5(NAMESPACE_DNS, f"shopcompare-seed-{name}"))


def _demo_product(now: datetime) -> Product:
    platforms = [
        Platform(
            name=store,
            product_url=f"https://www.{store.lower()}.in/demo-phone",
            current_price=price,
            inclusive_price=price,
            price_history=[PriceHistoryEntry(date=now, price=price)],
            last_updated=now,
        )
        for store, price in (("Amazon", 69999.0), ("Flipkart", 68499.0))
    ]
    return Product(
        id=_stable_id("product"),
        name="Demo Phone 128 GB",
        description="Demo handset for seeding.",
        image_url="https://via.placeholder.com/300x300?text=Demo+Phone",
        brand="Demo",
        search_keywords=["demo phone"],
        platforms=platforms,
        last_scraped_at=now,
        last_price_change_at=now,
        created_at=now,
        updated_at=now,
    )


def _demo_deal(now: datetime) -> DailyDeal:
    return DailyDeal(
        id=_stable_id("deal"),
        name="Demo Headphones",
        image_url="https://via.placeholder.com/300x300?text=Demo+Headphones",
        original_price=29990,
        deal_price=19990,
        discount_percentage=discount_percentage(29990, 19990),
        platform="Amazon",
        product_url="https://amazon.com/product/demo-headphones",
        scraped_at=now,
        created_at=now,
        updated_at=now,
    )


async def seed(email: str, password: str):
    settings = get_settings()
    if settings.store_backend == "memory":
        print("STORE_BACKEND=memory: seeded data only lives for this process.", file=sys.stderr)
    services = build_services(settings)
    store = services.store
    now = datetime.now(timezone.utc)

    # Re-runs replace the fixed-id rows instead of duplicating them.
    for collection, record in ((PRODUCTS, _demo_product(now)), (DAILY_DEALS, _demo_deal(now))):
        await store.delete_by_filter(collection, {"id": record.id})
        await store.insert(collection, record.model_dump())

    existing = await store.find_by_field(USERS, "email", email.lower())
    if not existing:
        await services.auth.register("Demo User", email, password)

    print(f"Seeded demo user {email}, product and deal")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo data into the configured store.")
    parser.add_argument("--email", default="demo@shopcompare.test")
    parser.add_argument("--password", default="demo-password")
    args = parser.parse_args()
    try:
        asyncio.run(seed(args.email, args.password))
    except Exception as exc:
        print(
            "Seed failed:",
            exc,
            "\nCommon fixes:",
            "\n- Ensure .env has real SUPABASE_URL and SUPABASE_SERVICE_KEY (not placeholders)."
            "\n- Verify network access to Supabase.",
            file=sys.stderr,
        )
        sys.exit(1)
