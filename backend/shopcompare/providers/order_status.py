import logging
from typing import Optional

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

UA = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome Safari ShopCompare/1.0"

# Most advanced first, so "Shipped ... Delivered" reads as Delivered.
KNOWN_STATUSES = [
    "Cancelled",
    "Returned",
    "Delivered",
    "Out for Delivery",
    "Shipped",
    "Confirmed",
    "Pending",
]
UNAVAILABLE = "Status unavailable"


def status_from_html(html: str) -> str:
    text = BeautifulSoup(html, "html.parser").get_text(" ", strip=True).lower()
    for status in KNOWN_STATUSES:
        if status.lower() in text:
            return status
    return UNAVAILABLE


class OrderStatusChecker:
    def __init__(self, timeout: float = 15.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    async def check(self, order_url: str) -> str:
        logger.info("Checking order status at %s", order_url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": UA},
                follow_redirects=True,
            ) as client:
                resp = await client.get(order_url)
                resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Order status check failed for %s: %s", order_url, exc)
            return UNAVAILABLE
        return status_from_html(resp.text)
