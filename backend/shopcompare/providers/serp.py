"""
SerpAPI google_shopping client.

Raw payloads are parsed into ``ShoppingResult`` models before they reach the
cache. A payload without a ``shopping_results`` list is an empty result, and
individual items that fail validation are dropped.
"""
import logging
import re
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..config import Settings
from ..errors import UpstreamError

logger = logging.getLogger(__name__)

# Leading digit group with optional thousands separators and decimals: "₹1,29,999.00" -> 129999.0
PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


def extract_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = PRICE_RE.search(str(value))
    if not match:
        return None
    return float(match.group(0).replace(",", ""))


class ShoppingResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    source: str = "Unknown"
    price: Optional[str] = None
    extracted_price: Optional[float] = None
    old_price: Optional[str] = None
    extracted_old_price: Optional[float] = None
    product_id: Optional[str] = None
    product_link: Optional[str] = None
    link: Optional[str] = None
    rating: Optional[float] = None
    reviews: Optional[int] = None
    thumbnail: Optional[str] = None
    thumbnails: List[str] = []
    delivery: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title is blank")
        return v

    @field_validator("price", "old_price", mode="before")
    @classmethod
    def _stringify(cls, v):
        return None if v is None else str(v)

    @field_validator("rating", "reviews", mode="before")
    @classmethod
    def _optional_number(cls, v):
        # Review counts sometimes arrive as "1.2K"; those are dropped, not fatal.
        if isinstance(v, str):
            v = v.replace(",", "").strip()
            try:
                return float(v)
            except ValueError:
                return None
        return v

    @property
    def price_value(self) -> Optional[float]:
        if self.extracted_price is not None:
            return self.extracted_price
        return extract_price(self.price)

    @property
    def old_price_value(self) -> Optional[float]:
        if self.extracted_old_price is not None:
            return self.extracted_old_price
        return extract_price(self.old_price)

    @property
    def url(self) -> str:
        return self.product_link or self.link or ""

    @property
    def images(self) -> List[str]:
        if self.thumbnails:
            return self.thumbnails
        return [self.thumbnail] if self.thumbnail else []


def parse_shopping_results(payload: Any) -> List[ShoppingResult]:
    if not isinstance(payload, dict):
        logger.warning("SerpAPI payload is not an object; treating as empty")
        return []
    raw_items = payload.get("shopping_results")
    if not isinstance(raw_items, list):
        logger.info("SerpAPI payload has no shopping_results")
        return []

    results: List[ShoppingResult] = []
    for raw in raw_items:
        try:
            item = ShoppingResult.model_validate(raw)
        except ValidationError as exc:
            logger.debug("Dropping malformed shopping result: %s", exc.errors())
            continue
        if item.price_value is None:
            logger.debug("Dropping shopping result without a price: %s", item.title)
            continue
        results.append(item)
    return results


class SerpProvider:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.serp_api_key
        self.url = settings.serp_api_url
        self.locale = {
            "location": settings.serp_location,
            "hl": settings.serp_hl,
            "gl": settings.serp_gl,
        }
        self.timeout = httpx.Timeout(settings.serp_timeout_seconds)
        self._transport = transport

    async def _get(self, params: Dict[str, Any]) -> Any:
        if not self.api_key:
            raise UpstreamError("SERP_API_KEY is not configured", retryable=False)

        query = {**params, **self.locale, "api_key": self.api_key}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.get(self.url, params=query)
            except httpx.TimeoutException as exc:
                raise UpstreamError("SerpAPI request timed out") from exc
            except httpx.RequestError as exc:
                raise UpstreamError(f"Network error calling SerpAPI: {exc}") from exc

        if resp.status_code == 429:
            raise UpstreamError("SerpAPI rate limit reached", rate_limited=True)
        if resp.status_code >= 400:
            raise UpstreamError(
                f"SerpAPI returned HTTP {resp.status_code}",
                retryable=resp.status_code >= 500,
                details={"status": resp.status_code},
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError("SerpAPI returned a non-JSON body") from exc

    async def search(self, query: str) -> List[ShoppingResult]:
        logger.info("Calling SerpAPI google_shopping for %r", query)
        payload = await self._get({"engine": "google_shopping", "q": query})
        results = parse_shopping_results(payload)
        logger.info("SerpAPI returned %d usable results for %r", len(results), query)
        return results
