import os
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, ValidationError


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    env: str = Field(default="local", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # "memory" keeps everything in-process; "supabase" talks to PostgREST.
    store_backend: str = Field(default="memory", alias="STORE_BACKEND")
    supabase_url: Optional[HttpUrl] = Field(default=None, alias="SUPABASE_URL")
    supabase_key: Optional[str] = Field(default=None, alias="SUPABASE_SERVICE_KEY")

    serp_api_key: Optional[str] = Field(default=None, alias="SERP_API_KEY")
    serp_api_url: str = Field(default="https://serpapi.com/search.json", alias="SERP_API_URL")
    serp_location: str = Field(default="India", alias="SERP_LOCATION")
    serp_hl: str = Field(default="en", alias="SERP_HL")
    serp_gl: str = Field(default="in", alias="SERP_GL")
    serp_timeout_seconds: float = Field(default=20.0, alias="SERP_TIMEOUT_SECONDS")

    jwt_secret: str = Field(default="change_me", alias="JWT_SECRET")
    jwt_expires_days: int = Field(default=7, alias="JWT_EXPIRES_DAYS")
    bcrypt_rounds: int = Field(default=12, ge=4, le=31, alias="BCRYPT_ROUNDS")

    product_freshness_minutes: int = Field(default=60, alias="PRODUCT_FRESHNESS_MINUTES")
    deals_freshness_hours: int = Field(default=6, alias="DEALS_FRESHNESS_HOURS")
    deals_retention_hours: int = Field(default=24, alias="DEALS_RETENTION_HOURS")
    deals_prune_interval_minutes: int = Field(default=60, alias="DEALS_PRUNE_INTERVAL_MINUTES")
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")

    # "auto" uses SerpAPI when a key is configured, the static catalog otherwise.
    deals_source: str = Field(default="auto", alias="DEALS_SOURCE")
    deals_per_platform: int = Field(default=3, ge=1, le=20, alias="DEALS_PER_PLATFORM")
    deal_platforms: str = Field(default="Amazon,Flipkart,Myntra,Meesho,Ajio", alias="DEAL_PLATFORMS")
    common_queries: str = Field(
        default="smartphones,laptops,dresses,shoes,electronics",
        alias="COMMON_QUERIES",
    )

    @property
    def deal_platform_list(self) -> List[str]:
        return _split_csv(self.deal_platforms)

    @property
    def common_query_list(self) -> List[str]:
        return [q.lower() for q in _split_csv(self.common_queries)]

    @property
    def product_freshness(self) -> timedelta:
        return timedelta(minutes=self.product_freshness_minutes)

    @property
    def deals_freshness(self) -> timedelta:
        return timedelta(hours=self.deals_freshness_hours)

    @property
    def deals_retention(self) -> timedelta:
        return timedelta(hours=self.deals_retention_hours)


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _load_dotenv():
    # Load from repo root if present, otherwise rely on environment variables.
    root_env = Path(__file__).resolve().parents[2] / ".env"
    if root_env.exists():
        load_dotenv(root_env)
    else:
        load_dotenv()


@lru_cache()
def get_settings() -> Settings:
    _load_dotenv()
    try:
        return Settings(**os.environ)
    except ValidationError as exc:
        invalid = [str(e["loc"][0]) for e in exc.errors()]
        detail = f"Invalid or missing environment variables: {', '.join(invalid)}"
        raise RuntimeError(detail) from exc
