from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# --- products.platforms[].price_history[] ---
# One entry per observation; append-only, duplicates allowed.
class PriceHistoryEntry(BaseModel):
    date: datetime
    price: float


# --- products.platforms[] ---
class Platform(BaseModel):
    name: str  # store name, e.g. "Amazon.in"
    logo_url: Optional[str] = None
    product_url: str = ""
    current_price: float
    original_price: Optional[float] = None
    discount: float = 0
    inclusive_price: float
    delivery_date: Optional[datetime] = None
    seller_rating: Optional[float] = None
    price_history: List[PriceHistoryEntry] = Field(default_factory=list)
    last_updated: Optional[datetime] = None


# --- products ---
# Owned by the product cache; name is the whitespace-normalized title.
class Product(BaseModel):
    id: Optional[str] = None  # PRIMARY KEY
    name: str
    description: Optional[str] = None
    image_url: str = ""
    brand: Optional[str] = None
    category: Optional[str] = None
    rating: Optional[float] = None
    reviews_count: Optional[int] = None
    features: List[str] = Field(default_factory=list)
    specifications: Dict[str, str] = Field(default_factory=dict)
    search_keywords: List[str] = Field(default_factory=list)
    platforms: List[Platform] = Field(default_factory=list)
    last_scraped_at: datetime
    last_price_change_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductSearchResult(Product):
    lowest_price: Optional[float] = None
    best_value: bool = False


class ProductDetail(Product):
    lowest_price: Optional[float] = None
    best_value_store: Optional[str] = None


# --- daily_deals ---
class DailyDeal(BaseModel):
    id: Optional[str] = None  # PRIMARY KEY
    name: str
    image_url: str = ""
    original_price: float = Field(ge=0)
    deal_price: float = Field(ge=0)
    discount_percentage: int = Field(ge=0, le=100)
    platform: str
    product_url: str
    scraped_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- wishlists ---
# Unique on (user_id, product_id); product_id is a weak reference.
class WishlistEntry(BaseModel):
    id: Optional[str] = None  # PRIMARY KEY
    user_id: str
    product_id: str
    product_url: Optional[str] = None
    platform: Optional[str] = None
    target_price: Optional[float] = None
    added_at: datetime


# --- orders ---
class Order(BaseModel):
    id: Optional[str] = None  # PRIMARY KEY
    user_id: str
    order_id: str  # order number on the platform
    product_name: str
    platform: str
    purchase_date: datetime
    status: str = "Pending"
    order_url: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_status_check_at: Optional[datetime] = None


# --- search_history ---
# Either user_id or session_id is set, never both.
class SearchHistory(BaseModel):
    id: Optional[str] = None  # PRIMARY KEY
    query: str
    timestamp: datetime
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    product_id: Optional[str] = None


# --- users ---
class UserPreferences(BaseModel):
    theme: Literal["light", "dark"] = "light"


class User(BaseModel):
    id: Optional[str] = None  # PRIMARY KEY
    name: str
    email: str  # UNIQUE
    password_hash: str
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
