"""Database Models - Pydantic models for store entities."""
import math
from decimal import Decimal
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator

from storefront.money import to_decimal as _to_decimal


class Product(BaseModel):
    """Catalog product (owned by the external catalog store)."""
    model_config = ConfigDict(extra="ignore")  # Ignore unknown fields from DB

    id: str
    name: str = ""
    brand: Optional[str] = None
    category: Optional[str] = None
    price: Decimal = Decimal("0")
    stock: int = 0
    rating: Optional[float] = None  # 0-5
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_date: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def convert_id_to_str(cls, v):
        return str(v)

    @field_validator("price", mode="before")
    @classmethod
    def convert_price_to_decimal(cls, v):
        return _to_decimal(v)

    @field_validator("stock", mode="before")
    @classmethod
    def convert_stock(cls, v):
        try:
            return max(int(v), 0)
        except (TypeError, ValueError, OverflowError):
            return 0

    @field_validator("rating", mode="before")
    @classmethod
    def convert_rating(cls, v):
        try:
            rating = float(v) if v is not None else None
        except (TypeError, ValueError):
            return None
        return rating if rating is not None and math.isfinite(rating) else None


class CartItemRecord(BaseModel):
    """Account cart line as stored in the cart_items table."""
    model_config = ConfigDict(extra="ignore")

    id: str
    user_email: str
    product_id: str
    quantity: int = 1

    @field_validator("id", "product_id", mode="before")
    @classmethod
    def convert_key_to_str(cls, v):
        return str(v)
