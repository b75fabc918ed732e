"""
WebApp API Pydantic Models

Request models for the shop and cart endpoints.
"""
from pydantic import BaseModel


class AddToCartRequest(BaseModel):
    product_id: str


class UpdateCartItemRequest(BaseModel):
    product_id: str
    quantity: int
