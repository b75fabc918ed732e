"""
Repository Pattern for Database Operations

- ProductRepository: catalog reads
- CartItemRepository: account cart lines CRUD
"""
from .product_repo import ProductRepository
from .cart_repo import CartItemRepository

__all__ = [
    "ProductRepository",
    "CartItemRepository",
]
