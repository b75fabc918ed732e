"""Cart package: models, storage backends, and state manager."""
from .models import CartLine, CartState, CartTotals, GuestLine, compute_totals
from .service import CartStateManager
from .storage import (
    AccountCartBackend,
    CartBackend,
    GuestCartBackend,
    LocalStore,
    MemoryLocalStore,
    RedisLocalStore,
)

__all__ = [
    "CartLine",
    "CartState",
    "CartTotals",
    "GuestLine",
    "compute_totals",
    "CartStateManager",
    "AccountCartBackend",
    "CartBackend",
    "GuestCartBackend",
    "LocalStore",
    "MemoryLocalStore",
    "RedisLocalStore",
]
