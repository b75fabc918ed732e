"""
Storefront configuration.

All settings come from environment variables and are read once at import.
"""

import os
from decimal import Decimal

from storefront.money import to_decimal

# Supabase (catalog, cart_items, auth)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

# Upstash Redis (guest carts, realtime streams)
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")

# Pricing
TAX_RATE: Decimal = to_decimal(os.environ.get("STOREFRONT_TAX_RATE", "0.08"))
FREE_SHIPPING_THRESHOLD: Decimal = to_decimal(
    os.environ.get("STOREFRONT_FREE_SHIPPING_THRESHOLD", "50")
)

# Shop filter defaults
DEFAULT_PRICE_MIN: Decimal = to_decimal(os.environ.get("STOREFRONT_PRICE_MIN", "0"))
DEFAULT_PRICE_MAX: Decimal = to_decimal(os.environ.get("STOREFRONT_PRICE_MAX", "1000"))

# OAuth provider used for the "sign in to checkout" redirect
LOGIN_PROVIDER = os.environ.get("STOREFRONT_LOGIN_PROVIDER", "google")

# Table names in the CRUD store
PRODUCTS_TABLE = "products"
CART_ITEMS_TABLE = "cart_items"

# Key of the guest cart blob inside the local store
GUEST_CART_KEY = "anonymousCart"
