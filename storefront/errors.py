"""
Storefront errors.

Exception taxonomy for cart and catalog operations, plus the user-facing
notice texts (kept here to avoid string duplication).
"""

# Notice titles
TITLE_ERROR = "Error"
TITLE_ADDED = "Added to cart"
TITLE_REMOVED = "Item removed"
TITLE_CART_UPDATED = "Cart Updated"
TITLE_MERGE_FAILED = "Error merging carts"

# Notice descriptions
ERROR_LOAD_PRODUCTS = "Failed to load products"
ERROR_LOAD_CART = "Failed to load cart items"
ERROR_ADD_TO_CART = "Failed to add item to cart"
ERROR_UPDATE_QUANTITY = "Failed to update quantity"
ERROR_REMOVE_ITEM = "Failed to remove item"
ERROR_MERGE = "Some items from your guest cart could not be moved to your account."
MESSAGE_REMOVED = "Item has been removed from your cart"
MESSAGE_MERGED = "Your guest cart has been merged with your account."

# API errors
ERROR_PRODUCT_NOT_FOUND = "Product not found"


class StorefrontError(Exception):
    """Base class for storefront errors."""


class IdentityUnavailable(StorefrontError):
    """No authenticated user. Callers treat this as guest mode."""


class StoreReadFailure(StorefrontError):
    """A catalog or cart read failed."""


class StoreWriteFailure(StorefrontError):
    """A cart create/update/delete failed."""


class PartialMergeFailure(StorefrontError):
    """One or more guest lines could not be merged into the account cart."""

    def __init__(self, failures: dict[str, BaseException]):
        self.failures = failures
        super().__init__(f"{len(failures)} guest cart line(s) failed to merge")
