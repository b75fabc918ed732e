"""
WebApp Cart Router

Cart endpoints. Every request activates the session's cart manager first
(identity, guest merge on login, load), then applies the action for the
identity that request resolved. The response always reflects a fresh read
of the store.
"""
from fastapi import APIRouter, Depends, HTTPException

from storefront.cart import CartState, CartStateManager
from storefront.errors import ERROR_PRODUCT_NOT_FOUND
from storefront.identity import IdentityProvider
from storefront.logging import get_logger
from storefront.repositories import ProductRepository

from .deps import get_cart_manager, get_identity_provider, get_product_repository
from .models import AddToCartRequest, UpdateCartItemRequest
from .shop import serialize_product

logger = get_logger(__name__)

router = APIRouter(tags=["webapp-cart"])


def _format_cart_response(manager: CartStateManager, state: CartState) -> dict:
    items = [
        {
            **line.to_dict(),
            "busy": manager.is_busy(line.product_id),
            "product": serialize_product(state.products_by_id[line.product_id]),
        }
        for line in state.visible_lines
    ]
    return {
        "identity": {
            "authenticated": state.identity.is_authenticated,
            "email": state.identity.email,
        },
        "items": items,
        "item_count": state.item_count,
        "total_quantity": state.total_quantity,
        "totals": state.totals.to_dict(),
        "merging": manager.is_merging,
        "notices": [n.to_dict() for n in manager.notices.drain()],
    }


@router.get("/cart")
async def get_cart(
    manager: CartStateManager = Depends(get_cart_manager),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Get the session's cart (merging a pending guest cart on login)."""
    state = await manager.activate(provider)
    return _format_cart_response(manager, state)


@router.post("/cart/add")
async def add_to_cart(
    request: AddToCartRequest,
    manager: CartStateManager = Depends(get_cart_manager),
    provider: IdentityProvider = Depends(get_identity_provider),
    products: ProductRepository = Depends(get_product_repository),
):
    """Add one unit of a product."""
    try:
        product = await products.get_by_id(request.product_id)
    except Exception as e:
        logger.error(f"Failed to look up product: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Catalog unavailable")
    if not product:
        raise HTTPException(status_code=404, detail=ERROR_PRODUCT_NOT_FOUND)

    identity = (await manager.activate(provider)).identity
    await manager.add_to_cart(product, identity)
    return _format_cart_response(manager, await manager.state_for(identity))


@router.patch("/cart/item")
async def update_cart_item(
    request: UpdateCartItemRequest,
    manager: CartStateManager = Depends(get_cart_manager),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Set a line's quantity (values below 1 are ignored)."""
    identity = (await manager.activate(provider)).identity
    await manager.set_quantity(request.product_id, request.quantity, identity)
    return _format_cart_response(manager, await manager.state_for(identity))


@router.delete("/cart/item/{product_id}")
async def remove_cart_item(
    product_id: str,
    manager: CartStateManager = Depends(get_cart_manager),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Remove a line (unknown products are a no-op)."""
    identity = (await manager.activate(provider)).identity
    await manager.remove_line(product_id, identity)
    return _format_cart_response(manager, await manager.state_for(identity))


@router.get("/login-url")
async def get_login_url(
    return_url: str,
    manager: CartStateManager = Depends(get_cart_manager),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Where "Sign in to checkout" sends the user."""
    return {"url": manager.request_login(return_url, provider)}
