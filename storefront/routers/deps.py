"""
Shared dependencies for webapp routers.

Cart managers are kept per guest session (in-memory) so that the merge
guard and busy flags span all requests of one browsing session.
"""
import secrets
from collections import OrderedDict
from typing import Optional

from fastapi import Depends, Header, Response

from storefront.cart import CartStateManager, RedisLocalStore
from storefront.db import get_redis, get_supabase
from storefront.events import CartEvents, RedisStreamPublisher
from storefront.identity import IdentityProvider, SupabaseIdentityProvider
from storefront.logging import get_logger
from storefront.repositories import CartItemRepository, ProductRepository

logger = get_logger(__name__)

GUEST_SESSION_HEADER = "X-Guest-Session"
MAX_SESSIONS = 10_000

_cart_sessions: "OrderedDict[str, CartStateManager]" = OrderedDict()


def get_guest_session_id(
    x_guest_session: Optional[str] = Header(None, alias=GUEST_SESSION_HEADER),
) -> str:
    """Guest session id from the header, or a fresh one."""
    if x_guest_session and 8 <= len(x_guest_session) <= 128 and x_guest_session.isprintable():
        return x_guest_session
    return secrets.token_urlsafe(16)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1]:
        return parts[1]
    return None


async def get_product_repository() -> ProductRepository:
    return ProductRepository(await get_supabase())


async def get_identity_provider(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> IdentityProvider:
    """Identity provider bound to this request's bearer token."""
    return SupabaseIdentityProvider(await get_supabase(), bearer_token(authorization))


def _remember(session_id: str, manager: CartStateManager) -> None:
    _cart_sessions[session_id] = manager
    _cart_sessions.move_to_end(session_id)
    while len(_cart_sessions) > MAX_SESSIONS:
        _cart_sessions.popitem(last=False)


async def get_cart_manager(
    response: Response,
    session_id: str = Depends(get_guest_session_id),
) -> CartStateManager:
    """
    Cart manager for this guest session.

    The manager is shared by concurrent requests of the session; identity is
    resolved per request (see get_identity_provider) and passed to it.
    """
    client = await get_supabase()

    manager = _cart_sessions.get(session_id)
    if manager is None:
        redis = get_redis()
        events = CartEvents()
        events.subscribe(RedisStreamPublisher(redis, session_id))
        manager = CartStateManager(
            identity_provider=SupabaseIdentityProvider(client),
            products=ProductRepository(client),
            cart_items=CartItemRepository(client),
            local_store=RedisLocalStore(redis, session_id),
            events=events,
        )
    _remember(session_id, manager)

    response.headers[GUEST_SESSION_HEADER] = session_id
    return manager
