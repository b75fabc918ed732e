"""Cart state manager: guest cart, account cart, and the merge between them."""
import asyncio
from typing import Dict, List, Optional, Set

from storefront.errors import (
    ERROR_ADD_TO_CART,
    ERROR_LOAD_CART,
    ERROR_MERGE,
    ERROR_REMOVE_ITEM,
    ERROR_UPDATE_QUANTITY,
    MESSAGE_MERGED,
    MESSAGE_REMOVED,
    TITLE_ADDED,
    TITLE_CART_UPDATED,
    TITLE_ERROR,
    TITLE_MERGE_FAILED,
    TITLE_REMOVED,
    IdentityUnavailable,
    PartialMergeFailure,
    StoreReadFailure,
    StoreWriteFailure,
)
from storefront.events import CartEvents
from storefront.identity import ANONYMOUS, Identity, IdentityProvider
from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.models import Product
from storefront.notices import NoticeBoard
from storefront.repositories import CartItemRepository, ProductRepository

from .models import CartState, CartTotals, GuestLine
from .storage import AccountCartBackend, CartBackend, GuestCartBackend, LocalStore

logger = get_logger(__name__)


class CartStateManager:
    """
    Owns "what is in the cart right now" for one browsing session.

    Features:
    - Guest cart in the session's local store, account cart in the remote store
    - Additive merge of the guest cart on login
    - Re-fetch after every write (no optimistic updates)
    - "cart changed" emitted after every mutation
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        products: ProductRepository,
        cart_items: CartItemRepository,
        local_store: LocalStore,
        events: Optional[CartEvents] = None,
        notices: Optional[NoticeBoard] = None,
    ):
        self.identity_provider = identity_provider
        self.products = products
        self.cart_items = cart_items
        self.guest = GuestCartBackend(local_store)
        self.events = events if events is not None else CartEvents()
        self.notices = notices if notices is not None else NoticeBoard()

        self.state = CartState()
        self.loading = False
        self._merging = False
        # Guest lines merged into an account but not yet cleared, by email
        self._uncleared_merges: Dict[str, List[GuestLine]] = {}
        self._busy: Set[str] = set()
        self._write_lock = asyncio.Lock()

    @property
    def identity(self) -> Identity:
        return self.state.identity

    @property
    def is_merging(self) -> bool:
        return self._merging

    @property
    def totals(self) -> CartTotals:
        return self.state.totals

    def is_busy(self, product_id: str) -> bool:
        """True while a quantity change or removal for this line is in flight."""
        return product_id in self._busy

    def backend_for(self, identity: Identity) -> CartBackend:
        if identity.is_authenticated:
            return AccountCartBackend(identity.email, self.cart_items, self.products)
        return self.guest

    async def resolve_identity(self, provider: Optional[IdentityProvider] = None) -> Identity:
        """Current identity; any failure means guest mode."""
        provider = provider if provider is not None else self.identity_provider
        try:
            return await provider.current_identity()
        except IdentityUnavailable as e:
            logger.debug(f"No authenticated user, using guest cart: {e}")
        except Exception as e:
            logger.warning(f"Identity provider failed, using guest cart: {e}")
        return ANONYMOUS

    async def activate(self, provider: Optional[IdentityProvider] = None) -> CartState:
        """
        View activation: resolve identity, merge the guest cart on login, load.

        provider overrides the manager's own identity provider for this call
        (one per request when the manager is shared by a session).
        """
        identity = await self.resolve_identity(provider)
        if identity.is_authenticated:
            await self.merge_guest_cart(identity.email)
        return await self.load_cart(identity)

    async def load_cart(self, identity: Optional[Identity] = None) -> CartState:
        """
        Load the cart for identity (default: the current one).

        On a read failure the previous state is kept (or an empty cart if the
        identity changed) and a notice is raised.
        """
        identity = identity if identity is not None else self.state.identity
        self.loading = True
        try:
            state = await self.backend_for(identity).load()
        except StoreReadFailure as e:
            logger.error(f"Failed to load cart items: {e}", exc_info=True)
            self.notices.error(TITLE_ERROR, ERROR_LOAD_CART)
            if self.state.identity != identity:
                self.state = CartState(identity=identity)
            return self.state
        finally:
            self.loading = False

        self.state = state
        return state

    async def state_for(self, identity: Identity) -> CartState:
        """The loaded state if it belongs to identity, else a fresh load."""
        if self.state.identity == identity:
            return self.state
        return await self.load_cart(identity)

    async def merge_guest_cart(self, email: str) -> bool:
        """
        Merge the guest cart into email's account cart.

        Runs whenever the guest cart is non-empty at login. Per-line failures
        are reported once; the guest cart is cleared regardless. Holds the
        write lock throughout, so guest writes wait until the merge is done.

        Returns:
            True if a merge ran to completion
        """
        if self._merging:
            logger.warning("Guest cart merge already in progress, skipping")
            return False

        # Set before the first await so a concurrent call sees it
        self._merging = True
        try:
            async with self._write_lock:
                stale = self._uncleared_merges.get(email)
                if stale is not None:
                    try:
                        await self.guest.discard(stale)
                    except (StoreReadFailure, StoreWriteFailure) as e:
                        logger.error(f"Failed to clear merged guest lines: {e}", exc_info=True)
                        return False
                    del self._uncleared_merges[email]

                try:
                    guest_lines = await self.guest.read_lines()
                except StoreReadFailure as e:
                    logger.error(f"Failed to read guest cart for merge: {e}", exc_info=True)
                    return False
                if not guest_lines:
                    return False

                account = AccountCartBackend(email, self.cart_items, self.products)
                try:
                    failures = await account.merge(guest_lines)
                except StoreReadFailure as e:
                    # Nothing written; the guest cart is kept for the next activation
                    logger.error(f"Error merging carts: {e}", exc_info=True)
                    self.notices.error(TITLE_MERGE_FAILED, ERROR_MERGE)
                    return False

                if failures:
                    error = PartialMergeFailure(failures)
                    for product_id, failure in failures.items():
                        logger.warning(
                            f"Guest line {sanitize_id_for_logging(product_id)} not merged: {failure}"
                        )
                    logger.warning(
                        f"Partial guest cart merge for {sanitize_id_for_logging(email)}: {error}"
                    )
                    self.notices.error(TITLE_MERGE_FAILED, ERROR_MERGE)
                else:
                    logger.info(
                        f"Merged {len(guest_lines)} guest line(s) into {sanitize_id_for_logging(email)}"
                    )
                    self.notices.info(TITLE_CART_UPDATED, MESSAGE_MERGED)

                try:
                    await self.guest.clear()
                except StoreWriteFailure as e:
                    logger.error(f"Failed to clear guest cart after merge: {e}", exc_info=True)
                    self._uncleared_merges[email] = guest_lines

            await self.events.emit_cart_changed(email)
            return True
        finally:
            self._merging = False

    async def set_quantity(
        self, product_id: str, new_quantity: int, identity: Optional[Identity] = None
    ) -> bool:
        """
        Set a line's quantity. Quantities below 1 are ignored (use remove_line).

        Returns:
            True if the store was changed
        """
        identity = identity if identity is not None else self.identity
        if new_quantity < 1:
            logger.debug(f"Ignoring quantity {new_quantity} for {sanitize_id_for_logging(product_id)}")
            return False
        if self.is_busy(product_id):
            logger.debug(f"Line {sanitize_id_for_logging(product_id)} busy, ignoring update")
            return False

        self._busy.add(product_id)
        try:
            async with self._write_lock:
                changed = False
                try:
                    changed = await self.backend_for(identity).set_quantity(
                        product_id, new_quantity
                    )
                except (StoreReadFailure, StoreWriteFailure) as e:
                    logger.error(f"Failed to update quantity: {e}", exc_info=True)
                    self.notices.error(TITLE_ERROR, ERROR_UPDATE_QUANTITY)
                else:
                    if not changed:
                        return False

                await self.load_cart(identity)
            if changed:
                await self.events.emit_cart_changed(identity.owner)
            return changed
        finally:
            self._busy.discard(product_id)

    async def remove_line(self, product_id: str, identity: Optional[Identity] = None) -> bool:
        """
        Remove a line. Unknown product ids are a no-op.

        Returns:
            True if the store was changed
        """
        identity = identity if identity is not None else self.identity
        if self.is_busy(product_id):
            logger.debug(f"Line {sanitize_id_for_logging(product_id)} busy, ignoring removal")
            return False

        self._busy.add(product_id)
        try:
            async with self._write_lock:
                removed = False
                try:
                    removed = await self.backend_for(identity).remove(product_id)
                except (StoreReadFailure, StoreWriteFailure) as e:
                    logger.error(f"Failed to remove item: {e}", exc_info=True)
                    self.notices.error(TITLE_ERROR, ERROR_REMOVE_ITEM)
                else:
                    if not removed:
                        return False
                    self.notices.info(TITLE_REMOVED, MESSAGE_REMOVED)

                await self.load_cart(identity)
            if removed:
                await self.events.emit_cart_changed(identity.owner)
            return removed
        finally:
            self._busy.discard(product_id)

    async def add_to_cart(self, product: Product, identity: Optional[Identity] = None) -> bool:
        """
        Add one unit of product to identity's cart (default: the current one).

        Concurrent calls are applied one after another, so two quick adds of
        the same product give one line with quantity 2.
        """
        identity = identity if identity is not None else self.identity
        added = False
        async with self._write_lock:
            try:
                await self.backend_for(identity).add(product)
                added = True
            except (StoreReadFailure, StoreWriteFailure) as e:
                logger.error(f"Failed to add item to cart: {e}", exc_info=True)
                self.notices.error(TITLE_ERROR, ERROR_ADD_TO_CART)
            else:
                self.notices.info(TITLE_ADDED, f"{product.name} has been added to your cart")

            await self.load_cart(identity)
        await self.events.emit_cart_changed(identity.owner)
        return added

    def request_login(self, return_url: str, provider: Optional[IdentityProvider] = None) -> str:
        """Login redirect target for "Sign in to checkout"."""
        provider = provider if provider is not None else self.identity_provider
        return provider.login_url(return_url)
