"""Cart change events.

"cart changed" is broadcast after every cart mutation. Listeners subscribe
explicitly; RedisStreamPublisher mirrors events onto an Upstash Redis stream
for surfaces living outside this process (header cart badge).
"""

import inspect
import json
from typing import Any, Awaitable, Callable, Union

from storefront.db import RedisKeys
from storefront.identity import GUEST_OWNER
from storefront.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

CART_CHANGED = "cart.changed"

Listener = Callable[[str], Union[None, Awaitable[None]]]


class CartEvents:
    """Observer registry for "cart changed".

    Listeners receive the owner key ("guest" or an email). A failing
    listener is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def emit_cart_changed(self, owner: str) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(owner)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"cart.changed listener failed: {e}", exc_info=True)


class RedisStreamPublisher:
    """Listener that appends cart.changed to stream:realtime:cart:{owner}."""

    def __init__(self, redis: Any, session_id: str | None = None):
        self.redis = redis
        self.session_id = session_id

    async def __call__(self, owner: str) -> None:
        # Guest streams are per session, account streams per email
        stream_owner = owner
        if self.session_id and owner == GUEST_OWNER:
            stream_owner = f"guest:{self.session_id}"

        payload = {"event": CART_CHANGED, "owner": stream_owner}
        try:
            await self.redis.xadd(
                RedisKeys.cart_stream_key(stream_owner), "*", {"data": json.dumps(payload)}
            )
            logger.debug(f"Emitted cart.changed for {sanitize_id_for_logging(stream_owner)}")
        except Exception as e:
            logger.warning(f"Failed to emit cart.changed: {e}", exc_info=True)
