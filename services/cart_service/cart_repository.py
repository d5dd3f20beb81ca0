"""
Cart Repository Module

Redis-based persistence for session carts. The repository only loads and
stores CartState documents; all cart rules live in cart_state and pricing.

Key Features:
    - One JSON document per browser session under "cart:{session_id}"
    - Sliding expiry: the TTL (24 hours by default) resets on every save
    - Empty carts are deleted instead of stored
    - Undecodable documents are logged and treated as an empty cart

Data Format (Redis):
    Key: "cart:sess-123"
    Value: '{
        "items": [
            {"id": "tp-cooler-default-1a2b3c4d", "product_id": "tp-cooler",
             "name": "Two-Phase Cooler", "selected_variant_id": null,
             "quantity": 2, "unit_price": 100.0, "stock_quantity": 25, ...}
        ],
        "applied_coupon": {"code": "SAVE10", "type": "percentage", "value": 10, ...},
        "shipping_method_id": null
    }'

Example Usage:
    ```python
    redis_client = redis.Redis(host="redis", port=6379, db=0, decode_responses=True)
    repo = CartRepository(redis_client)

    state = repo.get_state("sess-123")
    state = cart_state.add_item(state, product, quantity=2)
    repo.save_state("sess-123", state)
    ```
"""

import logging
from typing import List, Optional

import redis
from pydantic import ValidationError

from .models import CartState

logger = logging.getLogger(__name__)


class CartRepository:
    """Repository for managing session carts in Redis."""

    CART_KEY_PREFIX = "cart:"
    CART_TTL = 86400  # 24 hours

    def __init__(self, redis_client: redis.Redis, ttl: Optional[int] = None):
        """Initialize cart repository."""
        self.redis = redis_client
        self.ttl_seconds = ttl or self.CART_TTL

    def _key(self, session_id: str) -> str:
        return f"{self.CART_KEY_PREFIX}{session_id}"

    def get_state(self, session_id: str) -> CartState:
        """Load the session's cart, or an empty cart if none is stored."""
        cart_json = self.redis.get(self._key(session_id))
        if cart_json is None:
            return CartState()

        try:
            return CartState.model_validate_json(cart_json)
        except ValidationError as e:
            logger.error(
                f"Discarding unreadable cart for session {session_id}: {e}",
                extra={"session_id": session_id},
            )
            return CartState()

    def save_state(self, session_id: str, state: CartState) -> None:
        """Store the session's cart and reset its TTL. Empty carts are deleted."""
        if state.is_empty:
            self.redis.delete(self._key(session_id))
            logger.info(f"Deleted empty cart for session {session_id}", extra={"session_id": session_id})
            return

        self.redis.set(self._key(session_id), state.model_dump_json(), ex=self.ttl_seconds)
        logger.info(
            f"Saved cart for session {session_id} ({len(state.items)} items)",
            extra={"session_id": session_id},
        )

    def clear(self, session_id: str) -> None:
        """Drop the session's cart entirely."""
        self.redis.delete(self._key(session_id))
        logger.info(f"Cleared cart for session {session_id}", extra={"session_id": session_id})

    def ttl(self, session_id: str) -> int:
        """Seconds until the session's cart expires (-2 if there is none)."""
        return self.redis.ttl(self._key(session_id))

    def list_sessions(self) -> List[str]:
        """Session ids that currently have a stored cart."""
        return sorted(
            key[len(self.CART_KEY_PREFIX):]
            for key in self.redis.scan_iter(match=f"{self.CART_KEY_PREFIX}*")
        )
