"""
Cart state transitions.

Every operation takes a CartState and returns a new one; the input is never
mutated, so callers can keep the previous state around (e.g. to diff what an
operation removed). Totals are not stored, compute them with
pricing.compute_totals after a transition.

Quantity rules:
    - a line's quantity stays within [1, limit], where limit is
      max_quantity_per_item further capped by the known stock
    - anything above the limit is clamped silently
    - setting a quantity below 1 removes the line
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from .config import CartSettings, cart_settings
from .models import CartItem, CartState, Coupon, ProductRecord, utcnow
from .pricing import SHIPPING_METHODS, compute_subtotal

logger = logging.getLogger(__name__)


class CartError(Exception):
    """Base class for cart operations the caller asked for but cannot have."""


class CouponRejectedError(CartError):
    """Coupon failed its minimum-amount or expiry check."""


class UnknownShippingMethodError(CartError):
    pass


def quantity_limit(stock_quantity: Optional[int], settings: CartSettings) -> int:
    if stock_quantity is None:
        return settings.max_quantity_per_item
    return min(settings.max_quantity_per_item, stock_quantity)


def find_item(state: CartState, item_id: str) -> Optional[CartItem]:
    return next((item for item in state.items if item.id == item_id), None)


def new_item_id(product_id: str, variant_id: Optional[str]) -> str:
    return f"{product_id}-{variant_id or 'default'}-{uuid4().hex[:8]}"


def add_item(
    state: CartState,
    product: ProductRecord,
    variant_id: Optional[str] = None,
    quantity: int = 1,
    settings: CartSettings = cart_settings,
) -> CartState:
    """Add `quantity` units of a product (variant) to the cart.

    Merges into an existing line for the same product and variant. The
    resulting quantity is clamped to the line's limit. Non-positive
    quantities and products without stock leave the cart unchanged.
    """
    if quantity < 1:
        logger.warning(f"Ignoring add of {quantity} x {product.id}")
        return state

    variant = product.find_variant(variant_id)
    unit_price = variant.price if variant else product.price
    stock = variant.stock_quantity if variant and variant.stock_quantity is not None else product.stock_quantity
    limit = quantity_limit(stock, settings)
    if limit < 1:
        logger.warning(f"Product {product.id} is out of stock, not added")
        return state

    variant_key = variant_id or None
    now = utcnow()
    items = list(state.items)
    for index, item in enumerate(items):
        if item.product_id == product.id and item.selected_variant_id == variant_key:
            items[index] = item.model_copy(
                update={
                    "quantity": min(item.quantity + quantity, limit),
                    "stock_quantity": stock,
                    "updated_at": now,
                }
            )
            return state.model_copy(update={"items": items})

    items.append(
        CartItem(
            id=new_item_id(product.id, variant_key),
            product_id=product.id,
            name=f"{product.name} ({variant.name})" if variant else product.name,
            selected_variant_id=variant_key,
            quantity=min(quantity, limit),
            unit_price=unit_price,
            stock_quantity=stock,
            added_at=now,
            updated_at=now,
        )
    )
    return state.model_copy(update={"items": items})


def remove_item(state: CartState, item_id: str) -> CartState:
    items = [item for item in state.items if item.id != item_id]
    if len(items) == len(state.items):
        return state
    return state.model_copy(update={"items": items})


def update_quantity(
    state: CartState,
    item_id: str,
    new_quantity: int,
    settings: CartSettings = cart_settings,
) -> CartState:
    if new_quantity < 1:
        return remove_item(state, item_id)

    items = list(state.items)
    for index, item in enumerate(items):
        if item.id == item_id:
            limit = max(1, quantity_limit(item.stock_quantity, settings))
            items[index] = item.model_copy(
                update={"quantity": min(new_quantity, limit), "updated_at": utcnow()}
            )
            return state.model_copy(update={"items": items})
    return state


def clear_cart(state: CartState) -> CartState:
    """Empty the cart and drop its coupon. The chosen shipping method stays."""
    return state.model_copy(update={"items": [], "applied_coupon": None})


def apply_coupon(state: CartState, coupon: Coupon, now: Optional[datetime] = None) -> CartState:
    """Apply `coupon`, replacing any coupon already on the cart.

    Coupon codes themselves are not validated here; only the coupon's own
    minimum-amount and expiry conditions are checked.
    """
    subtotal = compute_subtotal(state)
    if coupon.minimum_amount and subtotal < coupon.minimum_amount:
        raise CouponRejectedError(
            f"Minimum order amount of ${coupon.minimum_amount:.2f} required for coupon {coupon.code}"
        )

    if coupon.expires_at is not None:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        expires_at = coupon.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if now > expires_at:
            raise CouponRejectedError(f"Coupon {coupon.code} has expired")

    return state.model_copy(update={"applied_coupon": coupon})


def remove_coupon(state: CartState) -> CartState:
    return state.model_copy(update={"applied_coupon": None})


def select_shipping_method(state: CartState, method_id: str) -> CartState:
    if method_id not in SHIPPING_METHODS:
        raise UnknownShippingMethodError(f"Unknown shipping method: {method_id}")
    return state.model_copy(update={"shipping_method_id": method_id})
