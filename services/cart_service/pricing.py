"""
Cart pricing.

All figures are kept unrounded; round_money is applied only when totals are
rendered for display or written into an outgoing payload.

    subtotal = sum(unit_price * quantity)
    shipping = selected method cost (standard: free at/over the threshold)
    tax      = tax_rate * subtotal
    discount = coupon value, or subtotal * value / 100 for percentage coupons
    total    = max(0, subtotal + shipping + tax - discount)
"""

from typing import Dict, List, Optional

from .config import (
    DEFAULT_ESTIMATED_DELIVERY,
    DEFAULT_STATE_SHIPPING_RATE,
    STATE_SHIPPING_RATES,
    STATE_TAX_RATES,
    CartSettings,
)
from .models import CartState, CartTotals, Coupon, RegionEstimate, ShippingMethod

STANDARD_SHIPPING_ID = "standard"

SHIPPING_METHODS: Dict[str, ShippingMethod] = {
    m.id: m
    for m in (
        ShippingMethod(
            id=STANDARD_SHIPPING_ID,
            name="Standard Shipping",
            description="Free shipping on orders over $500",
            cost=0,  # resolved from the subtotal, see shipping_cost
            estimated_days=DEFAULT_ESTIMATED_DELIVERY,
            carrier="UPS Ground",
        ),
        ShippingMethod(
            id="expedited",
            name="Expedited Shipping",
            description="Faster delivery with tracking",
            cost=149.99,
            estimated_days="2-3 business days",
            carrier="UPS 2nd Day Air",
        ),
        ShippingMethod(
            id="overnight",
            name="Overnight Shipping",
            description="Next business day delivery",
            cost=299.99,
            estimated_days="1 business day",
            carrier="UPS Next Day Air",
        ),
    )
}


def round_money(value: float) -> float:
    return round(value, 2)


def compute_subtotal(state: CartState) -> float:
    return sum(item.unit_price * item.quantity for item in state.items)


def compute_item_count(state: CartState) -> int:
    return sum(item.quantity for item in state.items)


def compute_discount(coupon: Optional[Coupon], subtotal: float) -> float:
    """Discount for the applied coupon.

    Not capped at the subtotal: a fixed coupon larger than the order is
    reported as-is and only the total is floored at zero.
    """
    if coupon is None:
        return 0.0
    if coupon.type == "percentage":
        return subtotal * (coupon.value / 100)
    return coupon.value


def shipping_cost(subtotal: float, method_id: Optional[str], settings: CartSettings) -> float:
    method = SHIPPING_METHODS.get(method_id or STANDARD_SHIPPING_ID, SHIPPING_METHODS[STANDARD_SHIPPING_ID])
    if method.id != STANDARD_SHIPPING_ID:
        return method.cost
    if subtotal >= settings.free_shipping_threshold:
        return 0.0
    return settings.flat_shipping_fee


def shipping_methods(subtotal: float, settings: CartSettings) -> List[ShippingMethod]:
    """Built-in methods with the standard method's cost resolved for `subtotal`."""
    return [
        m.model_copy(update={"cost": shipping_cost(subtotal, m.id, settings)})
        for m in SHIPPING_METHODS.values()
    ]


def compute_totals(state: CartState, settings: CartSettings) -> CartTotals:
    subtotal = compute_subtotal(state)
    item_count = compute_item_count(state)

    # Nothing to ship yet
    shipping = shipping_cost(subtotal, state.shipping_method_id, settings) if state.items else 0.0
    tax = subtotal * settings.tax_rate
    discount = compute_discount(state.applied_coupon, subtotal)
    total = subtotal + shipping + tax - discount

    method = SHIPPING_METHODS.get(state.shipping_method_id or STANDARD_SHIPPING_ID)
    return CartTotals(
        item_count=item_count,
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        discount=discount,
        total=max(0.0, total),
        currency=settings.default_currency,
        estimated_delivery=method.estimated_days if method else DEFAULT_ESTIMATED_DELIVERY,
    )


def estimate_for_region(state: CartState, region: str, settings: CartSettings) -> RegionEstimate:
    """Quote tax and standard shipping for a destination state.

    Uses the per-state tables rather than the configured flat rates. A
    non-standard shipping method keeps its own cost.
    """
    region = region.upper()
    subtotal = compute_subtotal(state)
    tax_rate = STATE_TAX_RATES.get(region, 0.0)
    tax = subtotal * tax_rate

    if not state.items:
        shipping = 0.0
    elif state.shipping_method_id and state.shipping_method_id != STANDARD_SHIPPING_ID:
        shipping = shipping_cost(subtotal, state.shipping_method_id, settings)
    elif subtotal >= settings.free_shipping_threshold:
        shipping = 0.0
    else:
        shipping = STATE_SHIPPING_RATES.get(region, DEFAULT_STATE_SHIPPING_RATE)

    discount = compute_discount(state.applied_coupon, subtotal)
    return RegionEstimate(
        region=region,
        tax_rate=tax_rate,
        tax=round_money(tax),
        shipping=round_money(shipping),
        total=round_money(max(0.0, subtotal + shipping + tax - discount)),
    )
