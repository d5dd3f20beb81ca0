"""
events.py - Kafka Event Schema Definitions

PURPOSE:
    Defines the events the cart service publishes to Kafka.
    Uses Pydantic for data validation and serialization.

EVENTS:
    - cart.item_added: a product (or more units of it) was put in a cart
    - cart.item_removed: a line item left the cart
    - cart.coupon_applied: a coupon replaced whatever coupon was applied before
    - cart.checkout_initiated: the cart's totals were handed to checkout

COMMON FIELDS (BaseEvent):
    - event_id: Unique identifier (UUID)
    - event_type: Event category and action
    - timestamp: Store-timezone timestamp of event creation
    - correlation_id: Links the event to the request that produced it

USAGE:
    event = CartCheckoutInitiatedEvent(
        correlation_id=str(uuid4()),
        session_id="sess-123",
        items=[...],
        subtotal=200.0,
        shipping=49.99,
        tax=16.0,
        discount=0.0,
        total=265.99,
        item_count=2,
    )
    json_data = event.model_dump_json()
    event = EVENT_TYPE_MAP[event_type].model_validate_json(json_data)
"""

from datetime import datetime
from zoneinfo import ZoneInfo
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class BaseEvent(BaseModel):
    """
    Base event model for all Kafka events.

    All events inherit from this class and include:
    - Unique event ID
    - Event type identifier
    - Los Angeles timezone-aware timestamp
    - Correlation ID for request tracing
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(ZoneInfo("America/Los_Angeles")))
    correlation_id: str


# ============================================================================
# CART EVENTS - Shopping cart operations
# ============================================================================

class CartItemAddedEvent(BaseEvent):
    """
    Event published when units of a product are added to a cart.
    Triggers: POST /cart/{session_id}/items
    """

    event_type: str = "cart.item_added"
    session_id: str
    item_id: str
    product_id: str
    variant_id: Optional[str] = None
    quantity: int  # Quantity of the line after the add (clamped)
    unit_price: float


class CartItemRemovedEvent(BaseEvent):
    """
    Event published when a line item leaves a cart, either explicitly or by
    having its quantity set below one.
    """

    event_type: str = "cart.item_removed"
    session_id: str
    item_id: str
    product_id: str


class CartCouponAppliedEvent(BaseEvent):
    """Event published when a coupon is applied (replacing any previous one)."""

    event_type: str = "cart.coupon_applied"
    session_id: str
    code: str
    coupon_type: str
    value: float
    discount: float


class CartCheckoutInitiatedEvent(BaseEvent):
    """
    Event published when checkout is initiated.
    Consumers: the checkout/payment flow, which turns this numeric payload
    into a payment transaction and an order record.
    """

    event_type: str = "cart.checkout_initiated"
    session_id: str
    items: List[Dict[str, Any]]
    item_count: int
    subtotal: float
    shipping: float
    tax: float
    discount: float
    total: float
    currency: str = "USD"
    coupon_code: Optional[str] = None
    shipping_method_id: Optional[str] = None


# Event mapping for deserialization
EVENT_TYPE_MAP = {
    "cart.item_added": CartItemAddedEvent,
    "cart.item_removed": CartItemRemovedEvent,
    "cart.coupon_applied": CartCouponAppliedEvent,
    "cart.checkout_initiated": CartCheckoutInitiatedEvent,
}

ALL_TOPICS = list(EVENT_TYPE_MAP)
