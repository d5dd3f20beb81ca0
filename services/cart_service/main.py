"""
cart_service/main.py - Shopping Cart Service

PURPOSE:
    Keeps one shopping cart per browser session for the two-phase cooling
    storefront. Cart state lives in Redis; totals are derived on every read
    and handed to checkout as a plain numeric payload over Kafka.

API ENDPOINTS:
    GET    /health                                   - Health check
    GET    /cart/{session_id}                        - View cart and totals
    POST   /cart/{session_id}/items                  - Add product to cart
    PUT    /cart/{session_id}/items/{item_id}        - Update quantity (< 1 removes)
    DELETE /cart/{session_id}/items/{item_id}        - Remove item
    DELETE /cart/{session_id}                        - Clear cart (drops the coupon)
    PUT    /cart/{session_id}/coupon                 - Apply coupon (replaces any previous one)
    DELETE /cart/{session_id}/coupon                 - Remove coupon
    PUT    /cart/{session_id}/shipping-method        - Choose shipping method
    GET    /cart/{session_id}/estimate?region=CA     - Tax/shipping quote for a state
    GET    /shipping-methods?subtotal=250            - Available shipping methods
    POST   /cart/{session_id}/checkout               - Hand totals to checkout, clear cart

KAFKA EVENTS PUBLISHED:
    - cart.item_added
    - cart.item_removed
    - cart.coupon_applied
    - cart.checkout_initiated

TESTING COMMANDS:
    1. Add 2 coolers at $100:
        curl -X POST http://localhost:8001/cart/sess-123/items \
          -H "Content-Type: application/json" \
          -d '{"product": {"id": "tp-cooler", "name": "Two-Phase Cooler", "price": 100, "stock_quantity": 25}, "quantity": 2}'

    2. View cart (subtotal 200.00, shipping 49.99, tax 16.00, total 265.99):
        curl http://localhost:8001/cart/sess-123

    3. Apply a 10% coupon:
        curl -X PUT http://localhost:8001/cart/sess-123/coupon \
          -H "Content-Type: application/json" \
          -d '{"code": "SAVE10", "type": "percentage", "value": 10}'

    4. Checkout:
        curl -X POST http://localhost:8001/cart/sess-123/checkout

USAGE:
    uvicorn services.cart_service.main:app --port 8001
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

import redis
from fastapi import Depends, FastAPI, HTTPException, Query, status

from shared.events import (
    CartCheckoutInitiatedEvent,
    CartCouponAppliedEvent,
    CartItemAddedEvent,
    CartItemRemovedEvent,
)
from shared.kafka_client import BaseKafkaProducer
from shared.logging_config import setup_logging
from shared.topic_initializer import create_topics

from . import cart_state
from .cart_repository import CartRepository
from .cart_state import CartError
from .config import SERVICE_NAME, SERVICE_VERSION, CartSettings, cart_settings, settings
from .models import CartState, Coupon, RegionEstimate
from .pricing import compute_discount, compute_subtotal, compute_totals, estimate_for_region, round_money, shipping_methods
from .schemas import (
    AddItemRequest,
    CartItemResponse,
    CartResponse,
    CartTotalsResponse,
    CheckoutResponse,
    HealthResponse,
    ShippingMethodRequest,
    ShippingMethodsResponse,
    UpdateQuantityRequest,
)

setup_logging(SERVICE_NAME, level=settings.log_level)
logger = logging.getLogger(__name__)

# Global instances
redis_client: Optional[redis.Redis] = None
producer: Optional[BaseKafkaProducer] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage app lifecycle."""
    global redis_client, producer

    logger.info("Starting Cart Service...")

    try:
        create_topics(settings.kafka_bootstrap_servers)
        logger.info("Kafka topics initialized")
    except Exception as e:
        logger.error(f"Failed to initialize Kafka topics: {e}")
        raise

    try:
        redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            decode_responses=True,
        )
        redis_client.ping()
        logger.info("Redis connected")
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise

    try:
        producer = BaseKafkaProducer(settings.kafka_bootstrap_servers, client_id="cart-producer")
        logger.info("Kafka producer initialized")
    except Exception as e:
        logger.error(f"Failed to initialize Kafka producer: {e}")
        raise

    yield

    logger.info("Shutting down Cart Service...")
    if redis_client:
        redis_client.close()
    if producer:
        producer.close()


app = FastAPI(title="Cart Service", version=SERVICE_VERSION, lifespan=lifespan)


def get_cart_settings() -> CartSettings:
    return cart_settings


def get_repository(config: CartSettings = Depends(get_cart_settings)) -> CartRepository:
    return CartRepository(redis_client, ttl=config.cart_ttl_seconds)


def get_producer() -> BaseKafkaProducer:
    return producer


def to_cart_response(session_id: str, state: CartState, config: CartSettings) -> CartResponse:
    """Render a cart with its derived totals rounded for display."""
    totals = compute_totals(state, config)
    return CartResponse(
        session_id=session_id,
        items=[
            CartItemResponse(
                id=item.id,
                product_id=item.product_id,
                name=item.name,
                selected_variant_id=item.selected_variant_id,
                quantity=item.quantity,
                unit_price=round_money(item.unit_price),
                line_total=round_money(item.line_total),
                low_stock=config.is_low_stock(item.stock_quantity),
            )
            for item in state.items
        ],
        applied_coupon=state.applied_coupon,
        shipping_method_id=state.shipping_method_id,
        totals=CartTotalsResponse(
            item_count=totals.item_count,
            subtotal=round_money(totals.subtotal),
            shipping=round_money(totals.shipping),
            tax=round_money(totals.tax),
            discount=round_money(totals.discount),
            total=round_money(totals.total),
            currency=totals.currency,
            estimated_delivery=totals.estimated_delivery,
        ),
    )


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", service=SERVICE_NAME, version=SERVICE_VERSION)


@app.get("/cart/{session_id}", response_model=CartResponse)
async def get_cart(
    session_id: str,
    repo: CartRepository = Depends(get_repository),
    config: CartSettings = Depends(get_cart_settings),
) -> CartResponse:
    """Get the session's cart."""
    try:
        return to_cart_response(session_id, repo.get_state(session_id), config)
    except Exception as e:
        logger.error(f"Error getting cart: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.post("/cart/{session_id}/items", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_item(
    session_id: str,
    request: AddItemRequest,
    repo: CartRepository = Depends(get_repository),
    kafka: BaseKafkaProducer = Depends(get_producer),
    config: CartSettings = Depends(get_cart_settings),
) -> CartResponse:
    """Add units of a product to the cart and publish cart.item_added."""
    try:
        before = repo.get_state(session_id)
        state = cart_state.add_item(before, request.product, request.variant_id, request.quantity, config)
        if state is before:
            # Nothing to add (non-positive quantity or out of stock)
            return to_cart_response(session_id, state, config)

        variant_key = request.variant_id or None

        def same_line(i):
            return i.product_id == request.product.id and i.selected_variant_id == variant_key

        previous = next((i for i in before.items if same_line(i)), None)
        item = next(i for i in state.items if same_line(i))
        if previous is not None and previous.quantity == item.quantity:
            # Line already at its limit
            logger.info(
                f"Item {item.id} already at quantity limit {item.quantity}",
                extra={"session_id": session_id},
            )
            return to_cart_response(session_id, before, config)

        event = CartItemAddedEvent(
            session_id=session_id,
            item_id=item.id,
            product_id=item.product_id,
            variant_id=item.selected_variant_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            correlation_id=str(uuid4()),
        )
        kafka.publish("cart.item_added", event)
        repo.save_state(session_id, state)

        return to_cart_response(session_id, state, config)
    except Exception as e:
        logger.error(f"Error adding item to cart: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.put("/cart/{session_id}/items/{item_id}", response_model=CartResponse)
async def update_item_quantity(
    session_id: str,
    item_id: str,
    request: UpdateQuantityRequest,
    repo: CartRepository = Depends(get_repository),
    kafka: BaseKafkaProducer = Depends(get_producer),
    config: CartSettings = Depends(get_cart_settings),
) -> CartResponse:
    """Update item quantity. Quantities below 1 remove the item."""
    try:
        state = repo.get_state(session_id)
        item = cart_state.find_item(state, item_id)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Item {item_id} not found in cart",
            )

        state = cart_state.update_quantity(state, item_id, request.quantity, config)

        if request.quantity < 1:
            event = CartItemRemovedEvent(
                session_id=session_id,
                item_id=item_id,
                product_id=item.product_id,
                correlation_id=str(uuid4()),
            )
            kafka.publish("cart.item_removed", event)
        repo.save_state(session_id, state)

        return to_cart_response(session_id, state, config)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating item quantity: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.delete("/cart/{session_id}/items/{item_id}", response_model=CartResponse)
async def remove_item(
    session_id: str,
    item_id: str,
    repo: CartRepository = Depends(get_repository),
    kafka: BaseKafkaProducer = Depends(get_producer),
    config: CartSettings = Depends(get_cart_settings),
) -> CartResponse:
    """Remove item from cart and publish cart.item_removed."""
    try:
        state = repo.get_state(session_id)
        item = cart_state.find_item(state, item_id)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Item {item_id} not found in cart",
            )

        state = cart_state.remove_item(state, item_id)

        event = CartItemRemovedEvent(
            session_id=session_id,
            item_id=item_id,
            product_id=item.product_id,
            correlation_id=str(uuid4()),
        )
        kafka.publish("cart.item_removed", event)
        repo.save_state(session_id, state)

        return to_cart_response(session_id, state, config)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing item from cart: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.delete("/cart/{session_id}", response_model=CartResponse)
async def clear_cart(
    session_id: str,
    repo: CartRepository = Depends(get_repository),
    config: CartSettings = Depends(get_cart_settings),
) -> CartResponse:
    """Empty the cart and drop its coupon."""
    try:
        state = cart_state.clear_cart(repo.get_state(session_id))
        repo.save_state(session_id, state)
        return to_cart_response(session_id, state, config)
    except Exception as e:
        logger.error(f"Error clearing cart: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.put("/cart/{session_id}/coupon", response_model=CartResponse)
async def apply_coupon(
    session_id: str,
    request: Coupon,
    repo: CartRepository = Depends(get_repository),
    kafka: BaseKafkaProducer = Depends(get_producer),
    config: CartSettings = Depends(get_cart_settings),
) -> CartResponse:
    """Apply a coupon, replacing any coupon already applied."""
    try:
        state = cart_state.apply_coupon(repo.get_state(session_id), request)

        coupon = state.applied_coupon
        event = CartCouponAppliedEvent(
            session_id=session_id,
            code=coupon.code,
            coupon_type=coupon.type,
            value=coupon.value,
            discount=round_money(compute_discount(coupon, compute_subtotal(state))),
            correlation_id=str(uuid4()),
        )
        kafka.publish("cart.coupon_applied", event)
        repo.save_state(session_id, state)

        return to_cart_response(session_id, state, config)
    except CartError as e:
        logger.warning(f"Coupon {request.code} rejected: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error applying coupon: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.delete("/cart/{session_id}/coupon", response_model=CartResponse)
async def remove_coupon(
    session_id: str,
    repo: CartRepository = Depends(get_repository),
    config: CartSettings = Depends(get_cart_settings),
) -> CartResponse:
    try:
        state = cart_state.remove_coupon(repo.get_state(session_id))
        repo.save_state(session_id, state)
        return to_cart_response(session_id, state, config)
    except Exception as e:
        logger.error(f"Error removing coupon: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.put("/cart/{session_id}/shipping-method", response_model=CartResponse)
async def select_shipping_method(
    session_id: str,
    request: ShippingMethodRequest,
    repo: CartRepository = Depends(get_repository),
    config: CartSettings = Depends(get_cart_settings),
) -> CartResponse:
    try:
        state = cart_state.select_shipping_method(repo.get_state(session_id), request.method_id)
        repo.save_state(session_id, state)
        return to_cart_response(session_id, state, config)
    except CartError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error selecting shipping method: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.get("/cart/{session_id}/estimate", response_model=RegionEstimate)
async def estimate(
    session_id: str,
    region: str = Query(..., min_length=2, max_length=2),
    repo: CartRepository = Depends(get_repository),
    config: CartSettings = Depends(get_cart_settings),
) -> RegionEstimate:
    """Quote tax and shipping for a destination state."""
    try:
        return estimate_for_region(repo.get_state(session_id), region, config)
    except Exception as e:
        logger.error(f"Error estimating cart: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.get("/shipping-methods", response_model=ShippingMethodsResponse)
async def list_shipping_methods(
    subtotal: float = Query(0.0, ge=0),
    config: CartSettings = Depends(get_cart_settings),
) -> ShippingMethodsResponse:
    return ShippingMethodsResponse(subtotal=subtotal, methods=shipping_methods(subtotal, config))


@app.post("/cart/{session_id}/checkout", response_model=CheckoutResponse)
async def checkout(
    session_id: str,
    repo: CartRepository = Depends(get_repository),
    kafka: BaseKafkaProducer = Depends(get_producer),
    config: CartSettings = Depends(get_cart_settings),
) -> CheckoutResponse:
    """Publish cart.checkout_initiated with the cart's totals and clear the cart."""
    try:
        state = repo.get_state(session_id)
        if not state.items:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cart is empty",
            )

        cart = to_cart_response(session_id, state, config)
        totals = cart.totals
        correlation_id = str(uuid4())
        event = CartCheckoutInitiatedEvent(
            session_id=session_id,
            items=[item.model_dump() for item in cart.items],
            item_count=totals.item_count,
            subtotal=totals.subtotal,
            shipping=totals.shipping,
            tax=totals.tax,
            discount=totals.discount,
            total=totals.total,
            currency=totals.currency,
            coupon_code=state.applied_coupon.code if state.applied_coupon else None,
            shipping_method_id=state.shipping_method_id,
            correlation_id=correlation_id,
        )
        kafka.publish("cart.checkout_initiated", event)

        # Clear only after the event is out so a failed publish keeps the cart
        repo.clear(session_id)
        logger.info(
            f"Cart cleared for session {session_id} after checkout",
            extra={"session_id": session_id, "correlation_id": correlation_id},
        )

        return CheckoutResponse(message="Checkout initiated", correlation_id=correlation_id, cart=cart)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during checkout: {e}", extra={"session_id": session_id})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.cart_service_port)
