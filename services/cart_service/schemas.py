from typing import List, Optional

from pydantic import BaseModel, Field

from .models import Coupon, ProductRecord, ShippingMethod


class AddItemRequest(BaseModel):
    """Request model for adding a product to the cart."""

    product: ProductRecord
    variant_id: Optional[str] = None
    quantity: int = 1


class UpdateQuantityRequest(BaseModel):
    """Request model for updating item quantity. Below 1 removes the item."""

    quantity: int


class ShippingMethodRequest(BaseModel):
    method_id: str


class CartItemResponse(BaseModel):
    """Response model for cart item."""

    id: str
    product_id: str
    name: str
    selected_variant_id: Optional[str] = None
    quantity: int
    unit_price: float
    line_total: float
    low_stock: bool = False


class CartTotalsResponse(BaseModel):
    """Totals rounded for display and for the checkout payload."""

    item_count: int
    subtotal: float
    shipping: float
    tax: float
    discount: float
    total: float
    currency: str
    estimated_delivery: str


class CartResponse(BaseModel):
    """Response model for cart."""

    session_id: str
    items: List[CartItemResponse] = Field(default_factory=list)
    applied_coupon: Optional[Coupon] = None
    shipping_method_id: Optional[str] = None
    totals: CartTotalsResponse


class ShippingMethodsResponse(BaseModel):
    subtotal: float
    methods: List[ShippingMethod]


class CheckoutResponse(BaseModel):
    message: str
    correlation_id: str
    cart: CartResponse


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    service: str
    version: str
