from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductVariant(BaseModel):
    """A purchasable variant of a catalog product."""

    id: str
    name: str
    sku: Optional[str] = None
    price: float
    stock_quantity: Optional[int] = None


class ProductRecord(BaseModel):
    """Product as handed to the cart by the catalog."""

    id: str
    name: str
    sku: Optional[str] = None
    price: float
    stock_quantity: Optional[int] = None  # None means stock is not tracked
    variants: List[ProductVariant] = Field(default_factory=list)

    def find_variant(self, variant_id: Optional[str]) -> Optional[ProductVariant]:
        if not variant_id:
            return None
        return next((v for v in self.variants if v.id == variant_id), None)


class CartItem(BaseModel):
    """Line item owned by a cart."""

    id: str
    product_id: str
    name: str
    selected_variant_id: Optional[str] = None
    quantity: int
    unit_price: float  # snapshot taken when the product was added
    stock_quantity: Optional[int] = None
    added_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class Coupon(BaseModel):
    """Discount code. At most one is applied to a cart at a time."""

    code: str
    type: Literal["percentage", "fixed"]
    value: float = Field(gt=0)
    description: str = ""
    minimum_amount: Optional[float] = None
    expires_at: Optional[datetime] = None


class ShippingMethod(BaseModel):
    id: str
    name: str
    description: str
    cost: float
    estimated_days: str
    carrier: str
    tracking_available: bool = True


class CartState(BaseModel):
    """Everything a cart stores. Totals are derived, see pricing.compute_totals."""

    items: List[CartItem] = Field(default_factory=list)
    applied_coupon: Optional[Coupon] = None
    shipping_method_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.items and self.applied_coupon is None and self.shipping_method_id is None


class CartTotals(BaseModel):
    """Derived pricing figures, unrounded."""

    item_count: int
    subtotal: float
    shipping: float
    tax: float
    discount: float
    total: float
    currency: str
    estimated_delivery: str


class RegionEstimate(BaseModel):
    """Tax and shipping quote for a destination state."""

    region: str
    tax_rate: float
    tax: float
    shipping: float
    total: float
