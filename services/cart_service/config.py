import os
from typing import Dict, Optional

from pydantic_settings import BaseSettings

SERVICE_NAME = "cart-service"
SERVICE_VERSION = "1.0.0"


class ServiceSettings(BaseSettings):
    """Infrastructure settings."""

    kafka_bootstrap_servers: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    redis_host: str = os.getenv("REDIS_HOST", "localhost")
    redis_port: int = int(os.getenv("REDIS_PORT", "6379"))
    cart_service_port: int = int(os.getenv("CART_SERVICE_PORT", "8001"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


class CartSettings(BaseSettings):
    """Pricing and quantity rules for carts."""

    free_shipping_threshold: float = float(os.getenv("FREE_SHIPPING_THRESHOLD", "500"))
    tax_rate: float = float(os.getenv("TAX_RATE", "0.08"))
    max_quantity_per_item: int = int(os.getenv("MAX_QUANTITY_PER_ITEM", "10"))
    low_stock_threshold: int = int(os.getenv("LOW_STOCK_THRESHOLD", "5"))
    # Standard rate for the store's home region (CA)
    flat_shipping_fee: float = float(os.getenv("FLAT_SHIPPING_FEE", "49.99"))
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "USD")
    cart_ttl_seconds: int = int(os.getenv("CART_TTL_SECONDS", "86400"))

    def is_low_stock(self, stock_quantity: Optional[int]) -> bool:
        return stock_quantity is not None and stock_quantity <= self.low_stock_threshold


# Per-state sales tax used for region quotes. Unlisted states are not taxed.
STATE_TAX_RATES: Dict[str, float] = {
    "CA": 0.0875,
    "NY": 0.08,
    "TX": 0.0625,
    "FL": 0.06,
    "WA": 0.065,
}

# Per-state standard shipping used for region quotes
STATE_SHIPPING_RATES: Dict[str, float] = {
    "CA": 49.99,
    "NY": 59.99,
    "TX": 54.99,
    "FL": 52.99,
    "WA": 51.99,
}
DEFAULT_STATE_SHIPPING_RATE = 59.99

DEFAULT_ESTIMATED_DELIVERY = "5-7 business days"


settings = ServiceSettings()
cart_settings = CartSettings()
