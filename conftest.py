"""Shared pytest fixtures: an in-memory Redis stand-in, a recording producer and an API client."""

import fnmatch
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from services.cart_service.cart_repository import CartRepository
from services.cart_service.config import CartSettings
from services.cart_service.models import ProductRecord, ProductVariant


class InMemoryRedis:
    """The handful of Redis commands CartRepository uses, kept in a dict."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.expiry: Dict[str, int] = {}

    def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self.store[key] = value
        if ex is not None:
            self.expiry[key] = ex
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    def ttl(self, key: str) -> int:
        if key not in self.store:
            return -2
        return self.expiry.get(key, -1)

    def scan_iter(self, match: Optional[str] = None):
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key


class RecordingProducer:
    """Collects (topic, event) pairs instead of talking to Kafka."""

    def __init__(self):
        self.published: List[Tuple[str, Any]] = []

    def publish(self, topic: str, event: Any) -> None:
        self.published.append((topic, event))

    def topics(self) -> List[str]:
        return [topic for topic, _ in self.published]


@pytest.fixture
def cart_config() -> CartSettings:
    return CartSettings(
        free_shipping_threshold=500.0,
        tax_rate=0.08,
        max_quantity_per_item=10,
        low_stock_threshold=5,
        flat_shipping_fee=49.99,
        default_currency="USD",
        cart_ttl_seconds=3600,
    )


@pytest.fixture
def cooler() -> ProductRecord:
    return ProductRecord(id="tp-cooler", name="Two-Phase Cooler", sku="TPC-001", price=100.0, stock_quantity=25)


@pytest.fixture
def cooler_with_variants() -> ProductRecord:
    return ProductRecord(
        id="tp-cooler-pro",
        name="Two-Phase Cooler Pro",
        price=300.0,
        stock_quantity=50,
        variants=[
            ProductVariant(id="240mm", name="240mm", price=320.0, stock_quantity=3),
            ProductVariant(id="360mm", name="360mm", price=380.0),
        ],
    )


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def repository(fake_redis, cart_config) -> CartRepository:
    return CartRepository(fake_redis, ttl=cart_config.cart_ttl_seconds)


@pytest.fixture
def recording_producer() -> RecordingProducer:
    return RecordingProducer()


@pytest.fixture
def client(repository, recording_producer, cart_config):
    from services.cart_service import main

    main.app.dependency_overrides[main.get_repository] = lambda: repository
    main.app.dependency_overrides[main.get_producer] = lambda: recording_producer
    main.app.dependency_overrides[main.get_cart_settings] = lambda: cart_config
    # Not entered as a context manager: the lifespan would dial Kafka and Redis
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
