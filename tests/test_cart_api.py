import pytest

from shared.events import CartCheckoutInitiatedEvent

COOLER = {"id": "tp-cooler", "name": "Two-Phase Cooler", "price": 100.0, "stock_quantity": 25}
SESSION = "sess-123"


def add_cooler(client, quantity=2, session=SESSION):
    return client.post(f"/cart/{session}/items", json={"product": COOLER, "quantity": quantity})


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "service": "cart-service", "version": "1.0.0"}


def test_empty_cart(client):
    r = client.get(f"/cart/{SESSION}")
    assert r.status_code == 200
    data = r.json()
    assert data["items"] == []
    assert data["totals"]["item_count"] == 0
    assert data["totals"]["total"] == 0


def test_add_item_returns_totals_and_publishes(client, recording_producer):
    r = add_cooler(client)
    assert r.status_code == 201, r.text

    totals = r.json()["totals"]
    assert totals["subtotal"] == 200.0
    assert totals["shipping"] == 49.99
    assert totals["tax"] == 16.0
    assert totals["total"] == 265.99
    assert totals["item_count"] == 2

    assert recording_producer.topics() == ["cart.item_added"]
    event = recording_producer.published[0][1]
    assert event.session_id == SESSION
    assert event.quantity == 2
    assert event.unit_price == 100.0


def test_add_zero_quantity_changes_nothing(client, recording_producer):
    r = add_cooler(client, quantity=0)
    assert r.status_code == 201
    assert r.json()["items"] == []
    assert recording_producer.published == []


def test_low_stock_flag(client):
    r = client.post(
        f"/cart/{SESSION}/items",
        json={"product": {"id": "fluid", "name": "Dielectric Fluid", "price": 40.0, "stock_quantity": 3}},
    )
    assert r.json()["items"][0]["low_stock"] is True


def test_update_quantity_clamps_and_removes(client, recording_producer):
    item_id = add_cooler(client).json()["items"][0]["id"]

    r = client.put(f"/cart/{SESSION}/items/{item_id}", json={"quantity": 40})
    assert r.status_code == 200
    assert r.json()["items"][0]["quantity"] == 10

    r = client.put(f"/cart/{SESSION}/items/{item_id}", json={"quantity": 0})
    assert r.status_code == 200
    assert r.json()["items"] == []
    assert recording_producer.topics() == ["cart.item_added", "cart.item_removed"]


def test_update_unknown_item_is_404(client):
    r = client.put(f"/cart/{SESSION}/items/nope", json={"quantity": 2})
    assert r.status_code == 404


def test_remove_item(client, recording_producer):
    item_id = add_cooler(client).json()["items"][0]["id"]

    r = client.delete(f"/cart/{SESSION}/items/{item_id}")
    assert r.status_code == 200
    assert r.json()["items"] == []
    assert recording_producer.topics()[-1] == "cart.item_removed"

    assert client.delete(f"/cart/{SESSION}/items/{item_id}").status_code == 404


def test_coupon_replace_and_remove(client, recording_producer):
    add_cooler(client)

    r = client.put(f"/cart/{SESSION}/coupon", json={"code": "SAVE10", "type": "percentage", "value": 10})
    assert r.status_code == 200
    assert r.json()["totals"]["discount"] == 20.0

    r = client.put(f"/cart/{SESSION}/coupon", json={"code": "FIVE", "type": "fixed", "value": 5})
    assert r.json()["applied_coupon"]["code"] == "FIVE"
    assert r.json()["totals"]["discount"] == 5.0
    assert recording_producer.topics().count("cart.coupon_applied") == 2

    r = client.delete(f"/cart/{SESSION}/coupon")
    assert r.json()["applied_coupon"] is None
    assert r.json()["totals"]["discount"] == 0


def test_rejected_coupon_is_400(client):
    add_cooler(client)
    r = client.put(
        f"/cart/{SESSION}/coupon",
        json={"code": "BIG", "type": "fixed", "value": 100, "minimum_amount": 1000},
    )
    assert r.status_code == 400
    assert "Minimum order amount" in r.json()["detail"]
    assert client.get(f"/cart/{SESSION}").json()["applied_coupon"] is None


def test_invalid_coupon_type_is_422(client):
    r = client.put(f"/cart/{SESSION}/coupon", json={"code": "X", "type": "bogo", "value": 1})
    assert r.status_code == 422


@pytest.mark.parametrize("value", [0, -500])
def test_non_positive_coupon_value_is_422(client, value):
    add_cooler(client)
    r = client.put(f"/cart/{SESSION}/coupon", json={"code": "NEG", "type": "fixed", "value": value})
    assert r.status_code == 422
    assert client.get(f"/cart/{SESSION}").json()["totals"]["total"] == 265.99


def test_clear_cart(client):
    add_cooler(client)
    client.put(f"/cart/{SESSION}/coupon", json={"code": "SAVE10", "type": "percentage", "value": 10})

    r = client.delete(f"/cart/{SESSION}")
    assert r.status_code == 200
    assert r.json()["items"] == []
    assert r.json()["applied_coupon"] is None


def test_shipping_method_selection(client):
    add_cooler(client)

    r = client.put(f"/cart/{SESSION}/shipping-method", json={"method_id": "expedited"})
    assert r.status_code == 200
    assert r.json()["totals"]["shipping"] == 149.99
    assert r.json()["totals"]["estimated_delivery"] == "2-3 business days"

    r = client.put(f"/cart/{SESSION}/shipping-method", json={"method_id": "drone"})
    assert r.status_code == 400


def test_shipping_methods_listing(client):
    r = client.get("/shipping-methods", params={"subtotal": 750})
    assert r.status_code == 200
    costs = {m["id"]: m["cost"] for m in r.json()["methods"]}
    assert costs["standard"] == 0


def test_region_estimate(client):
    add_cooler(client)
    r = client.get(f"/cart/{SESSION}/estimate", params={"region": "tx"})
    assert r.status_code == 200
    assert r.json() == {"region": "TX", "tax_rate": 0.0625, "tax": 12.5, "shipping": 54.99, "total": 267.49}


def test_checkout_publishes_totals_and_clears(client, recording_producer, repository):
    add_cooler(client)

    r = client.post(f"/cart/{SESSION}/checkout")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"] == "Checkout initiated"
    assert body["cart"]["totals"]["total"] == 265.99

    topic, event = recording_producer.published[-1]
    assert topic == "cart.checkout_initiated"
    assert isinstance(event, CartCheckoutInitiatedEvent)
    assert (event.subtotal, event.shipping, event.tax, event.total, event.item_count) == (200.0, 49.99, 16.0, 265.99, 2)
    assert event.correlation_id == body["correlation_id"]

    assert repository.get_state(SESSION).items == []


def test_checkout_empty_cart_is_400(client, recording_producer):
    r = client.post(f"/cart/{SESSION}/checkout")
    assert r.status_code == 400
    assert r.json()["detail"] == "Cart is empty"
    assert recording_producer.published == []


def test_failed_publish_keeps_cart(client, recording_producer, repository):
    add_cooler(client)

    def broken_publish(topic, event):
        raise RuntimeError("broker unavailable")

    recording_producer.publish = broken_publish
    r = client.post(f"/cart/{SESSION}/checkout")
    assert r.status_code == 400
    assert "broker unavailable" in r.json()["detail"]
    assert len(repository.get_state(SESSION).items) == 1


def break_publishing(recording_producer):
    def broken_publish(topic, event):
        raise RuntimeError("broker unavailable")

    recording_producer.publish = broken_publish


def test_failed_publish_does_not_store_added_item(client, recording_producer, repository):
    break_publishing(recording_producer)

    r = add_cooler(client)
    assert r.status_code == 400
    assert repository.get_state(SESSION).items == []


def test_failed_publish_keeps_quantity_when_zeroed(client, recording_producer, repository):
    item_id = add_cooler(client).json()["items"][0]["id"]
    break_publishing(recording_producer)

    r = client.put(f"/cart/{SESSION}/items/{item_id}", json={"quantity": 0})
    assert r.status_code == 400
    assert repository.get_state(SESSION).items[0].quantity == 2


def test_failed_publish_keeps_removed_item(client, recording_producer, repository):
    item_id = add_cooler(client).json()["items"][0]["id"]
    break_publishing(recording_producer)

    r = client.delete(f"/cart/{SESSION}/items/{item_id}")
    assert r.status_code == 400
    assert [item.id for item in repository.get_state(SESSION).items] == [item_id]


def test_failed_publish_does_not_store_coupon(client, recording_producer, repository):
    add_cooler(client)
    break_publishing(recording_producer)

    r = client.put(f"/cart/{SESSION}/coupon", json={"code": "SAVE10", "type": "percentage", "value": 10})
    assert r.status_code == 400
    assert repository.get_state(SESSION).applied_coupon is None


def test_add_at_limit_publishes_nothing(client, recording_producer):
    add_cooler(client, quantity=10)
    assert recording_producer.topics() == ["cart.item_added"]

    r = add_cooler(client, quantity=1)
    assert r.status_code == 201
    assert r.json()["items"][0]["quantity"] == 10
    assert recording_producer.topics() == ["cart.item_added"]
