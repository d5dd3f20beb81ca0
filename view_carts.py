import sys

import redis

from services.cart_service.cart_repository import CartRepository
from services.cart_service.config import cart_settings, settings
from services.cart_service.pricing import compute_totals, round_money

try:
    redis_client = redis.Redis(host=settings.redis_host, port=settings.redis_port, db=0, decode_responses=True)
    # PING confirms the server is reachable before we scan for carts
    redis_client.ping()
except Exception as e:
    print(f"❌ Failed to connect to Redis: {e}")
    print("Make sure Redis is running: docker-compose up redis -d")
    sys.exit(1)

repo = CartRepository(redis_client)

try:
    sessions = repo.list_sessions()
    print(f"✅ Found {len(sessions)} active carts:\n")

    if not sessions:
        print("No carts found. Add items via the API first, e.g.:")
        print("\ncurl -X POST http://localhost:8001/cart/sess-123/items \\")
        print('  -H "Content-Type: application/json" \\')
        print('  -d \'{"product": {"id": "tp-cooler", "name": "Two-Phase Cooler", "price": 100}, "quantity": 2}\'\n')
    else:
        for session_id in sessions:
            state = repo.get_state(session_id)
            totals = compute_totals(state, cart_settings)

            print(f"👤 Session: {session_id}")
            print(f"⏱️  TTL: {repo.ttl(session_id)} seconds remaining")
            for item in state.items:
                print(f"🛒 {item.quantity} x {item.name} @ {item.unit_price:.2f} = {item.line_total:.2f}")
            if state.applied_coupon:
                print(f"🏷️  Coupon: {state.applied_coupon.code} ({state.applied_coupon.type} {state.applied_coupon.value})")
            print(
                f"💰 Subtotal {round_money(totals.subtotal):.2f} | Shipping {round_money(totals.shipping):.2f} | "
                f"Tax {round_money(totals.tax):.2f} | Discount {round_money(totals.discount):.2f} | "
                f"Total {round_money(totals.total):.2f} {totals.currency}"
            )
            print("-" * 50)

except Exception as e:
    print(f"❌ Error: {e}")
    sys.exit(1)
