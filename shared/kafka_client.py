"""
kafka_client.py - Kafka Producer Wrapper

PURPOSE:
    Publishes cart events to Kafka with JSON serialization and delivery
    guarantees. The cart service only produces; checkout and analytics
    consumers live outside this repository.

PRODUCER FEATURES:
    - JSON serialization of pydantic events (or plain dicts)
    - Delivery callbacks for tracking
    - Automatic retries on failure (3 attempts)
    - Snappy compression
    - All replicas acknowledgment (acks=all)

USAGE:
    producer = BaseKafkaProducer("localhost:9092", client_id="cart-producer")
    producer.publish("cart.item_added", event)
    producer.close()

ERROR HANDLING:
    - Delivery failures are logged from the delivery callback
    - Errors raised while producing are logged and re-raised to the caller
"""

import json
import logging
from typing import Any, Dict, Optional, Union

from confluent_kafka import Producer
from confluent_kafka.error import KafkaError

from shared.events import BaseEvent

logger = logging.getLogger(__name__)


class BaseKafkaProducer:
    """
    Base Kafka producer with JSON serialization and delivery callbacks.

    Features:
        - Automatic JSON serialization of events
        - Delivery acknowledgment from all replicas (acks=all)
        - 3 retry attempts on failure
        - Snappy compression for efficiency
        - Synchronous send with callback tracking
    """

    def __init__(self, bootstrap_servers: str, client_id: str = "producer"):
        """
        Initialize Kafka producer.

        Args:
            bootstrap_servers: Comma-separated Kafka broker addresses
            client_id: Unique identifier for this producer instance
        """
        self.config = {
            "bootstrap.servers": bootstrap_servers,
            "client.id": client_id,
            "acks": "all",
            "retries": 3,
            "compression.type": "snappy",
        }
        self.producer = Producer(self.config)

    def _delivery_report(self, err: Optional[KafkaError], msg) -> None:
        """Delivery report handler called by producer on message delivery."""
        if err is not None:
            logger.error(f"Message delivery failed: {err}")
        else:
            logger.info(
                f"Message delivered to topic={msg.topic()}, "
                f"partition={msg.partition()}, offset={msg.offset()}"
            )

    def publish(self, topic: str, event: Union[BaseEvent, Dict[str, Any]]) -> None:
        """Publish event to Kafka topic."""
        try:
            if isinstance(event, dict):
                message = json.dumps(event, default=str)
                event_type = event.get("event_type", "unknown")
                correlation_id = event.get("correlation_id", "unknown")
            else:
                message = event.model_dump_json()
                event_type = event.event_type
                correlation_id = event.correlation_id

            self.producer.produce(
                topic=topic,
                value=message.encode("utf-8"),
                callback=self._delivery_report,
            )
            # Flush so the event is on the broker before the HTTP response goes out
            self.producer.flush()
            logger.info(
                f"Published event to {topic}",
                extra={"event_type": event_type, "correlation_id": correlation_id},
            )
        except Exception as e:
            logger.error(f"Error publishing event to {topic}: {e}")
            raise

    def flush(self) -> None:
        """Flush any pending messages."""
        self.producer.flush()

    def close(self) -> None:
        """Flush outstanding messages before shutdown."""
        remaining = self.producer.flush(10)
        if remaining:
            logger.warning(f"{remaining} message(s) still undelivered at shutdown")
