"""
logging_config.py - Centralized JSON Logging Configuration

PURPOSE:
    Provides structured JSON logging for the cart service and its tooling, with
    timezone-aware timestamps, correlation tracking and service context.

JSON LOG FIELDS:
    - timestamp: ISO 8601 format in the store's timezone (America/Los_Angeles)
    - level: Log level (INFO, ERROR, WARNING, DEBUG, CRITICAL)
    - logger: Module name where the log originated (e.g. "services.cart_service.main")
    - message: The actual log message
    - service_name: Name of the service (injected automatically)
    - correlation_id: Optional tracing ID shared with published events
    - event_type: Optional Kafka event type being published
    - session_id: Optional cart session the record relates to
    - exception: Full stack trace (only when exc_info is set)

USAGE:
    from shared.logging_config import setup_logging
    setup_logging("cart-service", level="INFO")

    logger = logging.getLogger(__name__)
    logger.info("Cart cleared", extra={"session_id": "sess-123"})

EXAMPLE JSON OUTPUT:
    {
        "timestamp": "2026-02-23T22:48:51.001014-08:00",
        "level": "INFO",
        "logger": "services.cart_service.cart_repository",
        "message": "Saved cart for session sess-123 (2 items)",
        "service_name": "cart-service",
        "session_id": "sess-123"
    }
"""

import json
import logging
import sys
from datetime import datetime
from zoneinfo import ZoneInfo
from typing import Any, Dict

LOG_TIMEZONE = ZoneInfo("America/Los_Angeles")

# Optional attributes copied from the record when callers pass them via `extra`
CONTEXT_FIELDS = ("correlation_id", "service_name", "event_type", "session_id")


class JsonFormatter(logging.Formatter):
    """Custom formatter that outputs JSON logs with correlation context."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, LOG_TIMEZONE).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ServiceFilter(logging.Filter):
    """Stamps every record with the owning service's name."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        return True


def setup_logging(service_name: str, level: str = "INFO") -> None:
    """Setup JSON logging for a service.

    Safe to call more than once: handlers installed by an earlier call are
    replaced rather than duplicated.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(ServiceFilter(service_name))

    logger = logging.getLogger()
    logger.setLevel(level.upper())
    for existing in list(logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            logger.removeHandler(existing)
    logger.addHandler(handler)
