"""Kafka topic names shared by the fulfillment services."""

STOCK_CHECK_REQUESTS = "inventory.stock-check.requests"
STOCK_CHECK_RESPONSES = "inventory.stock-check.responses"
STOCK_RESERVATIONS = "inventory.stock.reservations"
STOCK_RELEASES = "inventory.stock.releases"
ORDER_FULFILLMENT = "orders.fulfillment"
DELIVERY_STATUS = "deliveries.status"

ALL_TOPICS = [
    STOCK_CHECK_REQUESTS,
    STOCK_CHECK_RESPONSES,
    STOCK_RESERVATIONS,
    STOCK_RELEASES,
    ORDER_FULFILLMENT,
    DELIVERY_STATUS,
]

DEAD_LETTER_SUFFIX = ".dlq"


def dead_letter_topic(topic: str) -> str:
    """Return the dead-letter topic paired with ``topic``."""
    return f"{topic}{DEAD_LETTER_SUFFIX}"
