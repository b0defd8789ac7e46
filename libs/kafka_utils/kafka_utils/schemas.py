"""Message envelopes exchanged over Kafka.

Every envelope is serialized with camelCase field names, which is the wire
format all services agree on. Models accept both the alias and the Python
field name so services can build them with keyword arguments.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model using camelCase aliases on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageType(str, Enum):
    """Closed set of typed messages carried on the fulfillment topics."""

    ORDER_CREATED = "ORDER_CREATED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    DELIVERY_STATUS_UPDATE = "DELIVERY_STATUS_UPDATE"


class DeliveryStatus(str, Enum):
    """Lifecycle of a delivery record."""

    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class StockItem(CamelModel):
    """A product and the quantity requested of it."""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class ItemAvailability(CamelModel):
    """Availability verdict for a single requested item."""

    product_id: str
    requested: int
    available: bool
    current_stock: Optional[int] = None
    reason: Optional[str] = None


class StockCheckRequest(CamelModel):
    """Request half of the stock-check RPC."""

    correlation_id: str = Field(..., min_length=1)
    items: list[StockItem] = Field(..., min_length=1)


class StockCheckResponse(CamelModel):
    """Reply half of the stock-check RPC."""

    correlation_id: str = Field(..., min_length=1)
    available: bool
    items: list[ItemAvailability]
    unavailable_items: Optional[list[ItemAvailability]] = None

    @classmethod
    def from_results(cls, correlation_id: str, results: list[ItemAvailability]) -> "StockCheckResponse":
        """Build a reply from per-item availability results."""
        unavailable = [result for result in results if not result.available]
        return cls(
            correlation_id=correlation_id,
            available=not unavailable,
            items=results,
            unavailable_items=unavailable or None,
        )


class StockMovementRequest(CamelModel):
    """One-way reservation or release command for an order's items."""

    order_id: str = Field(..., min_length=1)
    items: list[StockItem] = Field(..., min_length=1)


class FulfillmentItem(CamelModel):
    """Order line as announced to the delivery domain."""

    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal


class OrderCreated(CamelModel):
    """Fulfillment trigger published once an order is persisted."""

    type: Literal["ORDER_CREATED"] = MessageType.ORDER_CREATED.value
    order_id: str
    customer_id: str
    shipping_address: str
    items: list[FulfillmentItem]
    total_amount: Decimal
    created_at: datetime = Field(default_factory=utcnow)


class OrderCancelled(CamelModel):
    """Announcement that an order was cancelled before shipping."""

    type: Literal["ORDER_CANCELLED"] = MessageType.ORDER_CANCELLED.value
    order_id: str
    cancelled_at: datetime = Field(default_factory=utcnow)


class DeliveryStatusUpdate(CamelModel):
    """Status change emitted by the delivery domain."""

    type: Literal["DELIVERY_STATUS_UPDATE"] = MessageType.DELIVERY_STATUS_UPDATE.value
    order_id: str
    status: DeliveryStatus
    delivery_id: str
    timestamp: datetime = Field(default_factory=utcnow)


class DeadLetter(CamelModel):
    """A message that could not be processed, kept for later inspection."""

    topic: str
    partition: Optional[int] = None
    offset: Optional[int] = None
    error: str
    payload: str
    failed_at: datetime = Field(default_factory=utcnow)
