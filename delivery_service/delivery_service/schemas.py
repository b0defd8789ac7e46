"""Schemas for delivery service data models."""

import uuid
from datetime import datetime
from typing import Optional

from kafka_utils.schemas import CamelModel, DeliveryStatus, utcnow
from pydantic import Field

# Allowed next statuses; DELIVERED and FAILED are terminal.
DELIVERY_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.IN_TRANSIT, DeliveryStatus.FAILED},
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED, DeliveryStatus.FAILED},
    DeliveryStatus.DELIVERED: set(),
    DeliveryStatus.FAILED: set(),
}


def generate_delivery_id() -> str:
    return f"dlv-{uuid.uuid4().hex[:12]}"


class Delivery(CamelModel):
    """Delivery record created for a fulfilled order.

    Attributes:
        id: Delivery identifier, ``dlv-`` followed by hex digits
        order_id: Order this delivery fulfils, one delivery per order
        customer_id: Customer receiving the parcel
        address: Shipping address copied from the order
        status: Current delivery status
        delivered_at: Set when the delivery reaches DELIVERED
    """

    id: str = Field(default_factory=generate_delivery_id)
    order_id: str
    customer_id: str
    address: str
    status: DeliveryStatus = DeliveryStatus.PENDING
    delivered_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UpdateDeliveryStatusRequest(CamelModel):
    """Body of ``PATCH /deliveries/{id}/status``."""

    status: DeliveryStatus
