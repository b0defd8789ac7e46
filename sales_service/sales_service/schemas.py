"""Schemas for sales service data models."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from kafka_utils.schemas import CamelModel, DeliveryStatus, utcnow
from pydantic import ConfigDict, Field, field_validator

CENTS = Decimal("0.01")


class OrderStatus(str, Enum):
    """Lifecycle of an order.

    ``Cancelled`` is absorbing and only reachable from ``Pending Shipment``.
    """

    PENDING_SHIPMENT = "Pending Shipment"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# Target statuses accepted by a manual status update, per current status.
ORDER_TRANSITIONS = {
    OrderStatus.PENDING_SHIPMENT: {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

DELIVERY_TO_ORDER_STATUS = {
    DeliveryStatus.PENDING: OrderStatus.PENDING_SHIPMENT,
    DeliveryStatus.IN_TRANSIT: OrderStatus.SHIPPED,
    DeliveryStatus.DELIVERED: OrderStatus.DELIVERED,
    DeliveryStatus.FAILED: OrderStatus.CANCELLED,
}


class OrderLineRequest(CamelModel):
    """A requested order line.

    Attributes:
        product_id: Product identifier in the inventory domain
        product_name: Name shown on the order
        quantity: Units ordered, at least 1
        unit_price: Price per unit
    """

    product_id: str = Field(..., min_length=1)
    product_name: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0, le=1000)
    unit_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)


class CreateOrderRequest(CamelModel):
    """Body of ``POST /orders``."""

    customer_id: str = Field(..., min_length=1)
    customer_email: Optional[str] = None
    shipping_address: str = Field(..., min_length=1)
    currency: str = Field("USD", min_length=3, max_length=3)
    items: list[OrderLineRequest] = Field(..., min_length=1, description="At least one item required")

    @field_validator("currency")
    def validate_currency(cls, v):
        """Normalize the currency code to upper case."""
        return v.upper()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "customerId": "cust-12345",
                "customerEmail": "jane@example.com",
                "shippingAddress": "1 Main St, Springfield",
                "items": [
                    {"productId": "prod-001", "productName": "Wireless Bluetooth Headphones", "quantity": 1, "unitPrice": 99.99},
                ],
            }
        }
    )


class OrderLine(CamelModel):
    """A persisted order line with its computed total."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class Order(CamelModel):
    """An order owned by the sales domain."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    customer_id: str
    customer_email: Optional[str] = None
    shipping_address: str
    total_amount: Decimal
    currency: str = "USD"
    status: OrderStatus = OrderStatus.PENDING_SHIPMENT
    items: list[OrderLine]
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_request(cls, request: CreateOrderRequest) -> "Order":
        """Build a new order, computing line totals and the order total."""
        lines = [
            OrderLine(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price.quantize(CENTS),
                total_price=(item.unit_price * item.quantity).quantize(CENTS),
            )
            for item in request.items
        ]
        return cls(
            customer_id=request.customer_id,
            customer_email=request.customer_email,
            shipping_address=request.shipping_address,
            currency=request.currency,
            total_amount=sum((line.total_price for line in lines), Decimal("0.00")),
            items=lines,
        )


class OrderCreatedResponse(CamelModel):
    """Body returned by a successful ``POST /orders``."""

    order_id: str
    status: OrderStatus
    total_amount: Decimal
    currency: str
    message: str = "Order created successfully and delivery process initiated"


class UpdateOrderStatusRequest(CamelModel):
    """Body of ``PATCH /orders/{id}/status``."""

    status: OrderStatus


class OrderStatusResponse(CamelModel):
    """Body returned by a status update."""

    order_id: str
    status: OrderStatus
    message: str
