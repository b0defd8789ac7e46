"""Schemas for inventory service data models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from kafka_utils.schemas import CamelModel, ItemAvailability, StockItem, utcnow
from pydantic import ConfigDict, Field


class MovementType(str, Enum):
    """Direction of a stock movement."""

    IN = "IN"
    OUT = "OUT"


class Product(CamelModel):
    """A stock record owned by the inventory domain.

    Attributes:
        id: Product identifier
        name: Display name
        price: Unit price
        stock_quantity: Units currently on hand, never negative
        is_active: Inactive products are never reported as available
    """

    id: str = Field(..., min_length=1)
    name: str
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    category: Optional[str] = None
    stock_quantity: int = Field(0, ge=0)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Movement(CamelModel):
    """Immutable audit entry of a stock quantity change."""

    model_config = ConfigDict(frozen=True)

    id: int
    product_id: str
    movement_type: MovementType
    quantity: int
    previous_stock: int
    new_stock: int
    reason: str
    order_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class StockChange(CamelModel):
    """Outcome of reserving or releasing one item."""

    product_id: str
    quantity: int
    previous_stock: int
    new_stock: int


class CheckAvailabilityRequest(CamelModel):
    """Body of ``POST /check-availability``."""

    items: list[StockItem] = Field(..., min_length=1)


class AvailabilityReport(CamelModel):
    """Aggregated availability for a batch of items."""

    available: bool
    items: list[ItemAvailability]
    unavailable_items: Optional[list[ItemAvailability]] = None
