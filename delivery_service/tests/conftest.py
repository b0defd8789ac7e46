"""Test fixtures for the delivery service tests."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from delivery_service.service import DeliveryService
from kafka_utils.schemas import FulfillmentItem, OrderCreated


@pytest.fixture
def mock_producer():
    """A stand-in for MessageProducer recording published messages."""
    return MagicMock()


@pytest.fixture
def service(mock_producer):
    return DeliveryService(mock_producer)


@pytest.fixture
def order_created():
    """An ORDER_CREATED announcement for one line."""
    return OrderCreated(
        order_id="6f1c2b1e-0000-4000-8000-000000000001",
        customer_id="cust-12345",
        shipping_address="1 Main St, Springfield",
        items=[FulfillmentItem(product_id="prod-001", product_name="Headphones", quantity=1, unit_price=Decimal("99.99"))],
        total_amount=Decimal("99.99"),
    )
