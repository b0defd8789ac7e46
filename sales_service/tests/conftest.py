"""Test fixtures for the sales service tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from kafka_utils.schemas import ItemAvailability, StockCheckResponse
from sales_service.repository import OrderRepository
from sales_service.saga import OrderSaga
from sales_service.schemas import CreateOrderRequest, OrderLineRequest


def make_response(*results: ItemAvailability, correlation_id: str = "inv-test") -> StockCheckResponse:
    """Build a stock-check reply from per-item results."""
    return StockCheckResponse.from_results(correlation_id, list(results))


@pytest.fixture
def order_request():
    """An order for two headphones and one cable.

    Returns:
        CreateOrderRequest: Request totalling 212.97 USD.
    """
    return CreateOrderRequest(
        customer_id="cust-12345",
        customer_email="jane@example.com",
        shipping_address="1 Main St, Springfield",
        items=[
            OrderLineRequest(product_id="prod-001", product_name="Headphones", quantity=2, unit_price="99.99"),
            OrderLineRequest(product_id="prod-003", product_name="USB-C Cable", quantity=1, unit_price="12.99"),
        ],
    )


@pytest.fixture
def available_response():
    return make_response(
        ItemAvailability(product_id="prod-001", requested=2, available=True, current_stock=50),
        ItemAvailability(product_id="prod-003", requested=1, available=True, current_stock=200),
    )


@pytest.fixture
def repository():
    return OrderRepository()


@pytest.fixture
def mock_producer():
    """A stand-in for MessageProducer recording published messages."""
    return MagicMock()


@pytest.fixture
def stock_client(available_response):
    """A stock-check client that reports every item available."""
    client = MagicMock()
    client.check_availability = AsyncMock(return_value=available_response)
    return client


@pytest.fixture
def saga(repository, stock_client, mock_producer):
    return OrderSaga(repository, stock_client, mock_producer)


@pytest.fixture
def response_factory():
    """The ``make_response`` helper, for building stock-check replies in tests."""
    return make_response
