"""Test fixtures for the inventory service tests."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from inventory_service.ledger import StockLedger
from inventory_service.schemas import Product


@pytest.fixture
def ledger():
    """A ledger holding one active product with 10 units and one inactive product.

    Returns:
        StockLedger: Ledger with ``prod-001`` (10 units) and ``prod-off`` (inactive).
    """
    ledger = StockLedger()
    ledger.add_product(Product(id="prod-001", name="Headphones", price=Decimal("99.99"), stock_quantity=10))
    ledger.add_product(
        Product(id="prod-off", name="Discontinued", price=Decimal("9.99"), stock_quantity=5, is_active=False)
    )
    return ledger


@pytest.fixture
def mock_producer():
    """A stand-in for MessageProducer recording published messages."""
    return MagicMock()
