"""Sample catalogue loaded into the ledger at startup."""

from decimal import Decimal

from .ledger import StockLedger
from .schemas import Product

SAMPLE_PRODUCTS = [
    {
        "id": "prod-001",
        "name": "Wireless Bluetooth Headphones",
        "description": "High-quality wireless headphones with noise cancellation",
        "price": Decimal("99.99"),
        "stock_quantity": 50,
        "category": "Electronics",
    },
    {
        "id": "prod-002",
        "name": "Smartphone Case",
        "description": "Protective case for smartphones",
        "price": Decimal("19.99"),
        "stock_quantity": 100,
        "category": "Accessories",
    },
    {
        "id": "prod-003",
        "name": "USB-C Cable",
        "description": "Fast charging USB-C cable",
        "price": Decimal("12.99"),
        "stock_quantity": 200,
        "category": "Accessories",
    },
    {
        "id": "prod-004",
        "name": "Laptop Stand",
        "description": "Adjustable aluminum laptop stand",
        "price": Decimal("49.99"),
        "stock_quantity": 25,
        "category": "Office",
    },
    {
        "id": "prod-005",
        "name": "Wireless Mouse",
        "description": "Ergonomic wireless mouse",
        "price": Decimal("29.99"),
        "stock_quantity": 75,
        "category": "Electronics",
    },
    {
        "id": "prod-006",
        "name": "Out of Stock Item",
        "description": "This item is currently out of stock",
        "price": Decimal("39.99"),
        "stock_quantity": 0,
        "category": "Test",
    },
    {
        "id": "prod-007",
        "name": "Discontinued Item",
        "description": "No longer sold",
        "price": Decimal("9.99"),
        "stock_quantity": 10,
        "category": "Test",
        "is_active": False,
    },
]


def seed_ledger(ledger: StockLedger) -> int:
    """Add any sample products missing from the ledger.

    Returns:
        int: Number of products added.
    """
    added = 0
    for data in SAMPLE_PRODUCTS:
        if ledger.get_product(data["id"]) is None:
            ledger.add_product(Product(**data))
            added += 1
    return added
