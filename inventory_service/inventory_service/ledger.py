"""Stock ledger: product quantities and their append-only movement trail.

Every change to a product's stock goes through ``_apply``, which writes the
new quantity and appends a Movement in the same step. Summing a product's
movement deltas therefore always reproduces its current stock.
"""

import asyncio
import itertools
from collections import defaultdict
from collections.abc import Iterable
from typing import Optional

from kafka_utils.schemas import ItemAvailability, StockItem, utcnow
from logging_utils.config import setup_service_logger

from .config import LOG_LEVEL, SERVICE_NAME
from .schemas import Movement, MovementType, Product, StockChange

logger = setup_service_logger(SERVICE_NAME, log_level=LOG_LEVEL)

REASON_NOT_FOUND = "not found"
REASON_INACTIVE = "inactive"
REASON_INSUFFICIENT = "insufficient stock"

INITIAL_STOCK_REASON = "initial stock"
RESERVE_REASON = "reserved for order"
RELEASE_REASON = "released from cancelled order"


class LedgerError(Exception):
    """Base class for stock ledger failures."""


class ProductNotFound(LedgerError):
    """Raised when a referenced product does not exist."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class InsufficientStock(LedgerError):
    """Raised when a reservation asks for more than is on hand."""

    def __init__(self, product_id: str, requested: int, current_stock: Optional[int]):
        self.product_id = product_id
        self.requested = requested
        self.current_stock = current_stock
        super().__init__(
            f"Cannot reserve stock for product {product_id}: insufficient stock "
            f"(requested={requested}, current={current_stock})"
        )


class StockLedger:
    """In-process stock ledger for the inventory domain.

    Reservations and releases take a per-product lock around the
    read-check-write of the quantity, so concurrent reservations of the same
    product cannot both pass the stock check.
    """

    def __init__(self) -> None:
        self._products: dict[str, Product] = {}
        self._movements: list[Movement] = []
        self._movement_ids = itertools.count(1)
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def add_product(self, product: Product) -> Product:
        """Register a product, recording its opening stock as a movement.

        Raises:
            ValueError: If a product with the same id already exists.
        """
        if product.id in self._products:
            raise ValueError(f"Product {product.id} already exists")

        opening_stock = product.stock_quantity
        record = product.model_copy(update={"stock_quantity": 0})
        self._products[record.id] = record
        if opening_stock:
            self._apply(record, opening_stock, INITIAL_STOCK_REASON, order_id=None)
        return record

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def list_products(self) -> list[Product]:
        return sorted(self._products.values(), key=lambda p: p.id)

    def movements(self, product_id: Optional[str] = None) -> list[Movement]:
        """Movements in creation order, optionally for one product."""
        if product_id is None:
            return list(self._movements)
        return [m for m in self._movements if m.product_id == product_id]

    def replay(self, product_id: str) -> int:
        """Recompute a product's stock from its movement trail."""
        return sum(m.quantity for m in self.movements(product_id))

    def check_availability(self, items: Iterable[StockItem]) -> list[ItemAvailability]:
        """Report availability for each requested item.

        Pure read; a missing product only marks its own item unavailable.
        """
        results = []
        for item in items:
            product = self._products.get(item.product_id)
            if product is None:
                results.append(
                    ItemAvailability(
                        product_id=item.product_id,
                        requested=item.quantity,
                        available=False,
                        reason=REASON_NOT_FOUND,
                    )
                )
            elif not product.is_active:
                results.append(
                    ItemAvailability(
                        product_id=item.product_id,
                        requested=item.quantity,
                        available=False,
                        current_stock=product.stock_quantity,
                        reason=REASON_INACTIVE,
                    )
                )
            elif product.stock_quantity < item.quantity:
                results.append(
                    ItemAvailability(
                        product_id=item.product_id,
                        requested=item.quantity,
                        available=False,
                        current_stock=product.stock_quantity,
                        reason=REASON_INSUFFICIENT,
                    )
                )
            else:
                results.append(
                    ItemAvailability(
                        product_id=item.product_id,
                        requested=item.quantity,
                        available=True,
                        current_stock=product.stock_quantity,
                    )
                )
        return results

    async def reserve(self, order_id: str, items: Iterable[StockItem]) -> list[StockChange]:
        """Decrement stock for every item of an order.

        Items are processed in order. When one fails, items already
        decremented by this call stay decremented.

        Raises:
            InsufficientStock: If a product is missing or has too little stock.
        """
        changes = []
        for item in items:
            async with self._locks[item.product_id]:
                product = self._products.get(item.product_id)
                if product is None or product.stock_quantity < item.quantity:
                    raise InsufficientStock(
                        item.product_id,
                        item.quantity,
                        product.stock_quantity if product else None,
                    )
                changes.append(self._apply(product, -item.quantity, RESERVE_REASON, order_id))

        logger.info(f"Stock reserved | order_id={order_id} | items={len(changes)}")
        return changes

    async def release(self, order_id: str, items: Iterable[StockItem]) -> list[StockChange]:
        """Return stock for every item of a cancelled order.

        Raises:
            ProductNotFound: If a product is missing; earlier items stay released.
        """
        changes = []
        for item in items:
            async with self._locks[item.product_id]:
                product = self._products.get(item.product_id)
                if product is None:
                    raise ProductNotFound(item.product_id)
                changes.append(self._apply(product, item.quantity, RELEASE_REASON, order_id))

        logger.info(f"Stock released | order_id={order_id} | items={len(changes)}")
        return changes

    def _apply(self, product: Product, delta: int, reason: str, order_id: Optional[str]) -> StockChange:
        previous_stock = product.stock_quantity
        new_stock = previous_stock + delta
        if new_stock < 0:
            raise InsufficientStock(product.id, -delta, previous_stock)

        now = utcnow()
        product.stock_quantity = new_stock
        product.updated_at = now
        self._movements.append(
            Movement(
                id=next(self._movement_ids),
                product_id=product.id,
                movement_type=MovementType.IN if delta > 0 else MovementType.OUT,
                quantity=delta,
                previous_stock=previous_stock,
                new_stock=new_stock,
                reason=reason,
                order_id=order_id,
                created_at=now,
            )
        )
        logger.debug(
            f"Stock movement | product_id={product.id} | delta={delta} | "
            f"previous={previous_stock} | new={new_stock} | reason={reason}"
        )
        return StockChange(
            product_id=product.id,
            quantity=abs(delta),
            previous_stock=previous_stock,
            new_stock=new_stock,
        )
