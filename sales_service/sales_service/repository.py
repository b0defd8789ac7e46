"""In-process order store for the sales domain."""

from typing import Optional

from kafka_utils.schemas import utcnow

from .schemas import Order, OrderStatus


class OrderNotFound(Exception):
    """Raised when an order id is unknown."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class OrderRepository:
    """Stores orders together with their lines.

    An order and its lines are inserted as one object, so a reader never sees
    a header without its lines.
    """

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}

    def __len__(self) -> int:
        return len(self._orders)

    def add(self, order: Order) -> Order:
        if order.id in self._orders:
            raise ValueError(f"Order {order.id} already exists")
        self._orders[order.id] = order
        return order

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def list(self, customer_id: Optional[str] = None, status: Optional[OrderStatus] = None) -> list[Order]:
        """Orders newest first, optionally filtered."""
        orders = self._orders.values()
        if customer_id:
            orders = [o for o in orders if o.customer_id == customer_id]
        if status:
            orders = [o for o in orders if o.status == status]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def update_status(self, order_id: str, status: OrderStatus) -> Order:
        """Overwrite an order's status.

        Raises:
            OrderNotFound: If the order does not exist.
        """
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        order.status = status
        order.updated_at = utcnow()
        return order
