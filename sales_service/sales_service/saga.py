"""Order saga: availability check, persistence and fulfillment fan-out.

Each step declares what happens when it fails. ``ABORT`` steps stop the saga
and surface the error to the caller; ``CONTINUE`` steps log a publish
failure and let the saga finish. Every run keeps a step log that is written
to the service log once the saga ends.
"""

import inspect
from enum import Enum
from typing import Optional

from kafka_utils.producer import MessageProducer, PublishError
from kafka_utils.schemas import (
    DeliveryStatusUpdate,
    FulfillmentItem,
    ItemAvailability,
    OrderCancelled,
    OrderCreated,
    StockItem,
    StockMovementRequest,
    utcnow,
)
from kafka_utils.topics import ORDER_FULFILLMENT, STOCK_RELEASES, STOCK_RESERVATIONS
from logging_utils.config import setup_service_logger

from .config import LOG_LEVEL, SERVICE_NAME
from .repository import OrderNotFound, OrderRepository
from .schemas import DELIVERY_TO_ORDER_STATUS, ORDER_TRANSITIONS, CreateOrderRequest, Order, OrderStatus
from .stock_client import StockCheckClient

logger = setup_service_logger(SERVICE_NAME, log_level=LOG_LEVEL)


class FailurePolicy(str, Enum):
    ABORT = "abort"
    CONTINUE = "continue"


class StockUnavailable(Exception):
    """Raised when at least one requested item cannot be supplied."""

    def __init__(self, unavailable_items: list[ItemAvailability]):
        self.unavailable_items = unavailable_items
        super().__init__(f"Insufficient inventory for {len(unavailable_items)} item(s)")


class InvalidStatusTransition(Exception):
    """Raised when a manual status change is not allowed."""

    def __init__(self, current: OrderStatus, requested: OrderStatus):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change order status from {current.value} to {requested.value}")


def _stock_items(order: Order) -> list[StockItem]:
    return [StockItem(product_id=line.product_id, quantity=line.quantity) for line in order.items]


class OrderSaga:
    """Runs order creation and cancellation across the three domains."""

    def __init__(
        self,
        repository: OrderRepository,
        stock_client: StockCheckClient,
        producer: MessageProducer,
    ) -> None:
        self.repository = repository
        self.stock_client = stock_client
        self.producer = producer

    async def create_order(self, request: CreateOrderRequest) -> Order:
        """Create an order if every item is available.

        Raises:
            StockUnavailable: If any item is unavailable; nothing is persisted.
            StockCheckTimeout: If the inventory check got no reply.
        """
        saga_log: list[dict] = []
        try:
            await self._run_step(saga_log, 1, "check_availability", FailurePolicy.ABORT, self._check_availability, request)
            order = await self._run_step(saga_log, 2, "persist_order", FailurePolicy.ABORT, self._persist_order, request)
            await self._run_step(saga_log, 3, "reserve_stock", FailurePolicy.CONTINUE, self._publish_reservation, order)
            await self._run_step(saga_log, 4, "announce_order", FailurePolicy.CONTINUE, self._publish_order_created, order)
        finally:
            logger.info(f"Order saga finished | customer_id={request.customer_id} | saga_log={saga_log}")
        return order

    async def _run_step(self, saga_log: list[dict], step: int, action: str, policy: FailurePolicy, func, *args):
        entry = {"step": step, "action": action, "status": "EXECUTING", "timestamp": utcnow().isoformat()}
        saga_log.append(entry)
        try:
            result = func(*args)
            if inspect.isawaitable(result):
                result = await result
        except PublishError as e:
            entry.update(status="FAILED", error=str(e))
            if policy is FailurePolicy.ABORT:
                raise
            logger.error(f"Saga step failed, continuing | step={step} | action={action} | error={e}")
            return None
        except Exception as e:
            entry.update(status="FAILED", error=str(e))
            raise
        entry["status"] = "COMPLETED"
        return result

    async def _check_availability(self, request: CreateOrderRequest) -> None:
        items = [StockItem(product_id=item.product_id, quantity=item.quantity) for item in request.items]
        response = await self.stock_client.check_availability(items)
        if not response.available:
            unavailable = response.unavailable_items or [i for i in response.items if not i.available]
            logger.warning(f"Order rejected, insufficient inventory | unavailable={[i.product_id for i in unavailable]}")
            raise StockUnavailable(unavailable)

    def _persist_order(self, request: CreateOrderRequest) -> Order:
        order = self.repository.add(Order.from_request(request))
        logger.info(f"Order persisted | order_id={order.id} | total={order.total_amount} {order.currency}")
        return order

    def _publish_reservation(self, order: Order) -> None:
        message = StockMovementRequest(order_id=order.id, items=_stock_items(order))
        self.producer.publish(STOCK_RESERVATIONS, message, key=order.id)

    def _publish_order_created(self, order: Order) -> None:
        message = OrderCreated(
            order_id=order.id,
            customer_id=order.customer_id,
            shipping_address=order.shipping_address,
            items=[
                FulfillmentItem(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in order.items
            ],
            total_amount=order.total_amount,
            created_at=order.created_at,
        )
        self.producer.publish(ORDER_FULFILLMENT, message, key=order.id)

    def update_status(self, order_id: str, status: OrderStatus) -> Order:
        """Apply a manual status change.

        Cancelling a pending order returns its stock and tells the delivery
        domain; both messages are best-effort.

        Raises:
            OrderNotFound: If the order does not exist.
            InvalidStatusTransition: If the change is not allowed.
        """
        order = self.repository.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.status == status:
            return order
        if status not in ORDER_TRANSITIONS[order.status]:
            raise InvalidStatusTransition(order.status, status)

        order = self.repository.update_status(order_id, status)
        logger.info(f"Order status updated | order_id={order_id} | status={status.value}")

        if status is OrderStatus.CANCELLED:
            self._publish_best_effort(
                STOCK_RELEASES, StockMovementRequest(order_id=order.id, items=_stock_items(order)), order.id
            )
            self._publish_best_effort(ORDER_FULFILLMENT, OrderCancelled(order_id=order.id), order.id)
        return order

    def apply_delivery_status(self, update: DeliveryStatusUpdate) -> Optional[Order]:
        """Mirror a delivery status onto its order.

        The mapped status overwrites whatever the order currently holds.
        """
        status = DELIVERY_TO_ORDER_STATUS[update.status]
        try:
            order = self.repository.update_status(update.order_id, status)
        except OrderNotFound:
            logger.warning(f"Delivery status for unknown order | order_id={update.order_id} | status={update.status.value}")
            return None
        logger.info(
            f"Order status updated from delivery | order_id={order.id} | "
            f"delivery_status={update.status.value} | status={status.value}"
        )
        return order

    def _publish_best_effort(self, topic: str, message, key: str) -> None:
        try:
            self.producer.publish(topic, message, key=key)
        except PublishError as e:
            logger.error(f"Failed to publish message | topic={topic} | key={key} | error={e}")
