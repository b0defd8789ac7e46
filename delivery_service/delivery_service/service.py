"""Delivery records and the status updates they emit."""

from typing import Optional

from kafka_utils.producer import MessageProducer, PublishError
from kafka_utils.schemas import DeliveryStatus, DeliveryStatusUpdate, OrderCreated, utcnow
from kafka_utils.topics import DELIVERY_STATUS
from logging_utils.config import setup_service_logger

from .config import LOG_LEVEL, SERVICE_NAME
from .schemas import DELIVERY_TRANSITIONS, Delivery

logger = setup_service_logger(SERVICE_NAME, log_level=LOG_LEVEL)


class DeliveryNotFound(Exception):
    """Raised when a delivery id is unknown."""

    def __init__(self, delivery_id: str):
        self.delivery_id = delivery_id
        super().__init__(f"Delivery {delivery_id} not found")


class InvalidStatusTransition(Exception):
    """Raised when a delivery cannot move to the requested status."""

    def __init__(self, current: DeliveryStatus, requested: DeliveryStatus):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change delivery status from {current.value} to {requested.value}")


class DeliveryService:
    """Stores deliveries and announces every status change.

    Announcements are best-effort: a publish failure is logged and the
    status change stands.
    """

    def __init__(self, producer: Optional[MessageProducer] = None) -> None:
        self.producer = producer
        self._deliveries: dict[str, Delivery] = {}
        self._by_order: dict[str, str] = {}

    def create_for_order(self, order: OrderCreated) -> Optional[Delivery]:
        """Create the delivery for a newly created order.

        Returns:
            Delivery: The new record, or None if the order already has one.
        """
        if order.order_id in self._by_order:
            logger.info(f"Delivery already exists for order, skipping | order_id={order.order_id}")
            return None

        delivery = Delivery(order_id=order.order_id, customer_id=order.customer_id, address=order.shipping_address)
        self._deliveries[delivery.id] = delivery
        self._by_order[order.order_id] = delivery.id
        logger.info(f"Created delivery | delivery_id={delivery.id} | order_id={order.order_id}")
        self._announce(delivery)
        return delivery

    def get(self, delivery_id: str) -> Optional[Delivery]:
        return self._deliveries.get(delivery_id)

    def get_for_order(self, order_id: str) -> Optional[Delivery]:
        delivery_id = self._by_order.get(order_id)
        return self._deliveries.get(delivery_id) if delivery_id else None

    def list(self, status: Optional[DeliveryStatus] = None, order_id: Optional[str] = None) -> list[Delivery]:
        deliveries = self._deliveries.values()
        if status:
            deliveries = [d for d in deliveries if d.status == status]
        if order_id:
            deliveries = [d for d in deliveries if d.order_id == order_id]
        return sorted(deliveries, key=lambda d: d.created_at)

    def update_status(self, delivery_id: str, status: DeliveryStatus) -> Delivery:
        """Move a delivery to a new status and announce it.

        Raises:
            DeliveryNotFound: If the delivery does not exist.
            InvalidStatusTransition: If the move is not allowed from the current status.
        """
        delivery = self._deliveries.get(delivery_id)
        if delivery is None:
            raise DeliveryNotFound(delivery_id)
        if status not in DELIVERY_TRANSITIONS[delivery.status]:
            raise InvalidStatusTransition(delivery.status, status)

        now = utcnow()
        delivery.status = status
        delivery.updated_at = now
        if status is DeliveryStatus.DELIVERED:
            delivery.delivered_at = now
        logger.info(f"Delivery status updated | delivery_id={delivery_id} | status={status.value}")
        self._announce(delivery)
        return delivery

    def cancel_for_order(self, order_id: str) -> Optional[Delivery]:
        """Fail the pending delivery of a cancelled order, if there is one."""
        delivery = self.get_for_order(order_id)
        if delivery is None or delivery.status is not DeliveryStatus.PENDING:
            logger.info(f"No pending delivery to cancel | order_id={order_id}")
            return None
        return self.update_status(delivery.id, DeliveryStatus.FAILED)

    def _announce(self, delivery: Delivery) -> None:
        if self.producer is None:
            logger.warning(f"No producer configured, status update not sent | delivery_id={delivery.id}")
            return
        update = DeliveryStatusUpdate(
            order_id=delivery.order_id,
            status=delivery.status,
            delivery_id=delivery.id,
            timestamp=delivery.updated_at,
        )
        try:
            self.producer.publish(DELIVERY_STATUS, update, key=delivery.order_id)
        except PublishError as e:
            logger.error(f"Failed to publish delivery status | delivery_id={delivery.id} | error={e}")
