"""Handler for the fulfillment messages the Delivery Service consumes."""

from kafka_utils.schemas import MessageType, OrderCancelled, OrderCreated
from kafka_utils.topics import ORDER_FULFILLMENT
from logging_utils.config import get_kafka_logger

from .config import SERVICE_NAME
from .service import DeliveryService

logger = get_kafka_logger(SERVICE_NAME)


class FulfillmentMessageHandler:
    """Dispatches fulfillment messages on their ``type`` field."""

    def __init__(self, service: DeliveryService) -> None:
        self.service = service

    async def __call__(self, topic: str, value: dict) -> None:
        if topic != ORDER_FULFILLMENT:
            logger.warning(f"Ignoring message from unexpected topic | topic={topic}")
            return

        try:
            message_type = MessageType(value.get("type"))
        except ValueError:
            logger.warning(f"Unknown message type | type={value.get('type')}")
            return

        if message_type is MessageType.ORDER_CREATED:
            self.service.create_for_order(OrderCreated.model_validate(value))
        elif message_type is MessageType.ORDER_CANCELLED:
            cancelled = OrderCancelled.model_validate(value)
            logger.info(f"Processing cancellation | order_id={cancelled.order_id}")
            self.service.cancel_for_order(cancelled.order_id)
        else:
            logger.warning(f"Unexpected message type on {topic} | type={message_type.value}")
