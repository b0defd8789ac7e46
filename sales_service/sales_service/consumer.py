"""Handlers for the replies and status updates the Sales Service consumes."""

from kafka_utils.schemas import DeliveryStatusUpdate, MessageType, StockCheckResponse
from kafka_utils.topics import DELIVERY_STATUS, STOCK_CHECK_RESPONSES
from logging_utils.config import get_kafka_logger

from .config import SERVICE_NAME
from .saga import OrderSaga
from .stock_client import StockCheckClient

logger = get_kafka_logger(SERVICE_NAME)


class SalesMessageHandler:
    """Routes stock-check replies to the RPC client and status updates to the saga."""

    def __init__(self, saga: OrderSaga, stock_client: StockCheckClient) -> None:
        self.saga = saga
        self.stock_client = stock_client

    async def __call__(self, topic: str, value: dict) -> None:
        if topic == STOCK_CHECK_RESPONSES:
            self.stock_client.resolve(StockCheckResponse.model_validate(value))
        elif topic == DELIVERY_STATUS:
            self.handle_status_message(value)
        else:
            logger.warning(f"Ignoring message from unexpected topic | topic={topic}")

    def handle_status_message(self, value: dict) -> None:
        """Dispatch on the message type; unknown types are logged and skipped."""
        try:
            message_type = MessageType(value.get("type"))
        except ValueError:
            logger.warning(f"Unknown message type on {DELIVERY_STATUS} | type={value.get('type')}")
            return

        if message_type is MessageType.DELIVERY_STATUS_UPDATE:
            self.saga.apply_delivery_status(DeliveryStatusUpdate.model_validate(value))
        else:
            logger.warning(f"Unexpected message type on {DELIVERY_STATUS} | type={message_type.value}")
