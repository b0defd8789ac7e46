"""Handlers for the stock commands the Inventory Service consumes."""

from kafka_utils.producer import MessageProducer
from kafka_utils.schemas import StockCheckRequest, StockCheckResponse, StockMovementRequest
from kafka_utils.topics import STOCK_CHECK_REQUESTS, STOCK_CHECK_RESPONSES, STOCK_RELEASES, STOCK_RESERVATIONS
from logging_utils.config import get_kafka_logger

from .config import SERVICE_NAME
from .ledger import StockLedger

logger = get_kafka_logger(SERVICE_NAME)


class InventoryMessageHandler:
    """Routes stock-check requests, reservations and releases to the ledger.

    Validation errors and ledger failures propagate to the consumer loop,
    which dead-letters the message.
    """

    def __init__(self, ledger: StockLedger, producer: MessageProducer) -> None:
        self.ledger = ledger
        self.producer = producer

    async def __call__(self, topic: str, value: dict) -> None:
        if topic == STOCK_CHECK_REQUESTS:
            await self.handle_stock_check(value)
        elif topic == STOCK_RESERVATIONS:
            await self.handle_reservation(value)
        elif topic == STOCK_RELEASES:
            await self.handle_release(value)
        else:
            logger.warning(f"Ignoring message from unexpected topic | topic={topic}")

    async def handle_stock_check(self, value: dict) -> StockCheckResponse:
        """Answer a stock-check request on the response topic."""
        request = StockCheckRequest.model_validate(value)
        results = self.ledger.check_availability(request.items)
        response = StockCheckResponse.from_results(request.correlation_id, results)
        self.producer.publish(STOCK_CHECK_RESPONSES, response, key=request.correlation_id)
        logger.info(
            f"Stock check answered | correlation_id={request.correlation_id} | "
            f"available={response.available} | items={len(results)}"
        )
        return response

    async def handle_reservation(self, value: dict) -> None:
        request = StockMovementRequest.model_validate(value)
        logger.info(f"Processing stock reservation | order_id={request.order_id}")
        await self.ledger.reserve(request.order_id, request.items)

    async def handle_release(self, value: dict) -> None:
        request = StockMovementRequest.model_validate(value)
        logger.info(f"Processing stock release | order_id={request.order_id}")
        await self.ledger.release(request.order_id, request.items)
