"""Request/reply stock checks over the broker.

A request carries a fresh correlation id and is parked in a pending table
until the matching reply arrives on the response topic or the wait times
out. The table is only touched from the event loop, and an entry is popped
exactly once, so a late reply can never resolve a request that already
timed out.
"""

import asyncio
import uuid
from collections.abc import Iterable

from kafka_utils.producer import MessageProducer
from kafka_utils.schemas import StockCheckRequest, StockCheckResponse, StockItem
from kafka_utils.topics import STOCK_CHECK_REQUESTS
from logging_utils.config import get_kafka_logger

from .config import SERVICE_NAME

logger = get_kafka_logger(SERVICE_NAME)


class StockCheckTimeout(Exception):
    """Raised when no stock-check reply arrives in time."""

    def __init__(self, correlation_id: str, timeout: float):
        self.correlation_id = correlation_id
        self.timeout = timeout
        super().__init__(f"Inventory check timeout after {timeout:g}s (correlation_id={correlation_id})")


class StockCheckClient:
    """Correlated stock-check RPC against the Inventory Service."""

    def __init__(self, producer: MessageProducer, timeout: float = 10.0) -> None:
        self.producer = producer
        self.timeout = timeout
        self._pending: dict[str, asyncio.Future] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def check_availability(self, items: Iterable[StockItem]) -> StockCheckResponse:
        """Publish a stock-check request and wait for its reply.

        Raises:
            StockCheckTimeout: If no reply arrives within ``timeout`` seconds.
            PublishError: If the request could not be published.
        """
        correlation_id = f"inv-{uuid.uuid4().hex}"
        future = asyncio.get_running_loop().create_future()
        self._pending[correlation_id] = future
        try:
            request = StockCheckRequest(correlation_id=correlation_id, items=list(items))
            self.producer.publish(STOCK_CHECK_REQUESTS, request, key=correlation_id)
            logger.info(f"Stock check requested | correlation_id={correlation_id} | items={len(request.items)}")
            return await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Stock check timed out | correlation_id={correlation_id} | timeout={self.timeout}")
            raise StockCheckTimeout(correlation_id, self.timeout) from e
        finally:
            self._pending.pop(correlation_id, None)

    def resolve(self, response: StockCheckResponse) -> bool:
        """Complete the request waiting on ``response.correlation_id``.

        Returns:
            bool: False when nobody is waiting (late or duplicate reply).
        """
        future = self._pending.pop(response.correlation_id, None)
        if future is None or future.done():
            logger.info(f"Discarding stock check reply with no waiter | correlation_id={response.correlation_id}")
            return False
        future.set_result(response)
        return True
