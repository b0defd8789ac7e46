"""FastAPI server implementation for the Sales Service."""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from confluent_kafka import KafkaException
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from kafka_utils.admin import check_kafka_connection, ensure_topics, require_broker
from kafka_utils.consumer import MessageConsumer
from kafka_utils.producer import MessageProducer, PublishError
from kafka_utils.topics import ALL_TOPICS, DELIVERY_STATUS, STOCK_CHECK_RESPONSES
from logging_utils.config import setup_service_logger

from .config import (
    KAFKA_BOOTSTRAP_SERVERS,
    KAFKA_CONSUMER_GROUP,
    LOG_LEVEL,
    SERVICE_NAME,
    STOCK_CHECK_TIMEOUT_SECONDS,
)
from .consumer import SalesMessageHandler
from .repository import OrderNotFound, OrderRepository
from .saga import InvalidStatusTransition, OrderSaga, StockUnavailable
from .schemas import (
    CreateOrderRequest,
    Order,
    OrderCreatedResponse,
    OrderStatus,
    OrderStatusResponse,
    UpdateOrderStatusRequest,
)
from .stock_client import StockCheckClient, StockCheckTimeout

logger = setup_service_logger(SERVICE_NAME, log_level=LOG_LEVEL)


class SalesState:
    """Class to manage sales service state."""

    def __init__(self) -> None:
        self.repository = OrderRepository()
        self.producer: Optional[MessageProducer] = None
        self.consumer: Optional[MessageConsumer] = None
        self.stock_client: Optional[StockCheckClient] = None
        self.saga: Optional[OrderSaga] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect to the broker, wire the saga and start consuming.

    Startup fails when the broker is unreachable.
    """
    require_broker(KAFKA_BOOTSTRAP_SERVERS)
    try:
        ensure_topics(KAFKA_BOOTSTRAP_SERVERS, ALL_TOPICS)
    except KafkaException as e:
        logger.warning(f"Could not ensure topics, relying on broker auto-creation: {e}")

    state.producer = MessageProducer(KAFKA_BOOTSTRAP_SERVERS, client_id=SERVICE_NAME)
    state.stock_client = StockCheckClient(state.producer, timeout=STOCK_CHECK_TIMEOUT_SECONDS)
    state.saga = OrderSaga(state.repository, state.stock_client, state.producer)
    state.consumer = MessageConsumer(
        KAFKA_BOOTSTRAP_SERVERS,
        group_id=KAFKA_CONSUMER_GROUP,
        dead_letter_producer=state.producer,
    )
    state.consumer.subscribe([STOCK_CHECK_RESPONSES, DELIVERY_STATUS])
    consumer_task = asyncio.create_task(
        state.consumer.process_messages(SalesMessageHandler(state.saga, state.stock_client))
    )
    logger.info("Consumer background task started")

    yield

    logger.info("Shutting down sales service...")
    state.consumer.stop()
    try:
        await consumer_task
    except KafkaException as e:
        logger.error(f"Consumer stopped with a fatal error: {e}")
    state.producer.close()
    logger.info("Shutdown complete")


app = FastAPI(title="Sales Service", lifespan=lifespan)
state = SalesState()


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 Bad Request."""
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


def _require_saga() -> OrderSaga:
    if state.saga is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return state.saga


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/ready")
async def readiness_check():
    """Check if the service is ready to handle requests."""
    kafka_ok = check_kafka_connection(KAFKA_BOOTSTRAP_SERVERS)
    return {"status": "ready" if kafka_ok else "not ready", "kafka": "connected" if kafka_ok else "disconnected"}


@app.post("/orders", status_code=201, response_model=OrderCreatedResponse)
async def create_order(request: CreateOrderRequest):
    """Create an order through the order saga.

    Returns:
        OrderCreatedResponse: Id, status and total of the new order

    Raises:
        HTTPException: 500 if the inventory check times out or cannot be sent
    """
    saga = _require_saga()
    logger.info(f"Received order | customer_id={request.customer_id} | items={len(request.items)}")
    try:
        order = await saga.create_order(request)
    except StockUnavailable as e:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Insufficient inventory",
                "unavailableItems": [
                    jsonable_encoder(item.model_dump(by_alias=True, exclude_none=True)) for item in e.unavailable_items
                ],
            },
        )
    except StockCheckTimeout as e:
        logger.error(f"Order creation failed | error={e}")
        raise HTTPException(status_code=500, detail=str(e))
    except PublishError as e:
        logger.error(f"Order creation failed | error={e}")
        raise HTTPException(status_code=500, detail="Failed to check inventory")

    return OrderCreatedResponse(
        order_id=order.id,
        status=order.status,
        total_amount=order.total_amount,
        currency=order.currency,
    )


@app.get("/orders", response_model=list[Order])
async def list_orders(customer_id: Optional[str] = None, status: Optional[OrderStatus] = None):
    """List orders, newest first.

    Args:
        customer_id: Filter by customer ID
        status: Filter by order status
    """
    return state.repository.list(customer_id=customer_id, status=status)


@app.get("/orders/{order_id}", response_model=Order)
async def get_order(order_id: str):
    """Get an order with its lines."""
    order = state.repository.get(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@app.patch("/orders/{order_id}/status", response_model=OrderStatusResponse)
async def update_order_status(order_id: str, request: UpdateOrderStatusRequest):
    """Change an order's status by hand.

    Raises:
        HTTPException: 404 for an unknown order, 400 for a disallowed change
    """
    saga = _require_saga()
    try:
        order = saga.update_status(order_id, request.status)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    return OrderStatusResponse(order_id=order.id, status=order.status, message="Order status updated")
