"""FastAPI server implementation for the Delivery Service."""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from confluent_kafka import KafkaException
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from kafka_utils.admin import check_kafka_connection, ensure_topics
from kafka_utils.consumer import MessageConsumer
from kafka_utils.producer import MessageProducer
from kafka_utils.schemas import DeliveryStatus
from kafka_utils.topics import ALL_TOPICS, ORDER_FULFILLMENT
from logging_utils.config import setup_service_logger

from .config import KAFKA_BOOTSTRAP_SERVERS, KAFKA_CONSUMER_GROUP, LOG_LEVEL, SERVICE_NAME
from .consumer import FulfillmentMessageHandler
from .schemas import Delivery, UpdateDeliveryStatusRequest
from .service import DeliveryNotFound, DeliveryService, InvalidStatusTransition

logger = setup_service_logger(SERVICE_NAME, log_level=LOG_LEVEL)


class DeliveryState:
    """Class to manage delivery service state."""

    def __init__(self) -> None:
        self.service = DeliveryService()
        self.producer: Optional[MessageProducer] = None
        self.consumer: Optional[MessageConsumer] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the broker clients and start consuming fulfillment messages."""
    try:
        ensure_topics(KAFKA_BOOTSTRAP_SERVERS, ALL_TOPICS)
    except KafkaException as e:
        logger.warning(f"Could not ensure topics, relying on broker auto-creation: {e}")

    state.producer = MessageProducer(KAFKA_BOOTSTRAP_SERVERS, client_id=SERVICE_NAME)
    state.service.producer = state.producer
    state.consumer = MessageConsumer(
        KAFKA_BOOTSTRAP_SERVERS,
        group_id=KAFKA_CONSUMER_GROUP,
        dead_letter_producer=state.producer,
    )
    state.consumer.subscribe([ORDER_FULFILLMENT])
    consumer_task = asyncio.create_task(state.consumer.process_messages(FulfillmentMessageHandler(state.service)))
    logger.info("Consumer background task started")

    yield

    logger.info("Shutting down delivery service...")
    state.consumer.stop()
    try:
        await consumer_task
    except KafkaException as e:
        logger.error(f"Consumer stopped with a fatal error: {e}")
    state.producer.close()
    logger.info("Shutdown complete")


app = FastAPI(title="Delivery Service", lifespan=lifespan)
state = DeliveryState()


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 Bad Request."""
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/ready")
async def readiness_check():
    """Check if the service is ready to handle requests."""
    kafka_ok = check_kafka_connection(KAFKA_BOOTSTRAP_SERVERS)
    return {"status": "ready" if kafka_ok else "not ready", "kafka": "connected" if kafka_ok else "disconnected"}


@app.get("/deliveries", response_model=list[Delivery])
async def list_deliveries(status: Optional[DeliveryStatus] = None, order_id: Optional[str] = None):
    """List deliveries with optional filters.

    Args:
        status: Filter by delivery status
        order_id: Filter by order ID
    """
    return state.service.list(status=status, order_id=order_id)


@app.get("/deliveries/{delivery_id}", response_model=Delivery)
async def get_delivery(delivery_id: str):
    """Get a delivery by ID."""
    delivery = state.service.get(delivery_id)
    if not delivery:
        raise HTTPException(status_code=404, detail="Delivery not found")
    return delivery


@app.patch("/deliveries/{delivery_id}/status", response_model=Delivery)
async def update_delivery_status(delivery_id: str, request: UpdateDeliveryStatusRequest):
    """Move a delivery to a new status.

    Raises:
        HTTPException: 404 for an unknown delivery, 400 for a disallowed change
    """
    try:
        return state.service.update_status(delivery_id, request.status)
    except DeliveryNotFound:
        raise HTTPException(status_code=404, detail="Delivery not found")
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
