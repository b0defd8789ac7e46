"""FastAPI server implementation for the Inventory Service."""

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
from kafka_utils.topics import ALL_TOPICS, STOCK_CHECK_REQUESTS, STOCK_RELEASES, STOCK_RESERVATIONS
from logging_utils.config import setup_service_logger

from .config import KAFKA_BOOTSTRAP_SERVERS, KAFKA_CONSUMER_GROUP, LOG_LEVEL, SEED_PRODUCTS, SERVICE_NAME
from .consumer import InventoryMessageHandler
from .ledger import StockLedger
from .schemas import AvailabilityReport, CheckAvailabilityRequest, Movement, Product
from .seed import seed_ledger

logger = setup_service_logger(SERVICE_NAME, log_level=LOG_LEVEL)


class InventoryState:
    """Class to manage inventory service state."""

    def __init__(self) -> None:
        self.ledger = StockLedger()
        self.producer: Optional[MessageProducer] = None
        self.consumer: Optional[MessageConsumer] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Seed the ledger, open the broker clients and start consuming."""
    if SEED_PRODUCTS:
        added = seed_ledger(state.ledger)
        logger.info(f"Seeded {added} sample products")

    try:
        ensure_topics(KAFKA_BOOTSTRAP_SERVERS, ALL_TOPICS)
    except KafkaException as e:
        logger.warning(f"Could not ensure topics, relying on broker auto-creation: {e}")

    state.producer = MessageProducer(KAFKA_BOOTSTRAP_SERVERS, client_id=SERVICE_NAME)
    state.consumer = MessageConsumer(
        KAFKA_BOOTSTRAP_SERVERS,
        group_id=KAFKA_CONSUMER_GROUP,
        dead_letter_producer=state.producer,
    )
    state.consumer.subscribe([STOCK_CHECK_REQUESTS, STOCK_RESERVATIONS, STOCK_RELEASES])
    consumer_task = asyncio.create_task(
        state.consumer.process_messages(InventoryMessageHandler(state.ledger, state.producer))
    )
    logger.info("Consumer background task started")

    yield

    logger.info("Shutting down inventory service...")
    state.consumer.stop()
    try:
        await consumer_task
    except KafkaException as e:
        logger.error(f"Consumer stopped with a fatal error: {e}")
    state.producer.close()
    logger.info("Shutdown complete")


app = FastAPI(title="Inventory Service", lifespan=lifespan)
state = InventoryState()


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


@app.post("/check-availability", response_model=AvailabilityReport, response_model_exclude_none=True)
async def check_availability(request: CheckAvailabilityRequest):
    """Check stock availability for a batch of items.

    Args:
        request: Items with the quantities wanted

    Returns:
        AvailabilityReport: Overall verdict, per-item results and the unavailable subset
    """
    logger.info(f"Checking availability for {len(request.items)} items")
    results = state.ledger.check_availability(request.items)
    unavailable = [result for result in results if not result.available]
    logger.info(f"Availability check completed | all_available={not unavailable}")
    return AvailabilityReport(available=not unavailable, items=results, unavailable_items=unavailable or None)


@app.get("/products", response_model=list[Product])
async def list_products():
    """List all products with their current stock."""
    return state.ledger.list_products()


@app.get("/products/{product_id}", response_model=Product)
async def get_product(product_id: str):
    """Get a single product.

    Raises:
        HTTPException: If the product is not found
    """
    product = state.ledger.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.get("/products/{product_id}/movements", response_model=list[Movement])
async def get_product_movements(product_id: str):
    """Get the stock movement trail of a product in creation order."""
    if not state.ledger.get_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    return state.ledger.movements(product_id)
