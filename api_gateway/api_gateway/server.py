"""FastAPI server implementation for the API Gateway."""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from logging_utils.config import setup_service_logger
from redis.exceptions import RedisError

from .config import (
    DELIVERY_SERVICE_URL,
    IDEMPOTENCY_LOCK_SECONDS,
    IDEMPOTENCY_TTL_SECONDS,
    INVENTORY_SERVICE_URL,
    LOG_LEVEL,
    REDIS_URL,
    SALES_SERVICE_URL,
    SERVICE_NAME,
    UPSTREAM_TIMEOUT_SECONDS,
)
from .idempotency import IdempotencyMiddleware, IdempotencyStore
from .proxy import ServiceProxy

logger = setup_service_logger(SERVICE_NAME, log_level=LOG_LEVEL)

ROUTES = {
    "orders": SALES_SERVICE_URL,
    "check-availability": INVENTORY_SERVICE_URL,
    "products": INVENTORY_SERVICE_URL,
    "deliveries": DELIVERY_SERVICE_URL,
}

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


class GatewayState:
    """Class to manage gateway state."""

    def __init__(self) -> None:
        self.redis: Optional[aioredis.Redis] = None
        self.idempotency_store: Optional[IdempotencyStore] = None
        self.proxy: Optional[ServiceProxy] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the Redis pool and the upstream HTTP client."""
    state.redis = aioredis.from_url(REDIS_URL, decode_responses=True)
    state.idempotency_store = IdempotencyStore(
        state.redis, ttl_seconds=IDEMPOTENCY_TTL_SECONDS, lock_seconds=IDEMPOTENCY_LOCK_SECONDS
    )
    client = httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_SECONDS)
    state.proxy = ServiceProxy(client, ROUTES)
    logger.info(f"Gateway started | routes={ROUTES}")

    yield

    logger.info("Shutting down gateway...")
    await client.aclose()
    await state.redis.aclose()
    logger.info("Shutdown complete")


app = FastAPI(title="API Gateway", lifespan=lifespan)
state = GatewayState()
app.add_middleware(IdempotencyMiddleware, get_store=lambda: state.idempotency_store)


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/ready")
async def readiness_check():
    """Check if the idempotency store is reachable."""
    try:
        redis_ok = state.redis is not None and bool(await state.redis.ping())
    except RedisError as e:
        logger.error(f"Readiness check failed: {e}")
        redis_ok = False
    return {"status": "ready" if redis_ok else "not ready", "redis": "connected" if redis_ok else "disconnected"}


@app.api_route("/{resource}", methods=PROXY_METHODS)
@app.api_route("/{resource}/{path:path}", methods=PROXY_METHODS)
async def proxy(request: Request):
    """Forward a request to the service that owns its path."""
    return await state.proxy.forward(request)
