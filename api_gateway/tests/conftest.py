"""Test fixtures for the API gateway tests."""

import json
import uuid
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from api_gateway.idempotency import IdempotencyStore
from api_gateway.proxy import ServiceProxy
from api_gateway.server import app, state

ROUTES = {
    "orders": "http://sales",
    "check-availability": "http://inventory",
    "products": "http://inventory",
    "deliveries": "http://delivery",
}


@pytest.fixture
def fake_redis():
    """An AsyncMock standing in for redis.asyncio.Redis, backed by a dict.

    The dict is exposed as ``fake_redis.data``.
    """
    data = {}

    def get(key):
        return data.get(key)

    def set_(key, value, ex=None, nx=False):
        if nx and key in data:
            return None
        data[key] = value
        return True

    def delete(*keys):
        return sum(1 for key in keys if data.pop(key, None) is not None)

    def release(keys, args):
        if data.get(keys[0]) != args[0]:
            return 0
        del data[keys[0]]
        return 1

    redis = AsyncMock()
    redis.get.side_effect = get
    redis.set.side_effect = set_
    redis.delete.side_effect = delete
    redis.register_script = MagicMock(return_value=AsyncMock(side_effect=release))
    redis.ping.return_value = True
    redis.data = data
    return redis


class Upstream:
    """Records proxied requests and answers like the backing services."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.orders: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST" and request.url.path == "/orders":
            order = {"orderId": str(uuid.uuid4()), "status": "Pending Shipment", **json.loads(request.content)}
            self.orders.append(order)
            return httpx.Response(201, json=order, headers={"X-Upstream": request.url.host})
        if request.method == "POST" and request.url.path == "/check-availability":
            return httpx.Response(400, json={"error": "Invalid request"})
        return httpx.Response(200, json={"path": request.url.path, "host": request.url.host})


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def client(fake_redis, upstream, monkeypatch):
    """TestClient over the gateway with fake Redis and mocked upstreams."""
    proxy = ServiceProxy(httpx.AsyncClient(transport=httpx.MockTransport(upstream)), ROUTES)
    monkeypatch.setattr(state, "redis", fake_redis)
    monkeypatch.setattr(state, "idempotency_store", IdempotencyStore(fake_redis, ttl_seconds=86400, lock_seconds=30))
    monkeypatch.setattr(state, "proxy", proxy)
    return TestClient(app)
