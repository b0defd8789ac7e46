"""Idempotency-Key handling for mutating requests.

A key moves from unseen, to in flight while a short-lived Redis lock is
held, to completed once a 2xx response has been stored. Completed responses
are replayed verbatim for the lifetime of the record. Any Redis failure, or
an unreadable stored record, turns deduplication off for that request
instead of failing it.
"""

import base64
import json
import uuid
from collections.abc import Callable
from typing import Optional

import redis.asyncio as aioredis
from fastapi import Request
from fastapi.responses import JSONResponse
from logging_utils.config import setup_service_logger
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from .config import LOG_LEVEL, SERVICE_NAME

logger = setup_service_logger(SERVICE_NAME, log_level=LOG_LEVEL)

IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAY_HEADER = "X-Idempotent-Replay"
MAX_KEY_LENGTH = 255
IDEMPOTENT_METHODS = frozenset({"POST", "PUT", "PATCH"})
KEY_PREFIX = "idempotency:"

# Recomputed when the response is rebuilt.
_UNSTORED_HEADERS = frozenset({"content-length"})

# Compare-and-delete: only the owner token may free the lock.
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class CachedResponse(BaseModel):
    """A stored response: status, header pairs and base64 body."""

    status_code: int
    headers: list[tuple[str, str]]
    body: str

    @classmethod
    def capture(cls, status_code: int, headers: list[tuple[str, str]], body: bytes) -> "CachedResponse":
        kept = [(name, value) for name, value in headers if name.lower() not in _UNSTORED_HEADERS]
        return cls(status_code=status_code, headers=kept, body=base64.b64encode(body).decode("ascii"))

    def to_response(self) -> Response:
        """Rebuild the response, marked as a replay."""
        response = Response(content=base64.b64decode(self.body), status_code=self.status_code)
        for name, value in self.headers:
            response.headers.append(name, value)
        response.headers[REPLAY_HEADER] = "true"
        return response


class IdempotencyStoreError(Exception):
    """Raised when a stored record cannot be read back."""


class IdempotencyStore:
    """Redis-backed response cache and in-flight lock per idempotency key.

    The lock holds a random owner token, and is only deleted by the request
    that set it, so a request outliving its lock cannot free a lock taken
    by a later duplicate.
    """

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int = 86400, lock_seconds: int = 30) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self.lock_seconds = lock_seconds
        self._release_script = redis.register_script(RELEASE_LOCK_SCRIPT)

    @staticmethod
    def cache_key(key: str) -> str:
        return f"{KEY_PREFIX}{key}"

    @staticmethod
    def lock_key(key: str) -> str:
        return f"{KEY_PREFIX}{key}:lock"

    async def get(self, key: str) -> Optional[CachedResponse]:
        """Return the stored response for ``key``, if any.

        Raises:
            IdempotencyStoreError: If the stored record is unreadable.
        """
        raw = await self.redis.get(self.cache_key(key))
        if raw is None:
            return None
        try:
            return CachedResponse.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise IdempotencyStoreError(f"Corrupt idempotency record for {key}: {e}") from e

    async def save(self, key: str, response: CachedResponse) -> None:
        await self.redis.set(self.cache_key(key), response.model_dump_json(), ex=self.ttl_seconds)

    async def acquire_lock(self, key: str) -> Optional[str]:
        """Mark ``key`` in flight.

        Returns:
            str: The owner token, or None if another request holds the lock.
        """
        token = uuid.uuid4().hex
        if await self.redis.set(self.lock_key(key), token, nx=True, ex=self.lock_seconds):
            return token
        return None

    async def release_lock(self, key: str, token: str) -> bool:
        """Delete the lock only if ``token`` still owns it."""
        released = await self._release_script(keys=[self.lock_key(key)], args=[token])
        return bool(released)


def validate_key(raw: str) -> Optional[str]:
    """Return the trimmed key, or None if it is blank or too long."""
    key = raw.strip()
    if not key or len(key) > MAX_KEY_LENGTH:
        return None
    return key


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """Replays stored responses for repeated Idempotency-Key requests."""

    def __init__(self, app, get_store: Callable[[], Optional[IdempotencyStore]]) -> None:
        super().__init__(app)
        self.get_store = get_store

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        raw_key = request.headers.get(IDEMPOTENCY_HEADER)
        if request.method not in IDEMPOTENT_METHODS or raw_key is None:
            return await call_next(request)

        key = validate_key(raw_key)
        if key is None:
            return JSONResponse(
                status_code=400,
                content={"error": f"{IDEMPOTENCY_HEADER} must be 1-{MAX_KEY_LENGTH} non-blank characters"},
            )

        store = self.get_store()
        if store is None:
            logger.warning("Idempotency store not configured, passing request through")
            return await call_next(request)

        try:
            cached = await store.get(key)
            if cached is not None:
                logger.info(f"Replaying stored response | key={key} | status={cached.status_code}")
                return cached.to_response()
            token = await store.acquire_lock(key)
        except (RedisError, IdempotencyStoreError) as e:
            logger.warning(f"Idempotency store unavailable, passing request through | key={key} | error={e}")
            return await call_next(request)

        if token is None:
            logger.info(f"Request already in flight | key={key}")
            return JSONResponse(
                status_code=409,
                content={"error": "A request with this Idempotency-Key is already being processed"},
            )

        try:
            # A duplicate may have completed between the lookup and the lock.
            try:
                cached = await store.get(key)
            except (RedisError, IdempotencyStoreError) as e:
                logger.warning(f"Idempotency store unavailable, passing request through | key={key} | error={e}")
                return await call_next(request)
            if cached is not None:
                logger.info(f"Replaying response stored while acquiring lock | key={key} | status={cached.status_code}")
                return cached.to_response()

            response = await call_next(request)
            if not 200 <= response.status_code < 300:
                return response
            return await self._store_response(store, key, response)
        finally:
            try:
                if not await store.release_lock(key, token):
                    logger.warning(f"Idempotency lock expired before release | key={key}")
            except RedisError as e:
                logger.warning(f"Failed to release idempotency lock | key={key} | error={e}")

    async def _store_response(self, store: IdempotencyStore, key: str, response: Response) -> Response:
        body = b"".join([chunk async for chunk in response.body_iterator])
        cached = CachedResponse.capture(response.status_code, list(response.headers.items()), body)
        try:
            await store.save(key, cached)
            logger.info(f"Stored response | key={key} | status={response.status_code}")
        except RedisError as e:
            logger.warning(f"Failed to store idempotent response | key={key} | error={e}")

        rebuilt = Response(content=body, status_code=response.status_code)
        for name, value in cached.headers:
            rebuilt.headers.append(name, value)
        return rebuilt
