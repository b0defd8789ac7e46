"""Forwarding of gateway requests to the backing services."""

from typing import Optional

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse
from logging_utils.config import setup_service_logger
from starlette.responses import Response

from .config import LOG_LEVEL, SERVICE_NAME

logger = setup_service_logger(SERVICE_NAME, log_level=LOG_LEVEL)

_HOP_BY_HOP = frozenset(
    {"connection", "keep-alive", "transfer-encoding", "upgrade", "te", "trailer", "proxy-authorization"}
)
_SKIP_REQUEST_HEADERS = _HOP_BY_HOP | {"host", "content-length"}
_SKIP_RESPONSE_HEADERS = _HOP_BY_HOP | {"content-length", "content-encoding"}


class ServiceProxy:
    """Routes a request to the service owning its first path segment."""

    def __init__(self, client: httpx.AsyncClient, routes: dict[str, str]) -> None:
        self.client = client
        self.routes = routes

    def upstream_for(self, path: str) -> Optional[str]:
        resource = path.lstrip("/").split("/", 1)[0]
        return self.routes.get(resource)

    async def forward(self, request: Request) -> Response:
        """Send the request upstream and relay the reply.

        Returns 404 for paths no service owns and 502 when the upstream
        cannot be reached.
        """
        upstream = self.upstream_for(request.url.path)
        if upstream is None:
            return JSONResponse(status_code=404, content={"error": "Not found"})

        url = f"{upstream.rstrip('/')}{request.url.path}"
        headers = [(k, v) for k, v in request.headers.items() if k.lower() not in _SKIP_REQUEST_HEADERS]
        try:
            upstream_response = await self.client.request(
                request.method,
                url,
                params=list(request.query_params.multi_items()),
                headers=headers,
                content=await request.body(),
            )
        except httpx.HTTPError as e:
            logger.error(f"Upstream request failed | method={request.method} | url={url} | error={e}")
            return JSONResponse(status_code=502, content={"error": "Upstream service unavailable"})

        logger.debug(f"Proxied request | method={request.method} | url={url} | status={upstream_response.status_code}")
        response = Response(content=upstream_response.content, status_code=upstream_response.status_code)
        for name, value in upstream_response.headers.multi_items():
            if name.lower() not in _SKIP_RESPONSE_HEADERS:
                response.headers.append(name, value)
        return response
