"""
HTTP Utilities

One instrumented httpx client shared by the gateway, GitHub and audit clients.
Every request is counted and timed per service; URLs are logged with any
credential stripped.
"""

import logging
import time
from typing import Optional

import httpx

from gitdeploy.core.metrics import (
    external_api_duration_seconds,
    external_api_errors_total,
    external_api_requests_total,
)
from gitdeploy.core.security import redact_url

logger = logging.getLogger(__name__)


class HTTPRequestError(Exception):
    """A request that could not be sent or was answered with an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def is_success(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


class InstrumentedAsyncClient:
    """
    httpx.AsyncClient with per-service request metrics.

    Extra keyword arguments (``transport`` in tests) go straight to httpx.

    Usage:
        async with InstrumentedAsyncClient("Gateway", timeout=30.0) as client:
            response = await client.post(url, content=body)
    """

    def __init__(self, service_name: str, timeout: float = 30.0, **kwargs):
        self.service_name = service_name
        self._timeout = timeout
        self._kwargs = kwargs
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "InstrumentedAsyncClient":
        self._client = httpx.AsyncClient(timeout=self._timeout, **self._kwargs)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._client is None:
            raise RuntimeError(f"{self.service_name} client used outside 'async with'")

        external_api_requests_total.labels(service=self.service_name).inc()
        start_time = time.time()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            external_api_errors_total.labels(service=self.service_name).inc()
            logger.warning(f"{self.service_name}: {method} {redact_url(url)} failed: {e}")
            raise

        external_api_duration_seconds.labels(service=self.service_name).observe(time.time() - start_time)
        if response.status_code >= 400:
            external_api_errors_total.labels(service=self.service_name).inc()
        logger.debug(f"{self.service_name}: {method} {redact_url(url)} -> {response.status_code}")
        return response
