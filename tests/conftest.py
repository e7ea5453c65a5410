"""Shared fixtures: engine settings and mock HTTP clients.

No test touches the network: every HTTP exchange goes through an
``httpx.MockTransport`` whose handler plays the part of the remote sites.
"""

import asyncio

import httpx
import pytest

from page_analyzer.config import EngineSettings


@pytest.fixture
def make_settings():
    def _make(**overrides) -> EngineSettings:
        values = {
            "block_private_addresses": False,
            "fetch_timeout": 2.0,
            "probe_timeout": 1.0,
            "validation_deadline": 5.0,
        }
        values.update(overrides)
        return EngineSettings(**values)

    return _make


@pytest.fixture
def settings(make_settings) -> EngineSettings:
    return make_settings()


@pytest.fixture
def mock_client():
    """Return a factory building an AsyncClient that answers through *handler*."""

    def _make(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


class BoundedPoolTransport(httpx.AsyncBaseTransport):
    """Mock transport with a fixed number of connections.

    Like httpcore's pool, a request waits for a free connection for at most
    the ``pool`` timeout it carries and raises :class:`httpx.PoolTimeout` after.
    """

    def __init__(self, handler, size: int) -> None:
        self._handler = handler
        self._size = size
        self._slots = None

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self._slots is None:
            self._slots = asyncio.Semaphore(self._size)
        pool_timeout = request.extensions.get("timeout", {}).get("pool")
        try:
            await asyncio.wait_for(self._slots.acquire(), pool_timeout)
        except asyncio.TimeoutError as exc:
            raise httpx.PoolTimeout("no free connection", request=request) from exc
        try:
            return await self._handler(request)
        finally:
            self._slots.release()


@pytest.fixture
def pooled_client():
    """Return a factory building an AsyncClient limited to *size* connections."""

    def _make(handler, size: int) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=BoundedPoolTransport(handler, size))

    return _make
