"""
Global pytest configuration and fixtures for stressbench tests.

This module provides:
- An in-process stub backend (FastAPI over ``httpx.ASGITransport``)
- Request executor, result store and registry fixtures
- Request spec factories
"""

from __future__ import annotations

from typing import Any, AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio

from stressbench.core.request_executor import RequestExecutor
from stressbench.core.results_store import ResultStore
from stressbench.core.test_registry import StressTestRegistry
from stressbench.models import AuthContext, RequestSpec
from stub_service import create_stub_app

BASE_URL = "http://stub.test"


# =============================================================================
# Stub Backend Fixtures
# =============================================================================


@pytest.fixture
def stub_app():
    """Fresh stub backend per test (records every request it receives)."""
    return create_stub_app()


@pytest_asyncio.fixture
async def http_client(stub_app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client routed to the stub backend in-process."""
    transport = httpx.ASGITransport(app=stub_app)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def auth() -> AuthContext:
    return AuthContext(bearer_token="jwt-123", anti_forgery_token="xsrf-456")


@pytest.fixture
def executor(http_client: httpx.AsyncClient) -> RequestExecutor:
    return RequestExecutor(http_client)


@pytest.fixture
def store() -> ResultStore:
    return ResultStore()


@pytest_asyncio.fixture
async def registry(
    store: ResultStore, http_client: httpx.AsyncClient, auth: AuthContext
) -> AsyncGenerator[StressTestRegistry, None]:
    reg = StressTestRegistry(store, client=http_client, auth=auth)
    yield reg
    await reg.shutdown(timeout_seconds=2.0)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_spec() -> Callable[..., RequestSpec]:
    """Factory for request specs with sensible defaults."""

    def _make(
        name: str = "ok",
        path: str = "/ok",
        method: str = "GET",
        **kwargs: Any,
    ) -> RequestSpec:
        return RequestSpec(name=name, path=path, method=method, **kwargs)

    return _make


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )
