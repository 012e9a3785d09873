"""Pytest configuration for the warehouse gateway test suite."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import SecretStr

from tests._helpers.app import TEST_API_KEY, build_test_app
from tests._helpers.fakes import FakeWarehouse, sample_warehouse
from warehouse_gateway.config.serving_models import GatewayConfig


@pytest.fixture
def gateway_config() -> GatewayConfig:
    """
    Build a configuration with a known API key and rate limiting disabled.

    Returns
    -------
    GatewayConfig
        Configuration for the test app.
    """
    return GatewayConfig(
        project_id="test-project",
        api_key=SecretStr(TEST_API_KEY),
        rate_limit_max=0,
    )


@pytest.fixture
def warehouse() -> FakeWarehouse:
    """
    Provide a recording warehouse seeded with a small catalog.

    Returns
    -------
    FakeWarehouse
        Fake warehouse shared by the app and the test.
    """
    return sample_warehouse()


@pytest.fixture
def app(gateway_config: GatewayConfig, warehouse: FakeWarehouse) -> FastAPI:
    """
    Construct a FastAPI app using injected configuration and warehouse.

    Returns
    -------
    FastAPI
        Application instance under test.
    """
    return build_test_app(gateway_config, warehouse)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """
    Yield a TestClient that runs startup/shutdown events.

    Yields
    ------
    TestClient
        HTTP client for exercising the API.
    """
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """
    Return headers carrying the configured API key.

    Returns
    -------
    dict[str, str]
        Authorization header with the raw key.
    """
    return {"Authorization": TEST_API_KEY}
