"""
Fixtures for API integration tests.

The full application is built with create_app() around the in-memory
Elasticsearch client, so requests travel through the real middleware,
routers, services and exception handlers.
"""

import pytest
from fastapi.testclient import TestClient

from main import create_app


@pytest.fixture
def app(settings, store):
    return create_app(settings=settings, store=store)


@pytest.fixture
def client(app):
    # Unexpected errors are answered by the catch-all handler, not re-raised
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def query_client(settings, store):
    settings.query_endpoint_enabled = True
    return TestClient(create_app(settings=settings, store=store), raise_server_exceptions=False)
