import pytest
from fastapi.testclient import TestClient

from fakes import (
    FakeBlobServiceClient,
    FakeQueueServiceClient,
    FakeShareServiceClient,
    FakeTableServiceClient,
)
from retail_api.app import create_app
from retail_api.config import StorageSettings
from retail_api.storage import StorageService

TEST_CONNECTION_STRING = (
    "DefaultEndpointsProtocol=https;AccountName=retailtest;"
    "AccountKey=dGVzdA==;EndpointSuffix=core.windows.net"
)


@pytest.fixture
def settings():
    return StorageSettings(connection_string=TEST_CONNECTION_STRING)


@pytest.fixture
def storage(settings):
    return StorageService(
        table_service=FakeTableServiceClient(),
        blob_service=FakeBlobServiceClient(),
        queue_service=FakeQueueServiceClient(),
        share_service=FakeShareServiceClient(),
        settings=settings,
    )


@pytest.fixture
async def ready_storage(storage):
    await storage.initialize()
    return storage


@pytest.fixture
def client(storage):
    app = create_app(storage=storage)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def customer(client):
    response = client.post(
        "/customers/",
        json={"username": "jdoe", "name": "Jane", "surname": "Doe", "email": "jane@example.com"},
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def widget(client):
    response = client.post(
        "/products/",
        data={
            "name": "Widget",
            "description": "A widget",
            "price": "9.99",
            "stock_available": "10",
        },
    )
    assert response.status_code == 201
    return response.json()
