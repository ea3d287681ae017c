import pytest
from fastapi.testclient import TestClient

from retail_api.app import create_app
from retail_api.config import load_settings
from retail_api.exceptions import ConfigurationError
from retail_api.storage import StorageService


def test_missing_connection_string_is_fatal():
    with pytest.raises(ConfigurationError, match="AZURE_STORAGE_CONNECTION_STRING"):
        load_settings({})


def test_blank_connection_string_is_fatal():
    with pytest.raises(ConfigurationError):
        load_settings({"AZURE_STORAGE_CONNECTION_STRING": "   "})


def test_defaults():
    settings = load_settings({"AZURE_STORAGE_CONNECTION_STRING": "UseDevelopmentStorage=true"})

    assert settings.connection_string == "UseDevelopmentStorage=true"
    assert settings.product_images_container == "product-images"
    assert settings.payment_proofs_container == "payment-proofs"
    assert settings.queue_names == ("order-notifications", "stock-updates")
    assert settings.contracts_share == "contracts"
    assert settings.payments_directory == "payments"


def test_overrides():
    settings = load_settings(
        {
            "AZURE_STORAGE_CONNECTION_STRING": "UseDevelopmentStorage=true",
            "ORDER_NOTIFICATIONS_QUEUE": "orders-dev",
            "CONTRACTS_SHARE": "contracts-dev",
        }
    )

    assert settings.order_notifications_queue == "orders-dev"
    assert settings.contracts_share == "contracts-dev"
    assert settings.stock_updates_queue == "stock-updates"


def test_from_settings_builds_clients_without_io(settings):
    storage = StorageService.from_settings(settings)

    assert not storage.is_ready
    assert storage.settings is settings


def test_app_refuses_to_start_without_connection_string(monkeypatch):
    monkeypatch.delenv("AZURE_STORAGE_CONNECTION_STRING", raising=False)

    with pytest.raises(ConfigurationError):
        with TestClient(create_app()):
            pass
