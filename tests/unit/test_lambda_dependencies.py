"""Unit tests for the shared dependency factory."""

import os
from unittest.mock import MagicMock, Mock, patch

import pytest
from fastapi import FastAPI

import src.lambda_dependencies as deps
from restaurant_catalog_service.adapters.base_publisher import NoOpEventPublisher
from restaurant_catalog_service.adapters.eventbridge_publisher import EventBridgePublisher
from restaurant_catalog_service.repositories.memory_repositories import (
    InMemoryBasketStore,
    InMemoryCatalogStore,
)
from src.lambda_dependencies import (
    get_basket_store,
    get_catalog_service,
    get_catalog_store,
    get_dynamodb_resource,
    get_event_publisher,
    get_fastapi_app,
    get_restaurant_directory,
    initialize_lambda_environment,
    use_memory_backend,
)

MEMORY_ENV = {
    "STORE_BACKEND": "memory",
    "RESTAURANT_DIRECTORY_URL": "https://auth.example.com",
    "ENABLE_EVENT_PUBLISHING": "false",
}


def reset_caches() -> None:
    """Clear every cached dependency."""
    deps._dynamodb_resource = None
    deps._catalog_store = None
    deps._basket_store = None
    deps._restaurant_directory = None
    deps._event_publisher = None
    deps._catalog_service = None
    deps._basket_service = None
    deps._search_service = None
    deps._fastapi_app = None


@pytest.mark.unit
class TestGetDynamoDBResource:
    """Tests for get_dynamodb_resource function."""

    def teardown_method(self) -> None:
        reset_caches()

    @patch.dict(os.environ, {"DYNAMODB_ENDPOINT": "", "AWS_REGION": "us-west-2"}, clear=True)
    @patch("src.lambda_dependencies.boto3.resource")
    def test_creates_aws_resource_when_no_endpoint(self, mock_boto3_resource: Mock) -> None:
        """Test that AWS DynamoDB resource is created when no local endpoint configured."""
        mock_resource = MagicMock()
        mock_boto3_resource.return_value = mock_resource

        result = get_dynamodb_resource()

        mock_boto3_resource.assert_called_once_with("dynamodb", region_name="us-west-2")
        assert result == mock_resource

    @patch.dict(
        os.environ,
        {
            "DYNAMODB_ENDPOINT": "http://localhost:8000",
            "AWS_REGION": "eu-north-1",
            "AWS_ACCESS_KEY_ID": "local",
            "AWS_SECRET_ACCESS_KEY": "local-secret",
        },
        clear=True,
    )
    @patch("src.lambda_dependencies.boto3.resource")
    def test_creates_local_resource_when_endpoint_provided(self, mock_boto3_resource: Mock) -> None:
        """Test that local DynamoDB resource is created when endpoint configured."""
        get_dynamodb_resource()

        mock_boto3_resource.assert_called_once_with(
            "dynamodb",
            endpoint_url="http://localhost:8000",
            region_name="eu-north-1",
            aws_access_key_id="local",
            aws_secret_access_key="local-secret",
        )

    @patch.dict(os.environ, {}, clear=True)
    @patch("src.lambda_dependencies.boto3.resource")
    def test_caches_resource_for_reuse(self, mock_boto3_resource: Mock) -> None:
        """Test that the resource is created once and reused."""
        first = get_dynamodb_resource()
        second = get_dynamodb_resource()

        assert first is second
        mock_boto3_resource.assert_called_once_with("dynamodb", region_name="us-east-1")


@pytest.mark.unit
class TestStores:
    """Tests for store selection."""

    def teardown_method(self) -> None:
        reset_caches()

    @patch.dict(os.environ, {"STORE_BACKEND": "postgres"}, clear=True)
    def test_rejects_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unsupported STORE_BACKEND"):
            use_memory_backend()

    @patch.dict(os.environ, {"STORE_BACKEND": "Memory"}, clear=True)
    def test_memory_backend(self) -> None:
        assert isinstance(get_catalog_store(), InMemoryCatalogStore)
        assert isinstance(get_basket_store(), InMemoryBasketStore)
        assert get_catalog_store() is get_catalog_store()

    @patch("src.lambda_dependencies.get_dynamodb_resource")
    @patch("src.lambda_dependencies.DynamoDBCatalogStore")
    @patch.dict(
        os.environ,
        {
            "DYNAMODB_CATEGORIES_TABLE": "test-categories",
            "DYNAMODB_MENU_ITEMS_TABLE": "test-menu-items",
            "DYNAMODB_TITLE_GUARDS_TABLE": "test-guards",
        },
        clear=True,
    )
    def test_dynamodb_catalog_store(self, mock_store: Mock, mock_get_dynamodb: Mock) -> None:
        """Test that DynamoDB is the default backend and table names come from env."""
        mock_dynamodb = MagicMock()
        mock_get_dynamodb.return_value = mock_dynamodb

        result = get_catalog_store()

        mock_store.assert_called_once_with(
            dynamodb_resource=mock_dynamodb,
            categories_table_name="test-categories",
            menu_items_table_name="test-menu-items",
            title_guards_table_name="test-guards",
        )
        assert result == mock_store.return_value

    @patch("src.lambda_dependencies.get_dynamodb_resource")
    @patch("src.lambda_dependencies.DynamoDBBasketStore")
    @patch.dict(os.environ, {}, clear=True)
    def test_dynamodb_basket_store_defaults(self, mock_store: Mock, mock_get_dynamodb: Mock) -> None:
        get_basket_store()

        mock_store.assert_called_once_with(
            dynamodb_resource=mock_get_dynamodb.return_value,
            baskets_table_name="restaurant-baskets",
            basket_items_table_name="restaurant-basket-items",
        )


@pytest.mark.unit
class TestClients:
    """Tests for the directory client and event publisher."""

    def teardown_method(self) -> None:
        reset_caches()

    @patch.dict(os.environ, {}, clear=True)
    def test_directory_requires_url(self) -> None:
        with pytest.raises(ValueError, match="RESTAURANT_DIRECTORY_URL must be set"):
            get_restaurant_directory()

    @patch.dict(
        os.environ,
        {
            "RESTAURANT_DIRECTORY_URL": "https://auth.example.com",
            "RESTAURANT_DIRECTORY_API_KEY": "secret",
        },
        clear=True,
    )
    def test_directory_client(self) -> None:
        client = get_restaurant_directory()

        assert client.base_url == "https://auth.example.com"
        assert client.api_key == "secret"

    @patch.dict(os.environ, {"ENABLE_EVENT_PUBLISHING": "false"}, clear=True)
    def test_publishing_disabled(self) -> None:
        assert isinstance(get_event_publisher(), NoOpEventPublisher)

    @patch("src.lambda_dependencies.boto3.client")
    @patch.dict(os.environ, {"EVENT_BUS_NAME": "catalog-bus", "AWS_REGION": "eu-west-1"}, clear=True)
    def test_eventbridge_publisher(self, mock_boto3_client: Mock) -> None:
        publisher = get_event_publisher()

        assert isinstance(publisher, EventBridgePublisher)
        assert publisher.event_bus_name == "catalog-bus"
        assert publisher.events_client == mock_boto3_client.return_value
        mock_boto3_client.assert_called_once_with("events", region_name="eu-west-1")


@pytest.mark.unit
class TestServices:
    """Tests for service and application wiring."""

    def teardown_method(self) -> None:
        reset_caches()

    @patch.dict(os.environ, MEMORY_ENV, clear=True)
    def test_catalog_service_defaults(self) -> None:
        service = get_catalog_service()

        assert service.ordering_engine.enforce_bounds is False
        assert service.renumber_on_delete is False
        assert service.ordering_engine.store is service.catalog_store

    @patch.dict(
        os.environ,
        {**MEMORY_ENV, "ENFORCE_SORT_ORDER_BOUNDS": "true", "RENUMBER_ON_DELETE": "TRUE"},
        clear=True,
    )
    def test_catalog_service_flags(self) -> None:
        service = get_catalog_service()

        assert service.ordering_engine.enforce_bounds is True
        assert service.renumber_on_delete is True

    @patch.dict(os.environ, MEMORY_ENV, clear=True)
    def test_fastapi_app_is_cached(self) -> None:
        app = get_fastapi_app()

        assert isinstance(app, FastAPI)
        assert get_fastapi_app() is app
        assert app.state.search_service.catalog_service is app.state.catalog_service


@pytest.mark.unit
class TestInitializeLambdaEnvironment:
    """Tests for initialize_lambda_environment function."""

    @patch("src.lambda_dependencies.configure_logging")
    @patch.dict(os.environ, {"LOG_LEVEL": "DEBUG"}, clear=True)
    def test_configures_logging_with_env_level(self, mock_configure_logging: Mock) -> None:
        """Test that logging is configured with LOG_LEVEL from environment."""
        initialize_lambda_environment()

        mock_configure_logging.assert_called_once_with("DEBUG")

    @patch("src.lambda_dependencies.configure_logging")
    @patch.dict(os.environ, {}, clear=True)
    def test_uses_default_log_level_when_not_set(self, mock_configure_logging: Mock) -> None:
        """Test that default INFO level is used when LOG_LEVEL not set."""
        initialize_lambda_environment()

        mock_configure_logging.assert_called_once_with("INFO")
