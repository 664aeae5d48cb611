"""Shared dependency factory for the HTTP server and the Lambda handler.

Dependencies are created once and reused across invocations within the same
Lambda container (or for the lifetime of the local server).
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from restaurant_catalog_service.adapters.base_publisher import EventPublisher, NoOpEventPublisher
from restaurant_catalog_service.adapters.eventbridge_publisher import EventBridgePublisher
from restaurant_catalog_service.handlers.api_handler import create_app
from restaurant_catalog_service.observability import configure_logging
from restaurant_catalog_service.repositories.base_repository import BasketStore, CatalogStore
from restaurant_catalog_service.repositories.dynamodb_repositories import (
    DynamoDBBasketStore,
    DynamoDBCatalogStore,
)
from restaurant_catalog_service.repositories.memory_repositories import (
    InMemoryBasketStore,
    InMemoryCatalogStore,
)
from restaurant_catalog_service.services.basket_service import BasketService
from restaurant_catalog_service.services.catalog_service import CatalogService
from restaurant_catalog_service.services.ordering_engine import OrderingEngine
from restaurant_catalog_service.services.restaurant_directory_client import (
    RestaurantDirectoryClient,
)
from restaurant_catalog_service.services.search_service import SearchService

logger = logging.getLogger(__name__)

# Module-level caches for Lambda container reuse
_dynamodb_resource: Any | None = None
_catalog_store: CatalogStore | None = None
_basket_store: BasketStore | None = None
_restaurant_directory: RestaurantDirectoryClient | None = None
_event_publisher: EventPublisher | None = None
_catalog_service: CatalogService | None = None
_basket_service: BasketService | None = None
_search_service: SearchService | None = None
_fastapi_app: FastAPI | None = None


def env_flag(name: str, default: str = "false") -> bool:
    """Read a boolean environment variable ("true" / "false")."""
    return os.getenv(name, default).strip().lower() == "true"


def get_dynamodb_resource() -> Any:
    """Create or retrieve cached DynamoDB resource.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    global _dynamodb_resource

    if _dynamodb_resource is not None:
        return _dynamodb_resource

    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        # Local DynamoDB - use environment variables
        access_key = os.getenv("AWS_ACCESS_KEY_ID")
        secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        _dynamodb_resource = boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        _dynamodb_resource = boto3.resource("dynamodb", region_name=region)

    return _dynamodb_resource


def use_memory_backend() -> bool:
    backend = os.getenv("STORE_BACKEND", "dynamodb").lower()
    if backend not in ("dynamodb", "memory"):
        raise ValueError(f"Unsupported STORE_BACKEND '{backend}', expected 'dynamodb' or 'memory'")
    return backend == "memory"


def get_catalog_store() -> CatalogStore:
    """Create or retrieve cached catalog store.

    Returns:
        CatalogStore backed by DynamoDB, or in memory when STORE_BACKEND=memory
    """
    global _catalog_store

    if _catalog_store is not None:
        return _catalog_store

    if use_memory_backend():
        logger.warning("Using in-memory catalog store, data will not persist")
        _catalog_store = InMemoryCatalogStore()
        return _catalog_store

    categories_table = os.getenv("DYNAMODB_CATEGORIES_TABLE", "restaurant-categories")
    menu_items_table = os.getenv("DYNAMODB_MENU_ITEMS_TABLE", "restaurant-menu-items")
    title_guards_table = os.getenv("DYNAMODB_TITLE_GUARDS_TABLE", "restaurant-title-guards")

    _catalog_store = DynamoDBCatalogStore(
        dynamodb_resource=get_dynamodb_resource(),
        categories_table_name=categories_table,
        menu_items_table_name=menu_items_table,
        title_guards_table_name=title_guards_table,
    )

    logger.info(
        f"Catalog store configured - categories: {categories_table}, "
        f"menu items: {menu_items_table}, title guards: {title_guards_table}"
    )
    return _catalog_store


def get_basket_store() -> BasketStore:
    """Create or retrieve cached basket store.

    Returns:
        BasketStore backed by DynamoDB, or in memory when STORE_BACKEND=memory
    """
    global _basket_store

    if _basket_store is not None:
        return _basket_store

    if use_memory_backend():
        logger.warning("Using in-memory basket store, data will not persist")
        _basket_store = InMemoryBasketStore()
        return _basket_store

    baskets_table = os.getenv("DYNAMODB_BASKETS_TABLE", "restaurant-baskets")
    basket_items_table = os.getenv("DYNAMODB_BASKET_ITEMS_TABLE", "restaurant-basket-items")

    _basket_store = DynamoDBBasketStore(
        dynamodb_resource=get_dynamodb_resource(),
        baskets_table_name=baskets_table,
        basket_items_table_name=basket_items_table,
    )

    logger.info(f"Basket store configured - baskets: {baskets_table}, items: {basket_items_table}")
    return _basket_store


def get_restaurant_directory() -> RestaurantDirectoryClient:
    """Create or retrieve cached restaurant directory client.

    Raises:
        ValueError: If RESTAURANT_DIRECTORY_URL is not set
    """
    global _restaurant_directory

    if _restaurant_directory is not None:
        return _restaurant_directory

    directory_url = os.getenv("RESTAURANT_DIRECTORY_URL")
    if not directory_url:
        raise ValueError("RESTAURANT_DIRECTORY_URL must be set in environment")

    _restaurant_directory = RestaurantDirectoryClient(
        base_url=directory_url,
        api_key=os.getenv("RESTAURANT_DIRECTORY_API_KEY", ""),
    )

    logger.info(f"Restaurant directory client configured - URL: {directory_url}")
    return _restaurant_directory


def get_event_publisher() -> EventPublisher:
    """Create or retrieve cached event publisher.

    Returns:
        EventBridge publisher, or a no-op publisher when ENABLE_EVENT_PUBLISHING=false
    """
    global _event_publisher

    if _event_publisher is not None:
        return _event_publisher

    if not env_flag("ENABLE_EVENT_PUBLISHING", "true"):
        logger.warning("Event publishing disabled, category events will be dropped")
        _event_publisher = NoOpEventPublisher()
        return _event_publisher

    event_bus_name = os.getenv("EVENT_BUS_NAME", "default")
    events_client = boto3.client("events", region_name=os.getenv("AWS_REGION", "us-east-1"))
    _event_publisher = EventBridgePublisher(events_client=events_client, event_bus_name=event_bus_name)

    logger.info(f"EventBridge publisher configured - bus: {event_bus_name}")
    return _event_publisher


def get_catalog_service() -> CatalogService:
    """Create or retrieve cached catalog service.

    Returns:
        Configured CatalogService instance
    """
    global _catalog_service

    if _catalog_service is not None:
        return _catalog_service

    catalog_store = get_catalog_store()
    ordering_engine = OrderingEngine(
        catalog_store, enforce_bounds=env_flag("ENFORCE_SORT_ORDER_BOUNDS")
    )

    _catalog_service = CatalogService(
        catalog_store=catalog_store,
        ordering_engine=ordering_engine,
        event_publisher=get_event_publisher(),
        renumber_on_delete=env_flag("RENUMBER_ON_DELETE"),
    )

    logger.info("Catalog service initialized")
    return _catalog_service


def get_basket_service() -> BasketService:
    """Create or retrieve cached basket service.

    Returns:
        Configured BasketService instance
    """
    global _basket_service

    if _basket_service is not None:
        return _basket_service

    _basket_service = BasketService(
        basket_store=get_basket_store(),
        restaurant_directory=get_restaurant_directory(),
    )

    logger.info("Basket service initialized")
    return _basket_service


def get_search_service() -> SearchService:
    """Create or retrieve cached search service."""
    global _search_service

    if _search_service is not None:
        return _search_service

    _search_service = SearchService(
        catalog_service=get_catalog_service(),
        restaurant_directory=get_restaurant_directory(),
    )

    logger.info("Search service initialized")
    return _search_service


def get_fastapi_app() -> FastAPI:
    """Create or retrieve cached FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    _fastapi_app = create_app(
        catalog_service=get_catalog_service(),
        basket_service=get_basket_service(),
        search_service=get_search_service(),
    )

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with logging.

    Should be called once during Lambda cold start.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Lambda environment initialized")
