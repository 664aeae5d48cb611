"""Shared pytest fixtures and configuration for all tests."""

import os
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

# Entry point modules skip building the real app when imported in test mode
os.environ.setdefault("ENVIRONMENT", "test")

from restaurant_catalog_service.models.basket_models import Basket, BasketItem  # noqa: E402
from restaurant_catalog_service.models.catalog_models import Category, MenuItem  # noqa: E402
from restaurant_catalog_service.repositories.memory_repositories import (  # noqa: E402
    InMemoryBasketStore,
    InMemoryCatalogStore,
)
from restaurant_catalog_service.services.restaurant_directory_client import (  # noqa: E402
    RestaurantDirectoryClient,
)


@pytest.fixture
def mock_restaurant_id() -> str:
    """Fixture providing a standard test restaurant ID."""
    return "rest_123456"


@pytest.fixture
def mock_customer_id() -> str:
    """Fixture providing a standard test customer ID."""
    return "cust_123456"


@pytest.fixture
def sample_category(mock_restaurant_id: str) -> Category:
    """Fixture providing a category at position 0."""
    return Category(
        id="cat_1",
        restaurant_id=mock_restaurant_id,
        title="Pizza",
        description="Stone baked",
        sort_order=0,
    )


@pytest.fixture
def sample_menu_item(sample_category: Category) -> MenuItem:
    """Fixture providing a menu item in sample_category."""
    return MenuItem(
        id="menu_1",
        category_id=sample_category.id,
        title="Margherita",
        description="Tomato and mozzarella",
        price=Decimal("10"),
        sort_order=0,
    )


@pytest.fixture
def sample_basket(mock_customer_id: str, mock_restaurant_id: str) -> Basket:
    """Fixture providing a basket with one item."""
    return Basket(
        id="basket_1",
        customer_id=mock_customer_id,
        restaurant_id=mock_restaurant_id,
        items=[
            BasketItem(
                id="item_1",
                basket_id="basket_1",
                menu_item_id="menu_1",
                title="Margherita",
                quantity=2,
                price=Decimal("10"),
            )
        ],
    )


@pytest.fixture
def catalog_store() -> InMemoryCatalogStore:
    """Fixture providing an empty in-memory catalog store."""
    return InMemoryCatalogStore()


@pytest.fixture
def basket_store() -> InMemoryBasketStore:
    """Fixture providing an empty in-memory basket store."""
    return InMemoryBasketStore()


@pytest.fixture
def mock_directory() -> MagicMock:
    """Fixture providing a restaurant directory that knows every restaurant."""
    directory = MagicMock(spec=RestaurantDirectoryClient)
    directory.exists = AsyncMock(return_value=True)
    directory.get_restaurant = AsyncMock(return_value=None)
    directory.list_by_zip_code = AsyncMock(return_value=[])
    return directory
