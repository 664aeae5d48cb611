"""Unit tests for BasketService."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from restaurant_catalog_service.exceptions import (
    NotFoundError,
    RestaurantNotFoundError,
    UnexpectedError,
    ValidationError,
)
from restaurant_catalog_service.models.basket_models import Basket
from restaurant_catalog_service.repositories.base_repository import BasketStore, RecordNotFound
from restaurant_catalog_service.repositories.memory_repositories import InMemoryBasketStore
from restaurant_catalog_service.services.basket_service import BasketService


@pytest.fixture
def basket_service(basket_store: InMemoryBasketStore, mock_directory: MagicMock) -> BasketService:
    """Create a BasketService over an in-memory store."""
    return BasketService(basket_store=basket_store, restaurant_directory=mock_directory)


@pytest.mark.unit
class TestAddItem:
    """Test suite for BasketService.add_item."""

    @pytest.mark.asyncio
    async def test_first_add_creates_basket(self, basket_service: BasketService) -> None:
        basket = await basket_service.add_item("c1", "r1", "m1", "Margherita", 2, 10)

        assert basket is not None
        assert len(basket.items) == 1
        assert basket.items[0].quantity == 2
        assert basket.items[0].price == Decimal("10")
        assert basket.items[0].title == "Margherita"

        fetched = await basket_service.get_basket("c1", "r1")
        assert fetched == basket

    @pytest.mark.asyncio
    async def test_add_existing_item_updates_in_place(
        self, basket_service: BasketService
    ) -> None:
        first = await basket_service.add_item("c1", "r1", "m1", "Margherita", 2, 10)
        assert first is not None

        basket = await basket_service.add_item("c1", "r1", "m1", "Margherita", 5, "9.50")

        assert basket is not None
        assert len(basket.items) == 1
        assert basket.items[0].id == first.items[0].id
        assert basket.items[0].quantity == 5
        assert basket.items[0].price == Decimal("9.50")
        assert basket.total == Decimal("47.50")

    @pytest.mark.asyncio
    async def test_add_existing_item_with_zero_removes_it(
        self, basket_service: BasketService
    ) -> None:
        await basket_service.add_item("c1", "r1", "m1", "Margherita", 2, 10)
        await basket_service.add_item("c1", "r1", "m2", "Diavola", 1, 12)

        basket = await basket_service.add_item("c1", "r1", "m1", "Margherita", 0, 10)

        assert basket is not None
        assert [item.menu_item_id for item in basket.items] == ["m2"]

    @pytest.mark.asyncio
    async def test_removing_only_item_prunes_basket(
        self, basket_service: BasketService, basket_store: InMemoryBasketStore
    ) -> None:
        await basket_service.add_item("c1", "r1", "m1", "Margherita", 2, 10)

        basket = await basket_service.add_item("c1", "r1", "m1", "Margherita", 0, 10)

        assert basket is None
        assert await basket_store.find_basket("c1", "r1") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_new_item_requires_positive_quantity(
        self,
        basket_service: BasketService,
        basket_store: InMemoryBasketStore,
        quantity: int,
    ) -> None:
        with pytest.raises(ValidationError, match="quantity must be greater than 0 for a new item"):
            await basket_service.add_item("c1", "r1", "m1", "Margherita", quantity, 10)

        assert await basket_store.find_basket("c1", "r1") is None

    @pytest.mark.asyncio
    async def test_unknown_restaurant(
        self,
        basket_service: BasketService,
        mock_directory: MagicMock,
        basket_store: InMemoryBasketStore,
    ) -> None:
        mock_directory.exists.return_value = False

        with pytest.raises(RestaurantNotFoundError):
            await basket_service.add_item("c1", "r1", "m1", "Margherita", 1, 10)

        mock_directory.exists.assert_called_once_with("r1")
        assert await basket_store.find_basket("c1", "r1") is None

    @pytest.mark.asyncio
    async def test_negative_price_rejected(self, basket_service: BasketService) -> None:
        with pytest.raises(ValidationError):
            await basket_service.add_item("c1", "r1", "m1", "Margherita", 1, -5)

    @pytest.mark.asyncio
    async def test_baskets_are_per_restaurant(self, basket_service: BasketService) -> None:
        await basket_service.add_item("c1", "r1", "m1", "Margherita", 1, 10)
        await basket_service.add_item("c1", "r2", "m9", "Sushi", 1, 20)

        r1 = await basket_service.get_basket("c1", "r1")
        r2 = await basket_service.get_basket("c1", "r2")

        assert r1 is not None and r2 is not None
        assert r1.id != r2.id


@pytest.mark.unit
class TestGetBasket:
    """Test suite for basket reads and pruning."""

    @pytest.mark.asyncio
    async def test_missing_basket(self, basket_service: BasketService) -> None:
        assert await basket_service.get_basket("c1", "r1") is None

    @pytest.mark.asyncio
    async def test_empty_basket_is_pruned_on_read(
        self, basket_service: BasketService, basket_store: InMemoryBasketStore
    ) -> None:
        await basket_store.get_or_create_basket("c1", "r1")

        assert await basket_service.get_basket("c1", "r1") is None
        assert await basket_store.find_basket("c1", "r1") is None

    @pytest.mark.asyncio
    async def test_concurrently_pruned_basket_is_absent(
        self, mock_directory: MagicMock
    ) -> None:
        store = MagicMock(spec=BasketStore)
        store.find_basket = AsyncMock(
            return_value=Basket(id="b1", customer_id="c1", restaurant_id="r1")
        )
        store.delete_basket = AsyncMock(side_effect=RecordNotFound("gone"))
        service = BasketService(basket_store=store, restaurant_directory=mock_directory)

        assert await service.get_basket("c1", "r1") is None

    @pytest.mark.asyncio
    async def test_get_basket_by_id(self, basket_service: BasketService) -> None:
        basket = await basket_service.add_item("c1", "r1", "m1", "Margherita", 1, 10)
        assert basket is not None

        assert await basket_service.get_basket_by_id("c1", basket.id) == basket

    @pytest.mark.asyncio
    async def test_get_basket_by_id_of_other_customer(
        self, basket_service: BasketService
    ) -> None:
        basket = await basket_service.add_item("c1", "r1", "m1", "Margherita", 1, 10)
        assert basket is not None

        assert await basket_service.get_basket_by_id("c2", basket.id) is None

    @pytest.mark.asyncio
    async def test_store_failure_is_unexpected(self, mock_directory: MagicMock) -> None:
        store = MagicMock(spec=BasketStore)
        store.find_basket = AsyncMock(side_effect=RuntimeError("throttled"))
        service = BasketService(basket_store=store, restaurant_directory=mock_directory)

        with pytest.raises(UnexpectedError):
            await service.get_basket("c1", "r1")


@pytest.mark.unit
class TestUpdateItem:
    """Test suite for BasketService.update_item."""

    @pytest.mark.asyncio
    async def test_update_quantity_and_price(self, basket_service: BasketService) -> None:
        basket = await basket_service.add_item("c1", "r1", "m1", "Margherita", 1, 10)
        assert basket is not None

        updated = await basket_service.update_item("c1", "r1", basket.items[0].id, 3, 11)

        assert updated is not None
        assert updated.items[0].quantity == 3
        assert updated.items[0].price == Decimal("11")

    @pytest.mark.asyncio
    async def test_update_without_price_keeps_snapshot(
        self, basket_service: BasketService
    ) -> None:
        basket = await basket_service.add_item("c1", "r1", "m1", "Margherita", 1, 10)
        assert basket is not None

        updated = await basket_service.update_item("c1", "r1", basket.items[0].id, 4)

        assert updated is not None
        assert updated.items[0].price == Decimal("10")

    @pytest.mark.asyncio
    async def test_zero_quantity_on_last_item_deletes_basket(
        self, basket_service: BasketService, basket_store: InMemoryBasketStore
    ) -> None:
        basket = await basket_service.add_item("c1", "r1", "m1", "Margherita", 2, 10)
        assert basket is not None

        result = await basket_service.update_item("c1", "r1", basket.items[0].id, 0, 10)

        assert result is None
        assert await basket_service.get_basket("c1", "r1") is None
        assert await basket_store.get_basket_by_id(basket.id) is None

    @pytest.mark.asyncio
    async def test_zero_quantity_keeps_other_items(self, basket_service: BasketService) -> None:
        await basket_service.add_item("c1", "r1", "m1", "Margherita", 2, 10)
        basket = await basket_service.add_item("c1", "r1", "m2", "Diavola", 1, 12)
        assert basket is not None
        margherita = basket.find_item_for_menu_item("m1")
        assert margherita is not None

        result = await basket_service.update_item("c1", "r1", margherita.id, 0)

        assert result is not None
        assert [item.menu_item_id for item in result.items] == ["m2"]

    @pytest.mark.asyncio
    async def test_missing_basket(self, basket_service: BasketService) -> None:
        with pytest.raises(NotFoundError, match="Basket not found"):
            await basket_service.update_item("c1", "r1", "item_1", 1, 10)

    @pytest.mark.asyncio
    async def test_missing_item(self, basket_service: BasketService) -> None:
        await basket_service.add_item("c1", "r1", "m1", "Margherita", 1, 10)

        with pytest.raises(NotFoundError, match="Item not found"):
            await basket_service.update_item("c1", "r1", "unknown", 1, 10)


@pytest.mark.unit
class TestClearAndCheckout:
    """Test suite for clear_basket and checkout."""

    @pytest.mark.asyncio
    async def test_clear_basket_removes_everything(
        self, basket_service: BasketService, basket_store: InMemoryBasketStore
    ) -> None:
        await basket_service.add_item("c1", "r1", "m1", "Margherita", 1, 10)
        await basket_service.add_item("c1", "r1", "m2", "Diavola", 1, 12)

        await basket_service.clear_basket("c1", "r1")

        assert await basket_store.find_basket("c1", "r1") is None

    @pytest.mark.asyncio
    async def test_clear_missing_basket(self, basket_service: BasketService) -> None:
        with pytest.raises(NotFoundError):
            await basket_service.clear_basket("c1", "r1")

    @pytest.mark.asyncio
    async def test_clear_basket_deleted_concurrently(
        self, mock_directory: MagicMock, sample_basket: Basket
    ) -> None:
        store = MagicMock(spec=BasketStore)
        store.find_basket = AsyncMock(return_value=sample_basket)
        store.delete_basket = AsyncMock(side_effect=RecordNotFound("gone"))
        service = BasketService(basket_store=store, restaurant_directory=mock_directory)

        with pytest.raises(NotFoundError):
            await service.clear_basket(sample_basket.customer_id, sample_basket.restaurant_id)

    @pytest.mark.asyncio
    async def test_checkout_has_no_effect(
        self, basket_service: BasketService, basket_store: InMemoryBasketStore
    ) -> None:
        await basket_service.add_item("c1", "r1", "m1", "Margherita", 1, 10)

        assert await basket_service.checkout("c1", "r1") is None
        assert await basket_store.find_basket("c1", "r1") is not None
