"""Unit tests for OrderingEngine and the shift planning helpers."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from restaurant_catalog_service.exceptions import ValidationError
from restaurant_catalog_service.models.catalog_models import Category
from restaurant_catalog_service.repositories.base_repository import (
    CatalogStore,
    CatalogTransaction,
    SortScope,
)
from restaurant_catalog_service.repositories.memory_repositories import InMemoryCatalogStore
from restaurant_catalog_service.services.ordering_engine import (
    OrderingEngine,
    ShiftPlan,
    apply_shift,
    plan_shift,
)


@pytest.mark.unit
class TestPlanShift:
    """Test suite for plan_shift."""

    def test_moving_down_pulls_range_up(self) -> None:
        assert plan_shift(1, 4) == ShiftPlan(lower=2, upper=4, delta=-1)

    def test_moving_up_pushes_range_down(self) -> None:
        assert plan_shift(4, 1) == ShiftPlan(lower=1, upper=3, delta=1)

    def test_same_position_is_noop(self) -> None:
        assert plan_shift(2, 2) is None


@pytest.mark.unit
class TestApplyShift:
    """Test suite for apply_shift."""

    def test_only_entries_in_range_move(self) -> None:
        positions = {"a": 0, "b": 1, "c": 2, "d": 3}

        result = apply_shift(positions, ShiftPlan(lower=1, upper=2, delta=-1))

        assert result == {"a": 0, "b": 0, "c": 1, "d": 3}

    def test_open_upper_bound_moves_everything_above(self) -> None:
        positions = {"a": 0, "b": 1, "c": 2, "d": 7}

        result = apply_shift(positions, ShiftPlan(lower=1, upper=None, delta=-1))

        assert result == {"a": 0, "b": 0, "c": 1, "d": 6}

    def test_none_plan_returns_copy(self) -> None:
        positions = {"a": 0}

        result = apply_shift(positions, None)

        assert result == positions
        assert result is not positions

    @pytest.mark.parametrize(("old", "new"), [(0, 3), (3, 0), (1, 2), (4, 1)])
    def test_round_trip_restores_siblings(self, old: int, new: int) -> None:
        """Moving an entry and moving it back leaves every sibling where it was."""
        siblings = {f"s{i}": i for i in range(5) if i != old}

        moved = apply_shift(siblings, plan_shift(old, new))
        restored = apply_shift(moved, plan_shift(new, old))

        assert restored == siblings

    def test_move_keeps_positions_unique(self) -> None:
        siblings = {f"s{i}": i for i in range(5) if i != 0}

        moved = apply_shift(siblings, plan_shift(0, 3))
        moved["entry"] = 3

        assert sorted(moved.values()) == [0, 1, 2, 3, 4]


@pytest.mark.unit
class TestOrderingEngine:
    """Test suite for OrderingEngine."""

    @pytest.fixture
    def mock_store(self) -> MagicMock:
        """Create a mock CatalogStore with three siblings."""
        store = MagicMock(spec=CatalogStore)
        store.count_in_scope = AsyncMock(return_value=3)
        return store

    @pytest.fixture
    def mock_tx(self) -> MagicMock:
        """Create a mock CatalogTransaction."""
        tx = MagicMock(spec=CatalogTransaction)
        tx.shift_sort_orders = AsyncMock(return_value=1)
        return tx

    @pytest.mark.asyncio
    async def test_next_position_is_scope_count(self, mock_store: MagicMock) -> None:
        engine = OrderingEngine(mock_store)
        scope = SortScope.categories_of("rest_123")

        assert await engine.next_position(scope) == 3
        mock_store.count_in_scope.assert_called_once_with(scope)

    @pytest.mark.asyncio
    async def test_reposition_down_shifts_range(
        self, mock_store: MagicMock, mock_tx: MagicMock
    ) -> None:
        engine = OrderingEngine(mock_store)
        scope = SortScope.categories_of("rest_123")

        shifted = await engine.reposition(mock_tx, scope, 0, 2)

        assert shifted == 1
        mock_tx.shift_sort_orders.assert_called_once_with(scope, 1, 2, -1)

    @pytest.mark.asyncio
    async def test_reposition_up_shifts_range(
        self, mock_store: MagicMock, mock_tx: MagicMock
    ) -> None:
        engine = OrderingEngine(mock_store)
        scope = SortScope.menu_items_of("cat_1")

        await engine.reposition(mock_tx, scope, 2, 0)

        mock_tx.shift_sort_orders.assert_called_once_with(scope, 0, 1, 1)

    @pytest.mark.asyncio
    async def test_reposition_same_position_skips_transaction(
        self, mock_store: MagicMock, mock_tx: MagicMock
    ) -> None:
        engine = OrderingEngine(mock_store)

        shifted = await engine.reposition(mock_tx, SortScope.categories_of("rest_123"), 1, 1)

        assert shifted == 0
        mock_tx.shift_sort_orders.assert_not_called()

    @pytest.mark.asyncio
    async def test_reposition_out_of_range_allowed_by_default(
        self, mock_store: MagicMock, mock_tx: MagicMock
    ) -> None:
        engine = OrderingEngine(mock_store)

        await engine.reposition(mock_tx, SortScope.categories_of("rest_123"), 0, 10)

        mock_tx.shift_sort_orders.assert_called_once()
        mock_store.count_in_scope.assert_not_called()

    @pytest.mark.asyncio
    async def test_reposition_out_of_range_rejected_when_enforced(
        self, mock_store: MagicMock, mock_tx: MagicMock
    ) -> None:
        engine = OrderingEngine(mock_store, enforce_bounds=True)

        with pytest.raises(ValidationError, match="between 0 and 2"):
            await engine.reposition(mock_tx, SortScope.categories_of("rest_123"), 0, 3)

        mock_tx.shift_sort_orders.assert_not_called()

    @pytest.mark.asyncio
    async def test_reposition_last_slot_accepted_when_enforced(
        self, mock_store: MagicMock, mock_tx: MagicMock
    ) -> None:
        engine = OrderingEngine(mock_store, enforce_bounds=True)

        await engine.reposition(mock_tx, SortScope.categories_of("rest_123"), 0, 2)

        mock_tx.shift_sort_orders.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_gap_shifts_everything_above(
        self, mock_store: MagicMock, mock_tx: MagicMock
    ) -> None:
        engine = OrderingEngine(mock_store)
        scope = SortScope.categories_of("rest_123")

        await engine.close_gap(mock_tx, scope, 1)

        mock_tx.shift_sort_orders.assert_called_once_with(scope, 2, None, -1)


@pytest.mark.unit
class TestOrderingEngineWithStore:
    """Reposition round trips against the in-memory store."""

    @pytest.mark.asyncio
    async def test_round_trip_restores_store_positions(self) -> None:
        store = InMemoryCatalogStore()
        scope = SortScope.categories_of("rest_123")
        for position, title in enumerate(["A", "B", "C", "D"]):
            await store.create_category(
                Category(
                    id=f"cat_{title}",
                    restaurant_id="rest_123",
                    title=title,
                    sort_order=position,
                )
            )
        engine = OrderingEngine(store)
        for old, new in [(0, 3), (3, 0)]:
            current = await store.get_category("cat_A")
            assert current is not None
            async with store.transaction() as tx:
                await engine.reposition(tx, scope, old, new)
                await tx.save_category(current.model_copy(update={"sort_order": new}), current)

        categories = await store.list_categories("rest_123")
        assert [(c.title, c.sort_order) for c in categories] == [
            ("A", 0),
            ("B", 1),
            ("C", 2),
            ("D", 3),
        ]
