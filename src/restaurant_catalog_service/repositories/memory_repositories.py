"""In-memory repository implementations.

Used for local development (``STORE_BACKEND=memory``) and component tests.
Transactions work on a copy of the tables taken under a lock and swap it in on
commit, so a failed transaction leaves no trace.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from restaurant_catalog_service.models.basket_models import Basket, BasketItem
from restaurant_catalog_service.models.catalog_models import Category, MenuItem
from restaurant_catalog_service.repositories.base_repository import (
    BasketStore,
    CatalogStore,
    CatalogTransaction,
    RecordNotFound,
    ScopeKind,
    SortScope,
    UniqueConstraintViolation,
)
from restaurant_catalog_service.services.ordering_engine import ShiftPlan, apply_shift

logger = logging.getLogger(__name__)


@dataclass
class _CatalogTables:
    categories: dict[str, Category] = field(default_factory=dict)
    menu_items: dict[str, MenuItem] = field(default_factory=dict)

    def copy(self) -> "_CatalogTables":
        return _CatalogTables(dict(self.categories), dict(self.menu_items))

    def siblings(self, scope: SortScope) -> list[Category] | list[MenuItem]:
        if scope.kind == ScopeKind.CATEGORY:
            return [c for c in self.categories.values() if c.restaurant_id == scope.key]
        return [m for m in self.menu_items.values() if m.category_id == scope.key]


class InMemoryCatalogTransaction(CatalogTransaction):
    """Stages writes against a private copy of the catalog tables."""

    def __init__(self, tables: _CatalogTables) -> None:
        self.tables = tables

    async def shift_sort_orders(
        self, scope: SortScope, lower: int, upper: int | None, delta: int
    ) -> int:
        plan = ShiftPlan(lower=lower, upper=upper, delta=delta)
        entries = {entry.id: entry for entry in self.tables.siblings(scope)}
        positions = apply_shift({e.id: e.sort_order for e in entries.values()}, plan)

        shifted = 0
        for entry_id, position in positions.items():
            entry = entries[entry_id]
            if not plan.covers(entry.sort_order):
                continue
            moved = entry.model_copy(update={"sort_order": position})
            if isinstance(moved, Category):
                self.tables.categories[moved.id] = moved
            else:
                self.tables.menu_items[moved.id] = moved
            shifted += 1
        return shifted

    async def create_category(self, category: Category) -> None:
        if category.id in self.tables.categories:
            raise UniqueConstraintViolation("id")
        self._check_category_title(category)
        self.tables.categories[category.id] = category

    async def save_category(self, category: Category, previous: Category) -> None:
        if previous.id not in self.tables.categories:
            raise RecordNotFound(f"Category {previous.id} does not exist")
        self._check_category_title(category)
        self.tables.categories[category.id] = category

    async def delete_category(self, category: Category) -> None:
        if self.tables.categories.pop(category.id, None) is None:
            raise RecordNotFound(f"Category {category.id} does not exist")
        for menu_item_id in [
            m.id for m in self.tables.menu_items.values() if m.category_id == category.id
        ]:
            del self.tables.menu_items[menu_item_id]

    async def create_menu_item(self, menu_item: MenuItem) -> None:
        if menu_item.id in self.tables.menu_items:
            raise UniqueConstraintViolation("id")
        self._check_menu_item_title(menu_item)
        self.tables.menu_items[menu_item.id] = menu_item

    async def save_menu_item(self, menu_item: MenuItem, previous: MenuItem) -> None:
        if previous.id not in self.tables.menu_items:
            raise RecordNotFound(f"Menu item {previous.id} does not exist")
        self._check_menu_item_title(menu_item)
        self.tables.menu_items[menu_item.id] = menu_item

    async def delete_menu_item(self, menu_item: MenuItem) -> None:
        if self.tables.menu_items.pop(menu_item.id, None) is None:
            raise RecordNotFound(f"Menu item {menu_item.id} does not exist")

    def _check_category_title(self, category: Category) -> None:
        for other in self.tables.categories.values():
            if (
                other.id != category.id
                and other.restaurant_id == category.restaurant_id
                and other.title == category.title
            ):
                raise UniqueConstraintViolation("title")

    def _check_menu_item_title(self, menu_item: MenuItem) -> None:
        for other in self.tables.menu_items.values():
            if (
                other.id != menu_item.id
                and other.category_id == menu_item.category_id
                and other.title == menu_item.title
            ):
                raise UniqueConstraintViolation("title")


class InMemoryCatalogStore(CatalogStore):
    """Catalog store kept in process memory."""

    def __init__(self) -> None:
        self._tables = _CatalogTables()
        self._lock = asyncio.Lock()

    async def get_category(self, category_id: str) -> Category | None:
        return self._tables.categories.get(category_id)

    async def list_categories(self, restaurant_id: str) -> list[Category]:
        categories = self._tables.siblings(SortScope.categories_of(restaurant_id))
        return sorted(categories, key=lambda c: (c.sort_order, c.created_at))

    async def find_category_by_title(self, restaurant_id: str, title: str) -> Category | None:
        for category in self._tables.categories.values():
            if category.restaurant_id == restaurant_id and category.title == title:
                return category
        return None

    async def get_menu_item(self, menu_item_id: str) -> MenuItem | None:
        return self._tables.menu_items.get(menu_item_id)

    async def list_menu_items(self, category_id: str) -> list[MenuItem]:
        menu_items = self._tables.siblings(SortScope.menu_items_of(category_id))
        return sorted(menu_items, key=lambda m: (m.sort_order, m.created_at))

    async def find_menu_item_by_title(self, category_id: str, title: str) -> MenuItem | None:
        for menu_item in self._tables.menu_items.values():
            if menu_item.category_id == category_id and menu_item.title == title:
                return menu_item
        return None

    async def count_in_scope(self, scope: SortScope) -> int:
        return len(self._tables.siblings(scope))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[CatalogTransaction]:
        async with self._lock:
            tx = InMemoryCatalogTransaction(self._tables.copy())
            yield tx
            self._tables = tx.tables


class InMemoryBasketStore(BasketStore):
    """Basket store kept in process memory."""

    def __init__(self) -> None:
        self._baskets: dict[tuple[str, str], Basket] = {}
        self._items: dict[str, dict[str, BasketItem]] = {}
        self._lock = asyncio.Lock()

    def _with_items(self, basket: Basket) -> Basket:
        items = list(self._items.get(basket.id, {}).values())
        return basket.model_copy(update={"items": items})

    async def find_basket(self, customer_id: str, restaurant_id: str) -> Basket | None:
        basket = self._baskets.get((customer_id, restaurant_id))
        return self._with_items(basket) if basket else None

    async def get_basket_by_id(self, basket_id: str) -> Basket | None:
        for basket in self._baskets.values():
            if basket.id == basket_id:
                return self._with_items(basket)
        return None

    async def get_or_create_basket(self, customer_id: str, restaurant_id: str) -> Basket:
        async with self._lock:
            key = (customer_id, restaurant_id)
            if key not in self._baskets:
                self._baskets[key] = Basket(
                    id=str(uuid.uuid4()), customer_id=customer_id, restaurant_id=restaurant_id
                )
                self._items[self._baskets[key].id] = {}
                logger.debug(f"Created basket for customer {customer_id} at {restaurant_id}")
            return self._with_items(self._baskets[key])

    async def add_item(self, item: BasketItem) -> BasketItem:
        async with self._lock:
            if item.basket_id not in self._items:
                raise RecordNotFound(f"Basket {item.basket_id} does not exist")
            items = self._items[item.basket_id]
            if any(i.menu_item_id == item.menu_item_id for i in items.values()):
                raise UniqueConstraintViolation("menu_item_id")
            items[item.id] = item
            return item

    async def update_item(self, item: BasketItem) -> BasketItem:
        async with self._lock:
            items = self._items.get(item.basket_id, {})
            if item.id not in items:
                raise RecordNotFound(f"Basket item {item.id} does not exist")
            items[item.id] = item
            return item

    async def delete_item(self, item: BasketItem) -> None:
        async with self._lock:
            items = self._items.get(item.basket_id, {})
            if items.pop(item.id, None) is None:
                raise RecordNotFound(f"Basket item {item.id} does not exist")

    async def delete_basket(self, basket: Basket) -> None:
        async with self._lock:
            key = (basket.customer_id, basket.restaurant_id)
            stored = self._baskets.get(key)
            if stored is None or stored.id != basket.id:
                raise RecordNotFound(f"Basket {basket.id} does not exist")
            del self._baskets[key]
            self._items.pop(basket.id, None)
