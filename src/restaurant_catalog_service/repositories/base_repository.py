"""Repository abstractions for catalog and basket persistence.

Services receive these abstractions through their constructors, so the
DynamoDB implementation and the in-memory implementation are interchangeable.

Unlike the remote clients, stores raise on write failures: callers need to tell
a unique constraint violation apart from a missing record and from anything
else. Point lookups return None when the record does not exist.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from enum import Enum

from restaurant_catalog_service.models.basket_models import Basket, BasketItem
from restaurant_catalog_service.models.catalog_models import Category, MenuItem


class UniqueConstraintViolation(Exception):
    """A write would break a uniqueness constraint on ``field``."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"Unique constraint violated on field '{field}'")
        self.field = field


class RecordNotFound(Exception):
    """A write targeted a record that does not exist."""


class ScopeKind(str, Enum):
    """Kinds of sibling groups that share a sort order ranking."""

    CATEGORY = "category"
    MENU_ITEM = "menu_item"


@dataclass(frozen=True)
class SortScope:
    """Grouping key under which sort order values rank siblings.

    Attributes:
        kind: What is being ranked
        key: Restaurant id for categories, category id for menu items
    """

    kind: ScopeKind
    key: str

    @classmethod
    def categories_of(cls, restaurant_id: str) -> "SortScope":
        return cls(ScopeKind.CATEGORY, restaurant_id)

    @classmethod
    def menu_items_of(cls, category_id: str) -> "SortScope":
        return cls(ScopeKind.MENU_ITEM, category_id)


class CatalogTransaction(ABC):
    """Group of catalog writes applied atomically when the transaction exits.

    Nothing staged on a transaction is visible until the surrounding
    ``async with store.transaction()`` block exits normally. If the block
    raises, every staged write is discarded.
    """

    @abstractmethod
    async def shift_sort_orders(
        self, scope: SortScope, lower: int, upper: int | None, delta: int
    ) -> int:
        """Stage ``sort_order += delta`` for every sibling in ``[lower, upper]``.

        Args:
            scope: Sibling group to shift
            lower: Inclusive lower bound
            upper: Inclusive upper bound, or None for no upper bound
            delta: Amount added to each matching sort order

        Returns:
            Number of siblings staged for update
        """

    @abstractmethod
    async def create_category(self, category: Category) -> None:
        """Stage insertion of a new category."""

    @abstractmethod
    async def save_category(self, category: Category, previous: Category) -> None:
        """Stage replacement of ``previous`` with ``category``."""

    @abstractmethod
    async def delete_category(self, category: Category) -> None:
        """Stage deletion of a category together with its menu items."""

    @abstractmethod
    async def create_menu_item(self, menu_item: MenuItem) -> None:
        """Stage insertion of a new menu item."""

    @abstractmethod
    async def save_menu_item(self, menu_item: MenuItem, previous: MenuItem) -> None:
        """Stage replacement of ``previous`` with ``menu_item``."""

    @abstractmethod
    async def delete_menu_item(self, menu_item: MenuItem) -> None:
        """Stage deletion of a menu item."""


class CatalogStore(ABC):
    """Persistence for categories and menu items.

    Implementations provide the reads, the scope count and the transaction
    primitive. Single-record writes are one-statement transactions.
    """

    @abstractmethod
    async def get_category(self, category_id: str) -> Category | None:
        """Retrieve a category by id, or None."""

    @abstractmethod
    async def list_categories(self, restaurant_id: str) -> list[Category]:
        """List a restaurant's categories ordered by sort order ascending."""

    @abstractmethod
    async def find_category_by_title(self, restaurant_id: str, title: str) -> Category | None:
        """Find a restaurant's category with exactly this title, or None."""

    @abstractmethod
    async def get_menu_item(self, menu_item_id: str) -> MenuItem | None:
        """Retrieve a menu item by id, or None."""

    @abstractmethod
    async def list_menu_items(self, category_id: str) -> list[MenuItem]:
        """List a category's menu items ordered by sort order ascending."""

    @abstractmethod
    async def find_menu_item_by_title(self, category_id: str, title: str) -> MenuItem | None:
        """Find a category's menu item with exactly this title, or None."""

    @abstractmethod
    async def count_in_scope(self, scope: SortScope) -> int:
        """Count the entries ranked in ``scope``."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[CatalogTransaction]:
        """Open a transaction that commits when the context exits cleanly."""

    async def create_category(self, category: Category) -> Category:
        async with self.transaction() as tx:
            await tx.create_category(category)
        return category

    async def update_category(self, category: Category, previous: Category) -> Category:
        async with self.transaction() as tx:
            await tx.save_category(category, previous)
        return category

    async def delete_category(self, category: Category) -> None:
        async with self.transaction() as tx:
            await tx.delete_category(category)

    async def create_menu_item(self, menu_item: MenuItem) -> MenuItem:
        async with self.transaction() as tx:
            await tx.create_menu_item(menu_item)
        return menu_item

    async def update_menu_item(self, menu_item: MenuItem, previous: MenuItem) -> MenuItem:
        async with self.transaction() as tx:
            await tx.save_menu_item(menu_item, previous)
        return menu_item

    async def delete_menu_item(self, menu_item: MenuItem) -> None:
        async with self.transaction() as tx:
            await tx.delete_menu_item(menu_item)


class BasketStore(ABC):
    """Persistence for baskets and their line items."""

    @abstractmethod
    async def find_basket(self, customer_id: str, restaurant_id: str) -> Basket | None:
        """Load the pair's basket with its items, or None."""

    @abstractmethod
    async def get_basket_by_id(self, basket_id: str) -> Basket | None:
        """Load a basket by id with its items, or None."""

    @abstractmethod
    async def get_or_create_basket(self, customer_id: str, restaurant_id: str) -> Basket:
        """Return the pair's basket, creating an empty one atomically if absent.

        Two concurrent callers for the same pair always receive the same basket.
        """

    @abstractmethod
    async def add_item(self, item: BasketItem) -> BasketItem:
        """Insert a new line item."""

    @abstractmethod
    async def update_item(self, item: BasketItem) -> BasketItem:
        """Replace an existing line item. Raises RecordNotFound if it is gone."""

    @abstractmethod
    async def delete_item(self, item: BasketItem) -> None:
        """Delete a line item. Raises RecordNotFound if it is gone."""

    @abstractmethod
    async def delete_basket(self, basket: Basket) -> None:
        """Delete a basket and all of its items in one atomic transaction."""
