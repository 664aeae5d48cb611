"""Catalog service for managing a restaurant's categories and menu items."""

import logging
import uuid
from decimal import Decimal, InvalidOperation

from restaurant_catalog_service.adapters.base_publisher import EventPublisher, NoOpEventPublisher
from restaurant_catalog_service.exceptions import (
    DuplicateTitleError,
    NotFoundError,
    ValidationError,
    translate_store_errors,
)
from restaurant_catalog_service.models.catalog_models import (
    Category,
    CategoryWithMenuItems,
    MenuItem,
    utc_now,
)
from restaurant_catalog_service.models.event_models import CategoryCreatedEvent
from restaurant_catalog_service.observability.decorators import traced
from restaurant_catalog_service.observability.metrics import (
    record_category_created,
    record_menu_item_created,
    record_sort_order_shift,
)
from restaurant_catalog_service.repositories.base_repository import CatalogStore, SortScope
from restaurant_catalog_service.services.ordering_engine import OrderingEngine
from restaurant_catalog_service.utils.text import strip_markup

logger = logging.getLogger(__name__)

CATEGORY_NOT_FOUND = "Category not found."
MENU_ITEM_NOT_FOUND = "Menu not found."
DUPLICATE_CATEGORY = "A category with this title already exists."
DUPLICATE_MENU_ITEM = "A menu with this title already exists."


def parse_price(price: Decimal | int | float | str) -> Decimal:
    """Convert a price to Decimal, requiring it to be positive.

    Raises:
        ValidationError: If the price is not a number or is not greater than 0
    """
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError("Price must be a number.") from e
    if not value.is_finite() or value <= 0:
        raise ValidationError("Price must be greater than 0.")
    return value


def validate_sort_order(sort_order: int) -> None:
    if sort_order < 0:
        raise ValidationError("sortOrder must be a non-negative integer.")


class CatalogService:
    """Service for creating, ordering and deleting categories and menu items.

    Every write checks that the caller's restaurant owns the record (directly
    for categories, through the parent category for menu items). A record owned
    by someone else is reported exactly like a missing one.
    """

    def __init__(
        self,
        catalog_store: CatalogStore,
        ordering_engine: OrderingEngine | None = None,
        event_publisher: EventPublisher | None = None,
        renumber_on_delete: bool = False,
    ) -> None:
        """Initialize the CatalogService.

        Args:
            catalog_store: Repository for categories and menu items
            ordering_engine: Sort order engine (defaults to one over catalog_store)
            event_publisher: Sink for category events (defaults to a no-op)
            renumber_on_delete: Close sort order gaps when an entry is deleted
        """
        self.catalog_store = catalog_store
        self.ordering_engine = ordering_engine or OrderingEngine(catalog_store)
        self.event_publisher = event_publisher or NoOpEventPublisher()
        self.renumber_on_delete = renumber_on_delete

    # Categories

    @traced("catalog.create_category")
    async def create_category(
        self,
        title: str,
        restaurant_id: str,
        description: str | None = None,
    ) -> Category:
        """Create a category at the end of the restaurant's ordering.

        Args:
            title: Category title, unique within the restaurant
            restaurant_id: Owning restaurant
            description: Optional description (defaults to empty)

        Returns:
            The created category

        Raises:
            ValidationError: If title or restaurant_id is empty
            DuplicateTitleError: If the restaurant already has a category with this title
            UnexpectedError: On any store failure
        """
        title = strip_markup(title)
        if not title or not restaurant_id:
            raise ValidationError("Title and restaurant ID are required.")

        with translate_store_errors(
            "create the category",
            duplicate_message=DUPLICATE_CATEGORY,
            restaurant_id=restaurant_id,
        ):
            sort_order = await self.ordering_engine.next_position(
                SortScope.categories_of(restaurant_id)
            )
            category = Category(
                id=str(uuid.uuid4()),
                restaurant_id=restaurant_id,
                title=title,
                description=strip_markup(description),
                sort_order=sort_order,
            )
            await self.catalog_store.create_category(category)

        logger.info(
            f"Created category {category.id} for restaurant {restaurant_id} at position {sort_order}"
        )
        record_category_created()
        await self.event_publisher.publish(CategoryCreatedEvent.from_category(category))
        return category

    @traced("catalog.update_category")
    async def update_category(
        self,
        category_id: str,
        restaurant_id: str,
        title: str | None = None,
        description: str | None = None,
        sort_order: int | None = None,
    ) -> Category:
        """Update a category; omitted fields keep their current values.

        A changed sort order moves the category and shifts its siblings in one
        transaction.

        Args:
            category_id: Category to update
            restaurant_id: Caller's restaurant, must own the category
            title: New title
            description: New description
            sort_order: New position

        Returns:
            The updated category

        Raises:
            NotFoundError: If the category is missing or owned by another restaurant
            DuplicateTitleError: If another category of the restaurant has the new title
            ValidationError: If the new title is empty or the position is invalid
            UnexpectedError: On any store failure
        """
        existing = await self._get_owned_category(category_id, restaurant_id)
        changes: dict[str, object] = {}

        if title is not None:
            title = strip_markup(title)
            if not title:
                raise ValidationError("Title cannot be empty.")
            if title != existing.title:
                await self._ensure_category_title_free(restaurant_id, title, category_id)
                changes["title"] = title

        if description is not None:
            changes["description"] = strip_markup(description)

        if sort_order is not None and sort_order != existing.sort_order:
            validate_sort_order(sort_order)
            changes["sort_order"] = sort_order
        moving = "sort_order" in changes

        updated = existing.model_copy(update={**changes, "updated_at": utc_now()})

        with translate_store_errors(
            "update the category",
            duplicate_message=DUPLICATE_CATEGORY,
            not_found_message=CATEGORY_NOT_FOUND,
            category_id=category_id,
        ):
            if moving:
                async with self.catalog_store.transaction() as tx:
                    shifted = await self.ordering_engine.reposition(
                        tx,
                        SortScope.categories_of(restaurant_id),
                        existing.sort_order,
                        updated.sort_order,
                    )
                    await tx.save_category(updated, existing)
                record_sort_order_shift("category", shifted)
            else:
                await self.catalog_store.update_category(updated, existing)

        logger.info(f"Updated category {category_id} for restaurant {restaurant_id}")
        return updated

    @traced("catalog.delete_category")
    async def delete_category(self, category_id: str, restaurant_id: str) -> None:
        """Delete a category and its menu items.

        Remaining siblings keep their positions unless renumbering is enabled.

        Raises:
            NotFoundError: If the category is missing or owned by another restaurant
            UnexpectedError: On any store failure
        """
        existing = await self._get_owned_category(category_id, restaurant_id)

        with translate_store_errors(
            "delete the category",
            not_found_message=CATEGORY_NOT_FOUND,
            category_id=category_id,
        ):
            if self.renumber_on_delete:
                async with self.catalog_store.transaction() as tx:
                    await tx.delete_category(existing)
                    shifted = await self.ordering_engine.close_gap(
                        tx, SortScope.categories_of(restaurant_id), existing.sort_order
                    )
                record_sort_order_shift("category", shifted)
            else:
                await self.catalog_store.delete_category(existing)

        logger.info(f"Deleted category {category_id} for restaurant {restaurant_id}")

    # Menu items

    @traced("catalog.create_menu_item")
    async def create_menu_item(
        self,
        title: str,
        category_id: str,
        restaurant_id: str,
        price: Decimal | int | float | str,
        description: str | None = None,
    ) -> MenuItem:
        """Create a menu item at the end of its category's ordering.

        Args:
            title: Item title, unique within the category
            category_id: Category to add the item to
            restaurant_id: Caller's restaurant, must own the category
            price: Item price, must be greater than 0
            description: Optional description

        Returns:
            The created menu item

        Raises:
            ValidationError: If a required field is empty or price is not positive
            NotFoundError: If the category is missing or owned by another restaurant
            DuplicateTitleError: If the category already has an item with this title
            UnexpectedError: On any store failure
        """
        title = strip_markup(title)
        if not title or not category_id or not restaurant_id:
            raise ValidationError("Title, category ID and restaurant ID are required.")
        parsed_price = parse_price(price)

        await self._get_owned_category(category_id, restaurant_id)

        with translate_store_errors(
            "create the menu",
            duplicate_message=DUPLICATE_MENU_ITEM,
            category_id=category_id,
        ):
            sort_order = await self.ordering_engine.next_position(
                SortScope.menu_items_of(category_id)
            )
            menu_item = MenuItem(
                id=str(uuid.uuid4()),
                category_id=category_id,
                title=title,
                description=strip_markup(description),
                price=parsed_price,
                sort_order=sort_order,
            )
            await self.catalog_store.create_menu_item(menu_item)

        logger.info(f"Created menu item {menu_item.id} in category {category_id}")
        record_menu_item_created()
        return menu_item

    @traced("catalog.update_menu_item")
    async def update_menu_item(
        self,
        menu_item_id: str,
        restaurant_id: str,
        title: str | None = None,
        description: str | None = None,
        price: Decimal | int | float | str | None = None,
        sort_order: int | None = None,
    ) -> MenuItem:
        """Update a menu item; omitted fields keep their current values.

        Raises:
            NotFoundError: If the item is missing or its category belongs to another restaurant
            DuplicateTitleError: If another item in the category has the new title
            ValidationError: If the new title is empty, price is not positive or
                the position is invalid
            UnexpectedError: On any store failure
        """
        existing, _category = await self._get_owned_menu_item(menu_item_id, restaurant_id)
        changes: dict[str, object] = {}

        if title is not None:
            title = strip_markup(title)
            if not title:
                raise ValidationError("Title cannot be empty.")
            if title != existing.title:
                await self._ensure_menu_item_title_free(existing.category_id, title, menu_item_id)
                changes["title"] = title

        if description is not None:
            changes["description"] = strip_markup(description)

        if price is not None:
            changes["price"] = parse_price(price)

        if sort_order is not None and sort_order != existing.sort_order:
            validate_sort_order(sort_order)
            changes["sort_order"] = sort_order
        moving = "sort_order" in changes

        updated = existing.model_copy(update={**changes, "updated_at": utc_now()})

        with translate_store_errors(
            "update the menu",
            duplicate_message=DUPLICATE_MENU_ITEM,
            not_found_message=MENU_ITEM_NOT_FOUND,
            menu_item_id=menu_item_id,
        ):
            if moving:
                async with self.catalog_store.transaction() as tx:
                    shifted = await self.ordering_engine.reposition(
                        tx,
                        SortScope.menu_items_of(existing.category_id),
                        existing.sort_order,
                        updated.sort_order,
                    )
                    await tx.save_menu_item(updated, existing)
                record_sort_order_shift("menu_item", shifted)
            else:
                await self.catalog_store.update_menu_item(updated, existing)

        logger.info(f"Updated menu item {menu_item_id} for restaurant {restaurant_id}")
        return updated

    @traced("catalog.delete_menu_item")
    async def delete_menu_item(self, menu_item_id: str, restaurant_id: str) -> None:
        """Delete a menu item.

        Raises:
            NotFoundError: If the item is missing or its category belongs to another restaurant
            UnexpectedError: On any store failure
        """
        existing, _category = await self._get_owned_menu_item(menu_item_id, restaurant_id)

        with translate_store_errors(
            "delete the menu",
            not_found_message=MENU_ITEM_NOT_FOUND,
            menu_item_id=menu_item_id,
        ):
            if self.renumber_on_delete:
                async with self.catalog_store.transaction() as tx:
                    await tx.delete_menu_item(existing)
                    shifted = await self.ordering_engine.close_gap(
                        tx, SortScope.menu_items_of(existing.category_id), existing.sort_order
                    )
                record_sort_order_shift("menu_item", shifted)
            else:
                await self.catalog_store.delete_menu_item(existing)

        logger.info(f"Deleted menu item {menu_item_id} for restaurant {restaurant_id}")

    # Queries

    async def get_categories_by_restaurant_id(self, restaurant_id: str) -> list[Category]:
        """List a restaurant's categories ordered by sort order."""
        with translate_store_errors("list categories", restaurant_id=restaurant_id):
            return await self.catalog_store.list_categories(restaurant_id)

    async def get_menu_items_by_category_id(self, category_id: str) -> list[MenuItem]:
        """List a category's menu items ordered by sort order."""
        with translate_store_errors("list menus", category_id=category_id):
            return await self.catalog_store.list_menu_items(category_id)

    async def get_category_by_id(self, category_id: str) -> Category:
        """Get a category by id.

        Raises:
            NotFoundError: If no such category exists
        """
        with translate_store_errors("get the category", category_id=category_id):
            category = await self.catalog_store.get_category(category_id)
        if category is None:
            raise NotFoundError(CATEGORY_NOT_FOUND)
        return category

    async def get_menu_item_by_id(self, menu_item_id: str) -> MenuItem:
        """Get a menu item by id.

        Raises:
            NotFoundError: If no such menu item exists
        """
        with translate_store_errors("get the menu", menu_item_id=menu_item_id):
            menu_item = await self.catalog_store.get_menu_item(menu_item_id)
        if menu_item is None:
            raise NotFoundError(MENU_ITEM_NOT_FOUND)
        return menu_item

    async def get_catalog(self, restaurant_id: str) -> list[CategoryWithMenuItems]:
        """List a restaurant's categories, each with its ordered menu items."""
        categories = await self.get_categories_by_restaurant_id(restaurant_id)
        catalog = []
        for category in categories:
            menu_items = await self.get_menu_items_by_category_id(category.id)
            catalog.append(
                CategoryWithMenuItems(**category.model_dump(), menu_items=menu_items)
            )
        return catalog

    # Ownership and uniqueness checks

    async def _get_owned_category(self, category_id: str, restaurant_id: str) -> Category:
        with translate_store_errors("load the category", category_id=category_id):
            category = await self.catalog_store.get_category(category_id)
        if category is None or category.restaurant_id != restaurant_id:
            raise NotFoundError(CATEGORY_NOT_FOUND)
        return category

    async def _get_owned_menu_item(
        self, menu_item_id: str, restaurant_id: str
    ) -> tuple[MenuItem, Category]:
        with translate_store_errors("load the menu", menu_item_id=menu_item_id):
            menu_item = await self.catalog_store.get_menu_item(menu_item_id)
            category = (
                await self.catalog_store.get_category(menu_item.category_id) if menu_item else None
            )
        if menu_item is None or category is None or category.restaurant_id != restaurant_id:
            raise NotFoundError(MENU_ITEM_NOT_FOUND)
        return menu_item, category

    async def _ensure_category_title_free(
        self, restaurant_id: str, title: str, category_id: str
    ) -> None:
        with translate_store_errors("check the category title", restaurant_id=restaurant_id):
            duplicate = await self.catalog_store.find_category_by_title(restaurant_id, title)
        if duplicate is not None and duplicate.id != category_id:
            raise DuplicateTitleError(DUPLICATE_CATEGORY)

    async def _ensure_menu_item_title_free(
        self, category_id: str, title: str, menu_item_id: str
    ) -> None:
        with translate_store_errors("check the menu title", category_id=category_id):
            duplicate = await self.catalog_store.find_menu_item_by_title(category_id, title)
        if duplicate is not None and duplicate.id != menu_item_id:
            raise DuplicateTitleError(DUPLICATE_MENU_ITEM)
