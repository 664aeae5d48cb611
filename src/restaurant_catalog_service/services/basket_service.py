"""Basket service managing each customer's per-restaurant basket."""

import logging
import uuid
from decimal import Decimal, InvalidOperation

from restaurant_catalog_service.exceptions import (
    NotFoundError,
    RestaurantNotFoundError,
    ValidationError,
    translate_store_errors,
)
from restaurant_catalog_service.models.basket_models import Basket, BasketItem
from restaurant_catalog_service.observability.decorators import traced
from restaurant_catalog_service.observability.metrics import (
    record_basket_item_change,
    record_basket_pruned,
)
from restaurant_catalog_service.repositories.base_repository import BasketStore, RecordNotFound
from restaurant_catalog_service.services.restaurant_directory_client import (
    RestaurantDirectoryClient,
)
from restaurant_catalog_service.utils.text import strip_markup

logger = logging.getLogger(__name__)

BASKET_NOT_FOUND = "Basket not found."
ITEM_NOT_FOUND = "Item not found in basket."
NEW_ITEM_QUANTITY = "quantity must be greater than 0 for a new item"


def parse_unit_price(price: Decimal | int | float | str) -> Decimal:
    """Convert a unit price snapshot to Decimal, rejecting negatives."""
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError("Price must be a number.") from e
    if not value.is_finite() or value < 0:
        raise ValidationError("Price must not be negative.")
    return value


class BasketService:
    """Lifecycle of baskets: created on the first add, deleted once empty.

    A basket with no items is treated as absent. Reads that observe one delete
    it before answering.
    """

    def __init__(
        self,
        basket_store: BasketStore,
        restaurant_directory: RestaurantDirectoryClient,
    ) -> None:
        """Initialize the BasketService.

        Args:
            basket_store: Repository for baskets and their items
            restaurant_directory: Client used to check that a restaurant exists
        """
        self.basket_store = basket_store
        self.restaurant_directory = restaurant_directory

    async def get_basket(self, customer_id: str, restaurant_id: str) -> Basket | None:
        """Get the customer's basket for a restaurant.

        Args:
            customer_id: Customer owning the basket
            restaurant_id: Restaurant the basket orders from

        Returns:
            The basket with at least one item, or None if absent
        """
        with translate_store_errors(
            "get the basket", customer_id=customer_id, restaurant_id=restaurant_id
        ):
            basket = await self.basket_store.find_basket(customer_id, restaurant_id)
        return await self._prune_if_empty(basket)

    async def get_basket_by_id(self, customer_id: str, basket_id: str) -> Basket | None:
        """Get one of the customer's baskets by id.

        Returns:
            The basket, or None if absent, empty or owned by another customer
        """
        with translate_store_errors("get the basket", basket_id=basket_id):
            basket = await self.basket_store.get_basket_by_id(basket_id)
        if basket is not None and basket.customer_id != customer_id:
            return None
        return await self._prune_if_empty(basket)

    @traced("basket.add_item")
    async def add_item(
        self,
        customer_id: str,
        restaurant_id: str,
        menu_item_id: str,
        title: str,
        quantity: int,
        price: Decimal | int | float | str,
    ) -> Basket | None:
        """Add a menu item to the customer's basket, creating the basket if needed.

        An existing line for the menu item is updated in place, or removed when
        quantity is 0 or less.

        Args:
            customer_id: Customer adding the item
            restaurant_id: Restaurant the item is ordered from
            menu_item_id: Menu item being added
            title: Menu item title snapshot
            quantity: New quantity for the line
            price: Unit price snapshot

        Returns:
            The basket re-read after the change, or None if it is now empty

        Raises:
            RestaurantNotFoundError: If the directory does not know the restaurant
            ValidationError: If a new line would have quantity 0 or less
            UnexpectedError: On any store failure
        """
        if not customer_id or not menu_item_id:
            raise ValidationError("Customer ID and menu item ID are required.")
        if not await self.restaurant_directory.exists(restaurant_id):
            raise RestaurantNotFoundError("Restaurant not found.")
        unit_price = parse_unit_price(price)

        with translate_store_errors(
            "add the item to the basket",
            not_found_message=ITEM_NOT_FOUND,
            customer_id=customer_id,
            restaurant_id=restaurant_id,
        ):
            basket = await self.basket_store.find_basket(customer_id, restaurant_id)
            existing = basket.find_item_for_menu_item(menu_item_id) if basket else None

            if existing is None:
                if quantity <= 0:
                    raise ValidationError(NEW_ITEM_QUANTITY)
                if basket is None:
                    basket = await self.basket_store.get_or_create_basket(
                        customer_id, restaurant_id
                    )
                await self.basket_store.add_item(
                    BasketItem(
                        id=str(uuid.uuid4()),
                        basket_id=basket.id,
                        menu_item_id=menu_item_id,
                        title=strip_markup(title),
                        quantity=quantity,
                        price=unit_price,
                    )
                )
                record_basket_item_change("added")
            elif quantity > 0:
                await self.basket_store.update_item(
                    existing.model_copy(update={"quantity": quantity, "price": unit_price})
                )
                record_basket_item_change("updated")
            else:
                await self.basket_store.delete_item(existing)
                record_basket_item_change("removed")

        logger.info(
            f"Customer {customer_id} set menu item {menu_item_id} to quantity {quantity} "
            f"for restaurant {restaurant_id}"
        )
        return await self.get_basket(customer_id, restaurant_id)

    @traced("basket.update_item")
    async def update_item(
        self,
        customer_id: str,
        restaurant_id: str,
        item_id: str,
        quantity: int,
        price: Decimal | int | float | str | None = None,
    ) -> Basket | None:
        """Change the quantity (and optionally the price) of a basket line.

        Quantity 0 or less removes the line. Removing the last line deletes the
        basket.

        Returns:
            The remaining basket, or None if it was deleted

        Raises:
            NotFoundError: If the pair has no basket or the line is not in it
            UnexpectedError: On any store failure
        """
        with translate_store_errors(
            "load the basket", customer_id=customer_id, restaurant_id=restaurant_id
        ):
            basket = await self.basket_store.find_basket(customer_id, restaurant_id)
        if basket is None:
            raise NotFoundError(BASKET_NOT_FOUND)
        item = basket.find_item(item_id)
        if item is None:
            raise NotFoundError(ITEM_NOT_FOUND)

        with translate_store_errors(
            "update the basket item",
            not_found_message=ITEM_NOT_FOUND,
            basket_id=basket.id,
            item_id=item_id,
        ):
            if quantity <= 0:
                await self.basket_store.delete_item(item)
                record_basket_item_change("removed")
                remaining = [other for other in basket.items if other.id != item_id]
            else:
                changes: dict[str, object] = {"quantity": quantity}
                if price is not None:
                    changes["price"] = parse_unit_price(price)
                await self.basket_store.update_item(item.model_copy(update=changes))
                record_basket_item_change("updated")
                remaining = basket.items

        if not remaining:
            with translate_store_errors(
                "delete the empty basket", not_found_message=BASKET_NOT_FOUND, basket_id=basket.id
            ):
                await self.basket_store.delete_basket(basket.model_copy(update={"items": []}))
            record_basket_pruned("last_item_removed")
            logger.info(f"Deleted basket {basket.id} after its last item was removed")
            return None

        return await self.get_basket(customer_id, restaurant_id)

    @traced("basket.clear")
    async def clear_basket(self, customer_id: str, restaurant_id: str) -> None:
        """Delete the basket and all of its items atomically.

        Raises:
            NotFoundError: If the pair has no basket
            UnexpectedError: On any store failure
        """
        with translate_store_errors(
            "clear the basket",
            not_found_message=BASKET_NOT_FOUND,
            customer_id=customer_id,
            restaurant_id=restaurant_id,
        ):
            basket = await self.basket_store.find_basket(customer_id, restaurant_id)
            if basket is None:
                raise NotFoundError(BASKET_NOT_FOUND)
            await self.basket_store.delete_basket(basket)

        logger.info(f"Cleared basket {basket.id} for customer {customer_id}")

    async def checkout(self, customer_id: str, restaurant_id: str) -> None:
        """Accept a checkout request. Orders are not created yet."""
        logger.info(
            f"Checkout requested by customer {customer_id} for restaurant {restaurant_id}"
        )
        return None

    async def _prune_if_empty(self, basket: Basket | None) -> Basket | None:
        if basket is None or not basket.is_empty:
            return basket

        with translate_store_errors("prune the empty basket", basket_id=basket.id):
            try:
                await self.basket_store.delete_basket(basket)
            except RecordNotFound:
                logger.debug(f"Empty basket {basket.id} was already deleted")
                return None
        record_basket_pruned("empty_on_read")
        logger.info(f"Pruned empty basket {basket.id}")
        return None
