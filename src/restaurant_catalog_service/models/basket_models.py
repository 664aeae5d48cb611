"""Basket models.

A customer holds at most one basket per restaurant. A basket without items is
treated as absent and is deleted whenever it is observed.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, computed_field, field_validator


class BasketItem(BaseModel):
    """Line item in a basket.

    Title and price are snapshots taken when the item is added or updated.
    Stored in DynamoDB with (basket_id, id) as composite key.
    """

    id: str = Field(..., description="Unique item identifier")
    basket_id: str = Field(..., description="Basket this item belongs to")
    menu_item_id: str = Field(..., description="Menu item this line refers to")
    title: str = Field(default="", description="Menu item title at add time")
    quantity: int = Field(..., description="Number of units", gt=0)
    price: Decimal = Field(..., description="Unit price at add/update time", ge=0)

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        """Validate that quantity is positive."""
        if v <= 0:
            raise ValueError("quantity must be greater than 0")
        return v

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "basket_id": self.basket_id,
            "id": self.id,
            "menu_item_id": self.menu_item_id,
            "title": self.title,
            "quantity": self.quantity,
            "price": self.price,
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "BasketItem":
        """Create BasketItem from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            BasketItem: Parsed model instance
        """
        return cls(
            id=item["id"],
            basket_id=item["basket_id"],
            menu_item_id=item["menu_item_id"],
            title=item.get("title", ""),
            quantity=int(item["quantity"]),
            price=Decimal(str(item["price"])),
        )


class Basket(BaseModel):
    """A customer's basket for one restaurant.

    Stored in DynamoDB with (customer_id, restaurant_id) as composite key, so a
    pair can never own two baskets. Items live in their own table.
    """

    id: str = Field(..., description="Unique basket identifier")
    customer_id: str = Field(..., description="Customer owning the basket")
    restaurant_id: str = Field(..., description="Restaurant the basket orders from")
    items: list[BasketItem] = Field(default_factory=list, description="Line items")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        """Sum of price times quantity over all items."""
        return sum((item.price * item.quantity for item in self.items), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find_item(self, item_id: str) -> BasketItem | None:
        """Return the item with the given id, if it belongs to this basket."""
        return next((item for item in self.items if item.id == item_id), None)

    def find_item_for_menu_item(self, menu_item_id: str) -> BasketItem | None:
        """Return the line item for a menu item, if present."""
        return next((item for item in self.items if item.menu_item_id == menu_item_id), None)

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format (items are stored separately).

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "customer_id": self.customer_id,
            "restaurant_id": self.restaurant_id,
            "id": self.id,
        }

    @classmethod
    def from_dynamodb_item(
        cls, item: dict[str, Any], items: list[BasketItem] | None = None
    ) -> "Basket":
        """Create Basket from DynamoDB item.

        Args:
            item: DynamoDB item dictionary
            items: Line items loaded from the items table

        Returns:
            Basket: Parsed model instance
        """
        return cls(
            id=item["id"],
            customer_id=item["customer_id"],
            restaurant_id=item["restaurant_id"],
            items=items or [],
        )
