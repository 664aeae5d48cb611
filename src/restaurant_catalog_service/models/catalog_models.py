"""Catalog data models.

Categories and menu items owned by a restaurant. Both carry a ``sort_order``
ranking them among their siblings: categories within a restaurant, menu items
within a category. Stored in DynamoDB, one table per entity.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


class Category(BaseModel):
    """Menu category owned by a restaurant.

    Title is unique within the restaurant. Stored in DynamoDB with ``id`` as
    partition key and a ``restaurant_id``/``sort_order`` secondary index.
    """

    id: str = Field(..., description="Unique identifier for the category")
    restaurant_id: str = Field(..., description="Restaurant this category belongs to")
    title: str = Field(..., description="Category title, unique per restaurant")
    description: str = Field(default="", description="Category description")
    sort_order: int = Field(default=0, description="Position among the restaurant's categories", ge=0)
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "title": self.title,
            "description": self.description,
            "sort_order": self.sort_order,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Category":
        """Create Category from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Category: Parsed model instance
        """
        return cls(
            id=item["id"],
            restaurant_id=item["restaurant_id"],
            title=item["title"],
            description=item.get("description", ""),
            sort_order=int(item.get("sort_order", 0)),
            created_at=datetime.fromisoformat(item["created_at"]),
            updated_at=datetime.fromisoformat(item["updated_at"]),
        )


class MenuItem(BaseModel):
    """Menu item listed under a category.

    Restaurant ownership is transitive through ``category_id``.
    """

    id: str = Field(..., description="Unique identifier for the menu item")
    category_id: str = Field(..., description="Category this item belongs to")
    title: str = Field(..., description="Item title, unique per category")
    description: str = Field(default="", description="Item description")
    price: Decimal = Field(..., description="Item price", gt=0)
    sort_order: int = Field(default=0, description="Position among the category's items", ge=0)
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Decimal) -> Decimal:
        """Validate that price is positive."""
        if v <= 0:
            raise ValueError("price must be greater than 0")
        return v

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "id": self.id,
            "category_id": self.category_id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "sort_order": self.sort_order,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "MenuItem":
        """Create MenuItem from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            MenuItem: Parsed model instance
        """
        return cls(
            id=item["id"],
            category_id=item["category_id"],
            title=item["title"],
            description=item.get("description", ""),
            price=Decimal(str(item["price"])),
            sort_order=int(item.get("sort_order", 0)),
            created_at=datetime.fromisoformat(item["created_at"]),
            updated_at=datetime.fromisoformat(item["updated_at"]),
        )


class CategoryWithMenuItems(Category):
    """Category together with its menu items, ordered by sort order."""

    menu_items: list[MenuItem] = Field(default_factory=list, description="Items in this category")


class Address(BaseModel):
    """Postal address from the restaurant directory."""

    street: str
    city: str
    state: str | None = None
    zip: str


class Restaurant(BaseModel):
    """Restaurant record as returned by the restaurant directory."""

    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    created_at: datetime | None = None
    address: Address | None = None


class RestaurantDetails(Restaurant):
    """Directory record merged with the restaurant's catalog."""

    categories: list[CategoryWithMenuItems] = Field(default_factory=list)


class RestaurantSummary(BaseModel):
    """Zip-code search result: a restaurant and the titles of its categories."""

    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    categories: list[str] = Field(default_factory=list)
