"""Models for events published by the catalog service."""

from datetime import datetime

from pydantic import BaseModel, Field

from restaurant_catalog_service.models.catalog_models import Category, utc_now


class CategoryCreatedEvent(BaseModel):
    """Published to the event bus after a category is created.

    Attributes:
        category_id: The new category
        restaurant_id: Restaurant owning the category
        title: Category title
        sort_order: Position assigned at creation
        timestamp: When the event was produced
    """

    category_id: str
    restaurant_id: str
    title: str
    sort_order: int
    timestamp: datetime = Field(default_factory=utc_now)

    detail_type: str = Field(default="CategoryCreated", exclude=True)

    @classmethod
    def from_category(cls, category: Category) -> "CategoryCreatedEvent":
        return cls(
            category_id=category.id,
            restaurant_id=category.restaurant_id,
            title=category.title,
            sort_order=category.sort_order,
        )
