"""Restaurant lookups that combine directory records with catalogs."""

import asyncio
import logging
import re

from restaurant_catalog_service.exceptions import NotFoundError, UnexpectedError, ValidationError
from restaurant_catalog_service.models.catalog_models import (
    Restaurant,
    RestaurantDetails,
    RestaurantSummary,
)
from restaurant_catalog_service.observability.decorators import traced
from restaurant_catalog_service.services.catalog_service import CatalogService
from restaurant_catalog_service.services.restaurant_directory_client import (
    RestaurantDirectoryClient,
)

logger = logging.getLogger(__name__)

_ZIP_CODE_PATTERN = re.compile(r"^\d{4}$")


def validate_zip_code(zip_code: str) -> None:
    """Require a Danish zip code: exactly four digits.

    Raises:
        ValidationError: If the zip code is malformed
    """
    if not _ZIP_CODE_PATTERN.match(zip_code or ""):
        raise ValidationError("Invalid Danish zip code")


class SearchService:
    """Read-only queries joining the restaurant directory and the catalog."""

    def __init__(
        self,
        catalog_service: CatalogService,
        restaurant_directory: RestaurantDirectoryClient,
    ) -> None:
        self.catalog_service = catalog_service
        self.restaurant_directory = restaurant_directory

    @traced("search.restaurant_details")
    async def get_restaurant_details(self, restaurant_id: str) -> RestaurantDetails:
        """Get a restaurant's directory record with its full catalog.

        Args:
            restaurant_id: Restaurant to describe

        Returns:
            RestaurantDetails with categories and their menu items in sort order

        Raises:
            NotFoundError: If the directory does not know the restaurant
        """
        restaurant = await self.restaurant_directory.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found.")

        categories = await self.catalog_service.get_catalog(restaurant_id)
        return RestaurantDetails(**restaurant.model_dump(), categories=categories)

    @traced("search.restaurants_by_zip_code")
    async def get_restaurants_by_zip_code(
        self, zip_code: str, category: str | None = None
    ) -> list[RestaurantSummary]:
        """List restaurants in a zip code with their category titles.

        Args:
            zip_code: Danish four-digit zip code
            category: Keep only restaurants with a category of this title
                (case-insensitive exact match)

        Returns:
            Restaurant summaries in directory order

        Raises:
            ValidationError: If the zip code is malformed
            UnexpectedError: If the directory cannot be queried
        """
        validate_zip_code(zip_code)

        restaurants = await self.restaurant_directory.list_by_zip_code(zip_code)
        if restaurants is None:
            raise UnexpectedError("The restaurant directory is unavailable.")

        summaries = await asyncio.gather(*(self._summarize(r) for r in restaurants))

        if category:
            wanted = category.strip().casefold()
            summaries = [
                summary
                for summary in summaries
                if any(title.casefold() == wanted for title in summary.categories)
            ]

        logger.info(f"Found {len(summaries)} restaurants in zip code {zip_code}")
        return list(summaries)

    async def _summarize(self, restaurant: Restaurant) -> RestaurantSummary:
        categories = await self.catalog_service.get_categories_by_restaurant_id(restaurant.id)
        return RestaurantSummary(
            id=restaurant.id,
            name=restaurant.name,
            email=restaurant.email,
            phone=restaurant.phone,
            categories=[c.title for c in categories],
        )
