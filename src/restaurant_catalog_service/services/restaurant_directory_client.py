"""Client for the restaurant directory owned by the auth service."""

import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from restaurant_catalog_service.models.catalog_models import Restaurant

logger = logging.getLogger(__name__)


class RestaurantDirectoryClient:
    """HTTP client answering questions about restaurants.

    The directory is the source of truth for restaurant records; this service
    only owns their catalogs. Failures are logged and reported as None/False
    so callers can decide how an unreachable directory should be treated.
    """

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 5.0) -> None:
        """Initialize the directory client.

        Args:
            base_url: Base URL of the directory API (e.g., "https://auth.example.com")
            api_key: API key for service-to-service authentication
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"X-API-Key": self.api_key} if self.api_key else {}

    async def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        """Fetch a restaurant record.

        Args:
            restaurant_id: The restaurant to look up

        Returns:
            Restaurant if found, None if unknown or on failure
        """
        url = f"{self.base_url}/api/restaurants/{restaurant_id}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self._headers())
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                data = response.json()

                return Restaurant(**data.get("restaurant", data))

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to fetch restaurant {restaurant_id}: {e}")
            return None
        except (PydanticValidationError, TypeError, ValueError) as e:
            logger.error(f"Malformed directory response for restaurant {restaurant_id}: {e}")
            return None

    async def exists(self, restaurant_id: str) -> bool:
        """Check whether the directory knows a restaurant.

        An unreachable directory counts as "does not exist".

        Args:
            restaurant_id: The restaurant to look up

        Returns:
            True if the restaurant exists, False otherwise
        """
        if not restaurant_id:
            return False

        url = f"{self.base_url}/api/restaurants/{restaurant_id}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self._headers())
                return response.status_code == 200

        except httpx.RequestError as e:
            logger.error(f"Restaurant directory unreachable checking {restaurant_id}: {e}")
            return False

    async def list_by_zip_code(self, zip_code: str) -> list[Restaurant] | None:
        """List restaurants located in a zip code.

        Args:
            zip_code: Zip code to search

        Returns:
            List of restaurants, empty list if none, or None on failure
        """
        url = f"{self.base_url}/api/restaurants/zipcode/{zip_code}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self._headers())
                response.raise_for_status()
                data = response.json()

                return [Restaurant(**item) for item in data.get("restaurants", [])]

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to list restaurants for zip code {zip_code}: {e}")
            return None
        except (PydanticValidationError, TypeError, ValueError) as e:
            logger.error(f"Malformed directory response for zip code {zip_code}: {e}")
            return None
