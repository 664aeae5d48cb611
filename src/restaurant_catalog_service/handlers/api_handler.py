"""FastAPI application for the catalog, basket and search endpoints."""

import logging
from decimal import Decimal
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from restaurant_catalog_service.auth.user_context import (
    UserContext,
    require_any_user,
    require_customer,
    require_restaurant,
)
from restaurant_catalog_service.exceptions import (
    CatalogServiceError,
    DuplicateTitleError,
    NotFoundError,
    RestaurantNotFoundError,
    UnexpectedError,
    ValidationError,
)
from restaurant_catalog_service.models.basket_models import Basket
from restaurant_catalog_service.models.catalog_models import (
    Category,
    MenuItem,
    RestaurantDetails,
    RestaurantSummary,
)
from restaurant_catalog_service.services.basket_service import BasketService
from restaurant_catalog_service.services.catalog_service import CatalogService
from restaurant_catalog_service.services.search_service import SearchService

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal Server Error"

ERROR_STATUS_CODES: dict[type[CatalogServiceError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    RestaurantNotFoundError: 404,
    DuplicateTitleError: 409,
    UnexpectedError: 500,
}


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class MessageResponse(BaseModel):
    """Plain confirmation message."""

    message: str


class CategoryCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=55)
    description: str | None = Field(default=None, max_length=255)


class CategoryUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=55)
    description: str | None = Field(default=None, max_length=255)
    sort_order: int | None = Field(default=None, ge=0)


class MenuItemCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=55)
    description: str | None = Field(default=None, max_length=255)
    price: Decimal = Field(..., gt=0)


class MenuItemUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=55)
    description: str | None = Field(default=None, max_length=255)
    price: Decimal | None = Field(default=None, gt=0)
    sort_order: int | None = Field(default=None, ge=0)


class BasketAddRequest(BaseModel):
    """Add a menu item to the basket, or change its quantity (0 removes it)."""

    restaurant_id: str = Field(..., min_length=1)
    menu_item_id: str = Field(..., min_length=1)
    title: str = Field(default="", max_length=55)
    quantity: int
    price: Decimal = Field(..., ge=0)


class BasketUpdateRequest(BaseModel):
    restaurant_id: str = Field(..., min_length=1)
    item_id: str = Field(..., min_length=1)
    quantity: int
    price: Decimal | None = Field(default=None, ge=0)


class CheckoutRequest(BaseModel):
    restaurant_id: str = Field(..., min_length=1)


class BasketResponse(BaseModel):
    """Basket after a change; ``basket`` is None once the basket is empty."""

    message: str
    basket: Basket | None = None


def status_code_for(error: CatalogServiceError) -> int:
    """Map a domain error to its HTTP status code."""
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def create_app(
    catalog_service: CatalogService,
    basket_service: BasketService,
    search_service: SearchService,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        catalog_service: Service for categories and menu items
        basket_service: Service for customer baskets
        search_service: Service for restaurant details and zip code search

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Restaurant Catalog Service API",
        description="Restaurant categories, menus and customer baskets",
        version="1.0.0",
    )

    # Store services in app state for access in route handlers
    app.state.catalog_service = catalog_service
    app.state.basket_service = basket_service
    app.state.search_service = search_service

    @app.exception_handler(CatalogServiceError)
    async def handle_catalog_error(request: Request, exc: CatalogServiceError) -> JSONResponse:
        status_code = status_code_for(exc)
        message = exc.message if status_code < 500 else GENERIC_ERROR_MESSAGE
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=status_code, content={"message": message})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'Invalid request')}" if location else "Invalid request"
        return JSONResponse(status_code=400, content={"message": message})

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint.

        Returns:
            Health status indicating service is running
        """
        return HealthResponse(status="healthy")

    # Catalog

    @app.post(
        "/restaurant/categories",
        response_model=Category,
        status_code=201,
        tags=["Categories"],
    )
    async def create_category(
        body: CategoryCreateRequest,
        user: Annotated[UserContext, Depends(require_restaurant)],
    ) -> Category:
        """Create a category at the end of the caller's ordering."""
        category: Category = await app.state.catalog_service.create_category(
            title=body.title,
            restaurant_id=user.id,
            description=body.description,
        )
        return category

    @app.get(
        "/restaurant/categories/{category_id}",
        response_model=Category,
        tags=["Categories"],
    )
    async def get_category(
        category_id: str,
        _user: Annotated[UserContext, Depends(require_any_user)],
    ) -> Category:
        category: Category = await app.state.catalog_service.get_category_by_id(category_id)
        return category

    @app.put(
        "/restaurant/categories/{category_id}",
        response_model=Category,
        tags=["Categories"],
    )
    async def update_category(
        category_id: str,
        body: CategoryUpdateRequest,
        user: Annotated[UserContext, Depends(require_restaurant)],
    ) -> Category:
        """Update a category; fields left out of the body are unchanged."""
        category: Category = await app.state.catalog_service.update_category(
            category_id=category_id,
            restaurant_id=user.id,
            title=body.title,
            description=body.description,
            sort_order=body.sort_order,
        )
        return category

    @app.delete(
        "/restaurant/categories/{category_id}",
        response_model=MessageResponse,
        tags=["Categories"],
    )
    async def delete_category(
        category_id: str,
        user: Annotated[UserContext, Depends(require_restaurant)],
    ) -> MessageResponse:
        await app.state.catalog_service.delete_category(category_id, user.id)
        return MessageResponse(message="Category deleted successfully")

    @app.post(
        "/restaurant/categories/{category_id}/menus",
        response_model=MenuItem,
        status_code=201,
        tags=["Menus"],
    )
    async def create_menu_item(
        category_id: str,
        body: MenuItemCreateRequest,
        user: Annotated[UserContext, Depends(require_restaurant)],
    ) -> MenuItem:
        """Create a menu item at the end of the category's ordering."""
        menu_item: MenuItem = await app.state.catalog_service.create_menu_item(
            title=body.title,
            category_id=category_id,
            restaurant_id=user.id,
            price=body.price,
            description=body.description,
        )
        return menu_item

    @app.get(
        "/restaurant/categories/{category_id}/menus",
        response_model=list[MenuItem],
        tags=["Menus"],
    )
    async def get_menu_items_by_category(
        category_id: str,
        _user: Annotated[UserContext, Depends(require_any_user)],
    ) -> list[MenuItem]:
        menu_items: list[MenuItem] = await app.state.catalog_service.get_menu_items_by_category_id(
            category_id
        )
        return menu_items

    @app.get("/restaurant/menus/{menu_item_id}", response_model=MenuItem, tags=["Menus"])
    async def get_menu_item(menu_item_id: str) -> MenuItem:
        menu_item: MenuItem = await app.state.catalog_service.get_menu_item_by_id(menu_item_id)
        return menu_item

    @app.put("/restaurant/menus/{menu_item_id}", response_model=MenuItem, tags=["Menus"])
    async def update_menu_item(
        menu_item_id: str,
        body: MenuItemUpdateRequest,
        user: Annotated[UserContext, Depends(require_restaurant)],
    ) -> MenuItem:
        """Update a menu item; fields left out of the body are unchanged."""
        menu_item: MenuItem = await app.state.catalog_service.update_menu_item(
            menu_item_id=menu_item_id,
            restaurant_id=user.id,
            title=body.title,
            description=body.description,
            price=body.price,
            sort_order=body.sort_order,
        )
        return menu_item

    @app.delete(
        "/restaurant/menus/{menu_item_id}",
        response_model=MessageResponse,
        tags=["Menus"],
    )
    async def delete_menu_item(
        menu_item_id: str,
        user: Annotated[UserContext, Depends(require_restaurant)],
    ) -> MessageResponse:
        await app.state.catalog_service.delete_menu_item(menu_item_id, user.id)
        return MessageResponse(message="Menu deleted successfully")

    @app.get(
        "/restaurant/{restaurant_id}/categories",
        response_model=list[Category],
        tags=["Categories"],
    )
    async def get_categories_by_restaurant(
        restaurant_id: str,
        _user: Annotated[UserContext, Depends(require_any_user)],
    ) -> list[Category]:
        categories: list[Category] = (
            await app.state.catalog_service.get_categories_by_restaurant_id(restaurant_id)
        )
        return categories

    @app.get(
        "/restaurant/{restaurant_id}",
        response_model=RestaurantDetails,
        tags=["Restaurants"],
    )
    async def get_restaurant_details(restaurant_id: str) -> RestaurantDetails:
        """Get a restaurant with its categories and menu items."""
        details: RestaurantDetails = await app.state.search_service.get_restaurant_details(
            restaurant_id
        )
        return details

    # Basket

    @app.get("/basket", response_model=BasketResponse, tags=["Basket"])
    async def get_basket(
        restaurant_id: str,
        user: Annotated[UserContext, Depends(require_customer)],
    ) -> BasketResponse:
        """Get the caller's basket for a restaurant."""
        basket = await app.state.basket_service.get_basket(user.id, restaurant_id)
        if basket is None:
            raise NotFoundError("Basket not found.")
        return BasketResponse(message="Basket retrieved successfully", basket=basket)

    @app.get("/basket/{basket_id}", response_model=BasketResponse, tags=["Basket"])
    async def get_basket_by_id(
        basket_id: str,
        user: Annotated[UserContext, Depends(require_customer)],
    ) -> BasketResponse:
        basket = await app.state.basket_service.get_basket_by_id(user.id, basket_id)
        if basket is None:
            raise NotFoundError("Basket not found.")
        return BasketResponse(message="Basket retrieved successfully", basket=basket)

    @app.post("/basket", response_model=BasketResponse, tags=["Basket"])
    async def add_to_basket(
        body: BasketAddRequest,
        user: Annotated[UserContext, Depends(require_customer)],
    ) -> BasketResponse:
        """Add a menu item to the caller's basket."""
        basket = await app.state.basket_service.add_item(
            customer_id=user.id,
            restaurant_id=body.restaurant_id,
            menu_item_id=body.menu_item_id,
            title=body.title,
            quantity=body.quantity,
            price=body.price,
        )
        return BasketResponse(message="Menu added to basket successfully", basket=basket)

    @app.put("/basket", response_model=BasketResponse, tags=["Basket"])
    async def update_basket(
        body: BasketUpdateRequest,
        user: Annotated[UserContext, Depends(require_customer)],
    ) -> BasketResponse:
        """Change a basket line's quantity; 0 removes it."""
        basket = await app.state.basket_service.update_item(
            customer_id=user.id,
            restaurant_id=body.restaurant_id,
            item_id=body.item_id,
            quantity=body.quantity,
            price=body.price,
        )
        return BasketResponse(message="Basket updated successfully", basket=basket)

    @app.delete("/basket", response_model=MessageResponse, tags=["Basket"])
    async def clear_basket(
        restaurant_id: str,
        user: Annotated[UserContext, Depends(require_customer)],
    ) -> MessageResponse:
        await app.state.basket_service.clear_basket(user.id, restaurant_id)
        return MessageResponse(message="Basket cleared successfully")

    @app.post("/basket/checkout", response_model=MessageResponse, tags=["Basket"])
    async def checkout(
        body: CheckoutRequest,
        user: Annotated[UserContext, Depends(require_customer)],
    ) -> MessageResponse:
        await app.state.basket_service.checkout(user.id, body.restaurant_id)
        return MessageResponse(message="Checkout received")

    # Search

    @app.get(
        "/search/zipcode/{zip_code}",
        response_model=list[RestaurantSummary],
        tags=["Search"],
    )
    async def search_by_zip_code(zip_code: str) -> list[RestaurantSummary]:
        """List restaurants in a Danish zip code."""
        restaurants: list[RestaurantSummary] = (
            await app.state.search_service.get_restaurants_by_zip_code(zip_code)
        )
        return restaurants

    @app.get(
        "/search/zipcode/{zip_code}/category/{category}",
        response_model=list[RestaurantSummary],
        tags=["Search"],
    )
    async def search_by_zip_code_and_category(
        zip_code: str, category: str
    ) -> list[RestaurantSummary]:
        """List restaurants in a zip code having a category with this title."""
        restaurants: list[RestaurantSummary] = (
            await app.state.search_service.get_restaurants_by_zip_code(zip_code, category)
        )
        return restaurants

    return app
