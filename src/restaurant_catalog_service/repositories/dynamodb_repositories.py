"""DynamoDB repository classes for catalog and basket models.

Table layout:
    categories      PK id, GSI restaurant_id-sort_order-index
    menu items      PK id, GSI category_id-sort_order-index
    title guards    PK guard_key ("category#<restaurant_id>#<title>")
    baskets         PK customer_id, SK restaurant_id, GSI id-index
    basket items    PK basket_id, SK id

Title uniqueness is enforced by writing a guard item with
``attribute_not_exists`` in the same transaction as the record itself.
Multi-record writes go through ``TransactWriteItems``.

Reads let ClientError propagate; the service layer logs and wraps it.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from restaurant_catalog_service.exceptions import ValidationError
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

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

logger = logging.getLogger(__name__)

CATEGORY_SORT_INDEX = "restaurant_id-sort_order-index"
MENU_ITEM_SORT_INDEX = "category_id-sort_order-index"
BASKET_ID_INDEX = "id-index"

# DynamoDB rejects transactions with more actions than this
MAX_TRANSACTION_ACTIONS = 100

_serializer = TypeSerializer()


def serialize(values: dict[str, Any]) -> dict[str, Any]:
    """Convert plain values to low-level DynamoDB attribute values."""
    return {key: _serializer.serialize(value) for key, value in values.items()}


def guard_key(kind: ScopeKind, scope_key: str, title: str) -> str:
    """Key of the item reserving ``title`` within a scope."""
    return f"{kind.value}#{scope_key}#{title}"


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


async def query_all(table: "Table", **kwargs: Any) -> list[dict[str, Any]]:
    """Run a query, following pagination until every item is read."""
    items: list[dict[str, Any]] = []
    while True:
        response = await asyncio.to_thread(table.query, **kwargs)
        items.extend(response.get("Items", []))
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key


async def count_all(table: "Table", **kwargs: Any) -> int:
    """Run a COUNT query, summing counts across pages."""
    total = 0
    while True:
        response = await asyncio.to_thread(table.query, Select="COUNT", **kwargs)
        total += response.get("Count", 0)
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return total
        kwargs["ExclusiveStartKey"] = last_key


class DynamoDBCatalogTransaction(CatalogTransaction):
    """Collects TransactWriteItems actions and commits them in one call.

    Each action is tagged with what its condition protects, so a cancelled
    transaction can be reported as the matching store error.
    """

    def __init__(self, store: "DynamoDBCatalogStore") -> None:
        self.store = store
        self.actions: list[dict[str, Any]] = []
        self.guards: list[str] = []
        # Menu item rows left behind by a category delete, removed after it commits
        self.cascade: list[dict[str, Any]] = []

    def _add(self, action: dict[str, Any], guard: str = "") -> None:
        self.actions.append(action)
        self.guards.append(guard)

    def _put(self, table: "Table", item: dict[str, Any], condition: str, guard: str) -> None:
        self._add(
            {
                "Put": {
                    "TableName": table.name,
                    "Item": serialize(item),
                    "ConditionExpression": condition,
                }
            },
            guard,
        )

    def _delete(
        self, table: "Table", key: dict[str, Any], condition: str | None = None, guard: str = ""
    ) -> None:
        action: dict[str, Any] = {"TableName": table.name, "Key": serialize(key)}
        if condition:
            action["ConditionExpression"] = condition
        self._add({"Delete": action}, guard)

    def _reserve_title(self, kind: ScopeKind, scope_key: str, title: str, owner_id: str) -> None:
        self._put(
            self.store.guards_table,
            {"guard_key": guard_key(kind, scope_key, title), "owner_id": owner_id},
            "attribute_not_exists(guard_key)",
            "title",
        )

    def _release_title(self, kind: ScopeKind, scope_key: str, title: str) -> None:
        self._delete(self.store.guards_table, {"guard_key": guard_key(kind, scope_key, title)})

    async def shift_sort_orders(
        self, scope: SortScope, lower: int, upper: int | None, delta: int
    ) -> int:
        table, index, key_name = self.store.scope_table(scope)
        values: dict[str, Any] = {":key": scope.key, ":lower": lower}
        if upper is None:
            condition = f"{key_name} = :key AND sort_order >= :lower"
        else:
            condition = f"{key_name} = :key AND sort_order BETWEEN :lower AND :upper"
            values[":upper"] = upper

        siblings = await query_all(
            table,
            IndexName=index,
            KeyConditionExpression=condition,
            ExpressionAttributeValues=values,
        )

        now = datetime.now(UTC).isoformat()
        for sibling in siblings:
            # Condition on the value we read so a concurrent move cancels the commit
            self._add(
                {
                    "Update": {
                        "TableName": table.name,
                        "Key": serialize({"id": sibling["id"]}),
                        "UpdateExpression": "SET sort_order = sort_order + :delta, updated_at = :now",
                        "ConditionExpression": "sort_order = :expected",
                        "ExpressionAttributeValues": serialize(
                            {":delta": delta, ":now": now, ":expected": sibling["sort_order"]}
                        ),
                    }
                },
                "shift",
            )
        return len(siblings)

    async def create_category(self, category: Category) -> None:
        self._put(
            self.store.categories_table, category.to_dynamodb_item(), "attribute_not_exists(id)", "id"
        )
        self._reserve_title(ScopeKind.CATEGORY, category.restaurant_id, category.title, category.id)

    async def save_category(self, category: Category, previous: Category) -> None:
        self._put(
            self.store.categories_table, category.to_dynamodb_item(), "attribute_exists(id)", "exists"
        )
        if category.title != previous.title:
            self._release_title(ScopeKind.CATEGORY, previous.restaurant_id, previous.title)
            self._reserve_title(
                ScopeKind.CATEGORY, category.restaurant_id, category.title, category.id
            )

    async def delete_category(self, category: Category) -> None:
        self._delete(
            self.store.categories_table, {"id": category.id}, "attribute_exists(id)", "exists"
        )
        self._release_title(ScopeKind.CATEGORY, category.restaurant_id, category.title)
        for menu_item in await self.store.list_menu_items(category.id):
            self.cascade.append(
                {
                    "Delete": {
                        "TableName": self.store.menu_items_table.name,
                        "Key": serialize({"id": menu_item.id}),
                    }
                }
            )
            self.cascade.append(
                {
                    "Delete": {
                        "TableName": self.store.guards_table.name,
                        "Key": serialize(
                            {
                                "guard_key": guard_key(
                                    ScopeKind.MENU_ITEM, menu_item.category_id, menu_item.title
                                )
                            }
                        ),
                    }
                }
            )

    async def create_menu_item(self, menu_item: MenuItem) -> None:
        self._put(
            self.store.menu_items_table, menu_item.to_dynamodb_item(), "attribute_not_exists(id)", "id"
        )
        self._reserve_title(
            ScopeKind.MENU_ITEM, menu_item.category_id, menu_item.title, menu_item.id
        )

    async def save_menu_item(self, menu_item: MenuItem, previous: MenuItem) -> None:
        self._put(
            self.store.menu_items_table, menu_item.to_dynamodb_item(), "attribute_exists(id)", "exists"
        )
        if menu_item.title != previous.title:
            self._release_title(ScopeKind.MENU_ITEM, previous.category_id, previous.title)
            self._reserve_title(
                ScopeKind.MENU_ITEM, menu_item.category_id, menu_item.title, menu_item.id
            )

    async def delete_menu_item(self, menu_item: MenuItem) -> None:
        self._delete(
            self.store.menu_items_table, {"id": menu_item.id}, "attribute_exists(id)", "exists"
        )
        self._release_title(ScopeKind.MENU_ITEM, menu_item.category_id, menu_item.title)

    async def commit(self) -> None:
        """Send every staged action in a single TransactWriteItems call.

        Menu items of a deleted category are removed afterwards in batches of
        at most ``MAX_TRANSACTION_ACTIONS``; once the category is gone they can
        no longer be reached through it.

        Raises:
            ValidationError: The change touches more records than one transaction allows
            UniqueConstraintViolation: A title guard or id already exists
            RecordNotFound: A record being replaced or deleted is gone
            ClientError: Any other DynamoDB failure
        """
        if not self.actions:
            return

        if len(self.actions) > MAX_TRANSACTION_ACTIONS:
            logger.warning(
                f"Transaction has {len(self.actions)} actions, "
                f"DynamoDB accepts at most {MAX_TRANSACTION_ACTIONS}"
            )
            raise ValidationError(
                f"This change would update {len(self.actions)} records; "
                f"at most {MAX_TRANSACTION_ACTIONS} can change at once."
            )

        await self._transact()
        await self._commit_cascade()

    async def _commit_cascade(self) -> None:
        # Batch size is even so an item's delete and its guard release stay together
        for start in range(0, len(self.cascade), MAX_TRANSACTION_ACTIONS):
            batch = self.cascade[start : start + MAX_TRANSACTION_ACTIONS]
            await asyncio.to_thread(self.store.client.transact_write_items, TransactItems=batch)
        if self.cascade:
            logger.info(f"Removed {len(self.cascade) // 2} menu items of a deleted category")

    async def _transact(self) -> None:
        try:
            await asyncio.to_thread(
                self.store.client.transact_write_items, TransactItems=self.actions
            )
        except ClientError as e:
            if error_code(e) != "TransactionCanceledException":
                raise
            reasons = e.response.get("CancellationReasons", [])
            for guard, reason in zip(self.guards, reasons, strict=False):
                if reason.get("Code") != "ConditionalCheckFailed":
                    continue
                if guard in ("title", "id"):
                    raise UniqueConstraintViolation(guard) from e
                if guard == "exists":
                    raise RecordNotFound("Record was removed before the write committed") from e
            raise


class DynamoDBCatalogStore(CatalogStore):
    """Catalog store backed by DynamoDB tables."""

    def __init__(
        self,
        dynamodb_resource: "DynamoDBServiceResource",
        categories_table_name: str,
        menu_items_table_name: str,
        title_guards_table_name: str,
    ) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            categories_table_name: Name of the categories table
            menu_items_table_name: Name of the menu items table
            title_guards_table_name: Name of the table holding title guards
        """
        self.dynamodb = dynamodb_resource
        self.client = dynamodb_resource.meta.client
        self.categories_table: "Table" = dynamodb_resource.Table(categories_table_name)
        self.menu_items_table: "Table" = dynamodb_resource.Table(menu_items_table_name)
        self.guards_table: "Table" = dynamodb_resource.Table(title_guards_table_name)

    def scope_table(self, scope: SortScope) -> tuple["Table", str, str]:
        """Table, sort index and partition attribute ranking a scope."""
        if scope.kind == ScopeKind.CATEGORY:
            return self.categories_table, CATEGORY_SORT_INDEX, "restaurant_id"
        return self.menu_items_table, MENU_ITEM_SORT_INDEX, "category_id"

    async def _get_guard_owner(self, kind: ScopeKind, scope_key: str, title: str) -> str | None:
        response = await asyncio.to_thread(
            self.guards_table.get_item, Key={"guard_key": guard_key(kind, scope_key, title)}
        )
        if "Item" not in response:
            return None
        owner_id: str = response["Item"]["owner_id"]
        return owner_id

    async def get_category(self, category_id: str) -> Category | None:
        response = await asyncio.to_thread(
            self.categories_table.get_item, Key={"id": category_id}
        )
        if "Item" not in response:
            return None
        return Category.from_dynamodb_item(response["Item"])

    async def list_categories(self, restaurant_id: str) -> list[Category]:
        items = await query_all(
            self.categories_table,
            IndexName=CATEGORY_SORT_INDEX,
            KeyConditionExpression="restaurant_id = :rid",
            ExpressionAttributeValues={":rid": restaurant_id},
            ScanIndexForward=True,
        )
        return [Category.from_dynamodb_item(item) for item in items]

    async def find_category_by_title(self, restaurant_id: str, title: str) -> Category | None:
        owner_id = await self._get_guard_owner(ScopeKind.CATEGORY, restaurant_id, title)
        return await self.get_category(owner_id) if owner_id else None

    async def get_menu_item(self, menu_item_id: str) -> MenuItem | None:
        response = await asyncio.to_thread(
            self.menu_items_table.get_item, Key={"id": menu_item_id}
        )
        if "Item" not in response:
            return None
        return MenuItem.from_dynamodb_item(response["Item"])

    async def list_menu_items(self, category_id: str) -> list[MenuItem]:
        items = await query_all(
            self.menu_items_table,
            IndexName=MENU_ITEM_SORT_INDEX,
            KeyConditionExpression="category_id = :cid",
            ExpressionAttributeValues={":cid": category_id},
            ScanIndexForward=True,
        )
        return [MenuItem.from_dynamodb_item(item) for item in items]

    async def find_menu_item_by_title(self, category_id: str, title: str) -> MenuItem | None:
        owner_id = await self._get_guard_owner(ScopeKind.MENU_ITEM, category_id, title)
        return await self.get_menu_item(owner_id) if owner_id else None

    async def count_in_scope(self, scope: SortScope) -> int:
        table, index, key_name = self.scope_table(scope)
        return await count_all(
            table,
            IndexName=index,
            KeyConditionExpression=f"{key_name} = :key",
            ExpressionAttributeValues={":key": scope.key},
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[CatalogTransaction]:
        tx = DynamoDBCatalogTransaction(self)
        yield tx
        await tx.commit()


class DynamoDBBasketStore(BasketStore):
    """Basket store backed by DynamoDB tables."""

    def __init__(
        self,
        dynamodb_resource: "DynamoDBServiceResource",
        baskets_table_name: str,
        basket_items_table_name: str,
    ) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            baskets_table_name: Name of the baskets table
            basket_items_table_name: Name of the basket items table
        """
        self.dynamodb = dynamodb_resource
        self.client = dynamodb_resource.meta.client
        self.baskets_table: "Table" = dynamodb_resource.Table(baskets_table_name)
        self.items_table: "Table" = dynamodb_resource.Table(basket_items_table_name)

    async def _load_items(self, basket_id: str) -> list[BasketItem]:
        items = await query_all(
            self.items_table,
            KeyConditionExpression="basket_id = :bid",
            ExpressionAttributeValues={":bid": basket_id},
        )
        return [BasketItem.from_dynamodb_item(item) for item in items]

    async def _get_basket_row(self, customer_id: str, restaurant_id: str) -> dict[str, Any] | None:
        response = await asyncio.to_thread(
            self.baskets_table.get_item,
            Key={"customer_id": customer_id, "restaurant_id": restaurant_id},
            ConsistentRead=True,
        )
        return response.get("Item")

    async def find_basket(self, customer_id: str, restaurant_id: str) -> Basket | None:
        row = await self._get_basket_row(customer_id, restaurant_id)
        if row is None:
            return None
        return Basket.from_dynamodb_item(row, await self._load_items(row["id"]))

    async def get_basket_by_id(self, basket_id: str) -> Basket | None:
        rows = await query_all(
            self.baskets_table,
            IndexName=BASKET_ID_INDEX,
            KeyConditionExpression="id = :id",
            ExpressionAttributeValues={":id": basket_id},
        )
        if not rows:
            return None
        return Basket.from_dynamodb_item(rows[0], await self._load_items(basket_id))

    async def get_or_create_basket(self, customer_id: str, restaurant_id: str) -> Basket:
        existing = await self.find_basket(customer_id, restaurant_id)
        if existing is not None:
            return existing

        basket = Basket(
            id=str(uuid.uuid4()), customer_id=customer_id, restaurant_id=restaurant_id
        )
        try:
            await asyncio.to_thread(
                self.baskets_table.put_item,
                Item=basket.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(customer_id)",
            )
            return basket
        except ClientError as e:
            if error_code(e) != "ConditionalCheckFailedException":
                raise
            # Another request created the basket first; use theirs
            logger.info(f"Basket for customer {customer_id} at {restaurant_id} created concurrently")
            winner = await self.find_basket(customer_id, restaurant_id)
            if winner is None:
                raise RecordNotFound("Basket disappeared after a concurrent create") from e
            return winner

    async def add_item(self, item: BasketItem) -> BasketItem:
        try:
            await asyncio.to_thread(
                self.items_table.put_item,
                Item=item.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(id)",
            )
        except ClientError as e:
            if error_code(e) == "ConditionalCheckFailedException":
                raise UniqueConstraintViolation("id") from e
            raise
        return item

    async def update_item(self, item: BasketItem) -> BasketItem:
        try:
            await asyncio.to_thread(
                self.items_table.put_item,
                Item=item.to_dynamodb_item(),
                ConditionExpression="attribute_exists(id)",
            )
        except ClientError as e:
            if error_code(e) == "ConditionalCheckFailedException":
                raise RecordNotFound(f"Basket item {item.id} does not exist") from e
            raise
        return item

    async def delete_item(self, item: BasketItem) -> None:
        try:
            await asyncio.to_thread(
                self.items_table.delete_item,
                Key={"basket_id": item.basket_id, "id": item.id},
                ConditionExpression="attribute_exists(id)",
            )
        except ClientError as e:
            if error_code(e) == "ConditionalCheckFailedException":
                raise RecordNotFound(f"Basket item {item.id} does not exist") from e
            raise

    async def delete_basket(self, basket: Basket) -> None:
        items = await self._load_items(basket.id)
        actions: list[dict[str, Any]] = [
            {
                "Delete": {
                    "TableName": self.items_table.name,
                    "Key": serialize({"basket_id": basket.id, "id": item.id}),
                }
            }
            for item in items
        ]
        actions.append(
            {
                "Delete": {
                    "TableName": self.baskets_table.name,
                    "Key": serialize(
                        {"customer_id": basket.customer_id, "restaurant_id": basket.restaurant_id}
                    ),
                    "ConditionExpression": "id = :id",
                    "ExpressionAttributeValues": serialize({":id": basket.id}),
                }
            }
        )

        try:
            await asyncio.to_thread(self.client.transact_write_items, TransactItems=actions)
        except ClientError as e:
            if error_code(e) == "TransactionCanceledException":
                reasons = e.response.get("CancellationReasons", [])
                if reasons and reasons[-1].get("Code") == "ConditionalCheckFailed":
                    raise RecordNotFound(f"Basket {basket.id} does not exist") from e
            raise