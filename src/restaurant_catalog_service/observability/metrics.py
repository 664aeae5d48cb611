"""Custom metrics for restaurant catalog service."""

from opentelemetry import metrics

# Get meter for catalog service
meter = metrics.get_meter("catalog-svc")

categories_created_counter = meter.create_counter(
    name="categories_created_total",
    description="Total number of categories created",
    unit="1",
)

menu_items_created_counter = meter.create_counter(
    name="menu_items_created_total",
    description="Total number of menu items created",
    unit="1",
)

# Sibling shifts caused by repositioning or gap closing
sort_order_shift_counter = meter.create_counter(
    name="sort_order_shifts_total",
    description="Total number of sibling sort order shifts by scope kind",
    unit="1",
)

basket_items_changed_counter = meter.create_counter(
    name="basket_items_changed_total",
    description="Total number of basket item changes by action",
    unit="1",
)

baskets_pruned_counter = meter.create_counter(
    name="baskets_pruned_total",
    description="Total number of baskets deleted because they were empty or cleared",
    unit="1",
)

store_error_counter = meter.create_counter(
    name="catalog_store_error_total",
    description="Total number of unexpected store failures by action",
    unit="1",
)


def record_category_created() -> None:
    """Record a created category."""
    categories_created_counter.add(1)


def record_menu_item_created() -> None:
    """Record a created menu item."""
    menu_items_created_counter.add(1)


def record_sort_order_shift(scope_kind: str, shifted: int) -> None:
    """Record siblings shifted by a reposition.

    Args:
        scope_kind: Kind of scope ("category" or "menu_item")
        shifted: Number of siblings whose sort order changed
    """
    if shifted:
        sort_order_shift_counter.add(shifted, {"scope_kind": scope_kind})


def record_basket_item_change(action: str) -> None:
    """Record a basket item change.

    Args:
        action: "added", "updated" or "removed"
    """
    basket_items_changed_counter.add(1, {"action": action})


def record_basket_pruned(reason: str) -> None:
    """Record a deleted basket.

    Args:
        reason: "empty" when pruned on observation, "cleared" when cleared explicitly
    """
    baskets_pruned_counter.add(1, {"reason": reason})


def record_store_error(action: str) -> None:
    """Record an unexpected store failure.

    Args:
        action: The operation that failed
    """
    store_error_counter.add(1, {"action": action})
