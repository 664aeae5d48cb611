"""Sort order ranking among sibling catalog entries.

Siblings share a scope (a restaurant's categories, or a category's menu
items). New entries are appended at the end. Moving an entry shifts the
siblings between its old and new position by one so positions stay unique.
"""

import logging
from dataclasses import dataclass

from restaurant_catalog_service.exceptions import ValidationError
from restaurant_catalog_service.repositories.base_repository import (
    CatalogStore,
    CatalogTransaction,
    SortScope,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShiftPlan:
    """Siblings with ``lower <= sort_order <= upper`` move by ``delta``.

    An ``upper`` of None leaves the window open above ``lower``.
    """

    lower: int
    upper: int | None
    delta: int

    def covers(self, position: int) -> bool:
        return position >= self.lower and (self.upper is None or position <= self.upper)


def plan_shift(old_position: int, new_position: int) -> ShiftPlan | None:
    """Work out which siblings move when an entry goes from old to new position.

    Moving down (new > old) pulls ``(old, new]`` up by one; moving up
    (new < old) pushes ``[new, old)`` down by one.

    Returns:
        The shift to apply, or None when the position does not change
    """
    if new_position > old_position:
        return ShiftPlan(lower=old_position + 1, upper=new_position, delta=-1)
    if new_position < old_position:
        return ShiftPlan(lower=new_position, upper=old_position - 1, delta=1)
    return None


def apply_shift(positions: dict[str, int], plan: ShiftPlan | None) -> dict[str, int]:
    """Apply a shift plan to a mapping of entry id to sort order."""
    if plan is None:
        return dict(positions)
    return {
        entry_id: position + plan.delta if plan.covers(position) else position
        for entry_id, position in positions.items()
    }


class OrderingEngine:
    """Maintains sort order among siblings sharing a scope.

    The engine stages writes on a transaction supplied by the caller; the
    caller stages the moved entry's own new position on the same transaction.
    """

    def __init__(self, store: CatalogStore, enforce_bounds: bool = False) -> None:
        """Initialize the engine.

        Args:
            store: Catalog store used for scope counts
            enforce_bounds: Reject moves outside ``[0, size - 1]``
        """
        self.store = store
        self.enforce_bounds = enforce_bounds

    async def next_position(self, scope: SortScope) -> int:
        """Position for a new entry appended to the scope.

        This is the current sibling count. If deletions left gaps it can
        collide with an existing sibling's position.
        """
        return await self.store.count_in_scope(scope)

    async def reposition(
        self,
        tx: CatalogTransaction,
        scope: SortScope,
        old_position: int,
        new_position: int,
    ) -> int:
        """Stage the sibling shifts for an entry moving within its scope.

        Args:
            tx: Open transaction the shifts are staged on
            scope: Scope the entry is ranked in
            old_position: The entry's current sort order
            new_position: The entry's requested sort order

        Returns:
            Number of siblings shifted

        Raises:
            ValidationError: If bounds are enforced and new_position is out of range
        """
        plan = plan_shift(old_position, new_position)
        if plan is None:
            return 0

        if self.enforce_bounds:
            size = await self.store.count_in_scope(scope)
            if new_position < 0 or new_position >= size:
                raise ValidationError(
                    f"sortOrder must be between 0 and {max(size - 1, 0)}, got {new_position}"
                )

        shifted = await tx.shift_sort_orders(scope, plan.lower, plan.upper, plan.delta)
        logger.debug(
            f"Repositioned entry in {scope.kind.value} scope {scope.key} "
            f"from {old_position} to {new_position}, shifted {shifted} siblings"
        )
        return shifted

    async def close_gap(self, tx: CatalogTransaction, scope: SortScope, position: int) -> int:
        """Stage moving every sibling above a removed position down by one."""
        return await tx.shift_sort_orders(scope, position + 1, None, -1)
