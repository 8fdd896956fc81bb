"""
Redemption guard.

Runs inside the redemption transaction, before anything is written:

- the meal type must be enabled and the category active
- at most one record per (employee, meal type, facility day)
- the selected quantity must fit the category's allowed count
- every item must have enough stock for its requested quantity
"""

import logging
from collections import OrderedDict
from datetime import date
from typing import Iterable, List, Optional, Tuple

from ..core.database import db_manager, DatabaseManager
from ..core.exceptions import (
    AlreadyRedeemedError,
    BusinessRuleError,
    InsufficientAvailabilityError,
    LimitExceededError,
    ValidationError,
)
from ..models.employee import Employee
from ..models.meal import MealCategory, MealItem, MealType
from ..models.record import ItemSelection
from .meal_service import ITEM_COLUMNS

logger = logging.getLogger(__name__)

SelectionLine = Tuple[MealItem, int]


def normalize_selection(selection: Iterable) -> List[ItemSelection]:
    """
    Coerce a selection into ItemSelection entries, merging repeated items.

    Accepts ItemSelection objects, ``{"meal_item_id"/"mealItemId", "quantity"}``
    dicts or ``(item_id, quantity)`` pairs.
    """
    merged: "OrderedDict[int, int]" = OrderedDict()
    for entry in selection or []:
        if isinstance(entry, ItemSelection):
            item_id, quantity = entry.meal_item_id, entry.quantity
        elif isinstance(entry, dict):
            item_id = entry.get("meal_item_id", entry.get("mealItemId"))
            quantity = entry.get("quantity", 1)
        else:
            try:
                item_id, quantity = entry
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid item selection: {entry!r}")

        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError(f"Quantity for item {item_id} must be a whole number")
        if isinstance(item_id, bool) or not isinstance(item_id, int):
            raise ValidationError(f"Invalid meal item id: {item_id!r}")
        if quantity <= 0:
            raise ValidationError(f"Quantity for item {item_id} must be positive")
        merged[item_id] = merged.get(item_id, 0) + quantity

    return [ItemSelection(meal_item_id=item_id, quantity=qty) for item_id, qty in merged.items()]


class RedemptionGuard:
    """Duplicate and limit checks for a redemption attempt."""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def has_used_today(self, employee_id: int, meal_type_id: int, day: date, conn=None) -> bool:
        row = self.db.fetch_one(
            "SELECT 1 AS used FROM meal_records "
            "WHERE employee_id = ? AND meal_type_id = ? AND redemption_date = ?",
            [employee_id, meal_type_id, day],
            conn,
        )
        return row is not None

    def already_redeemed_error(self, employee: Employee, meal_type: MealType) -> AlreadyRedeemedError:
        return AlreadyRedeemedError(
            f"{employee.name} has already used their {meal_type.name} allowance today.",
            details={"employee_id": employee.id, "meal_type_id": meal_type.id,
                     "meal_type": meal_type.name},
        )

    def default_selection(self, conn, category: MealCategory) -> List[ItemSelection]:
        """Selection used by the single-item path: the category's first active item, once."""
        row = self.db.fetch_one(
            "SELECT id FROM meal_items WHERE meal_category_id = ? AND is_active "
            "ORDER BY total_available > 0 DESC, id LIMIT 1",
            [category.id],
            conn,
        )
        if row:
            return [ItemSelection(meal_item_id=row["id"], quantity=1)]

        has_items = self.db.fetch_one(
            "SELECT 1 AS present FROM meal_items WHERE meal_category_id = ? LIMIT 1",
            [category.id],
            conn,
        )
        if has_items:
            raise InsufficientAvailabilityError(
                f"No active items left in {category.name}",
                details={"meal_category_id": category.id},
            )
        return []

    def check_and_reserve(self, conn, employee: Employee, meal_type: MealType,
                          category: MealCategory, selection: Iterable,
                          day: date) -> List[SelectionLine]:
        """Run every check for one attempt and return the resolved item lines."""
        if not meal_type.enabled:
            raise BusinessRuleError(f"{meal_type.name} is not being served")
        if not category.is_active:
            raise BusinessRuleError(f"{category.name} is not available")

        if self.has_used_today(employee.id, meal_type.id, day, conn):
            logger.info("Duplicate %s redemption for employee %s on %s",
                        meal_type.name, employee.id, day)
            raise self.already_redeemed_error(employee, meal_type)

        return self.check_items(conn, category, selection)

    def check_items(self, conn, category: MealCategory, selection: Iterable) -> List[SelectionLine]:
        """Validate a selection against the category cap and per-item stock."""
        lines = normalize_selection(selection)

        total = sum(line.quantity for line in lines)
        if total > category.allowed_count:
            raise LimitExceededError(
                f"You can only select {category.allowed_count} item(s) from {category.name}.",
                details={"meal_category": category.name, "allowed_count": category.allowed_count,
                         "requested": total},
            )

        resolved: List[SelectionLine] = []
        for line in lines:
            row = self.db.fetch_one(
                f"SELECT {ITEM_COLUMNS} FROM meal_items WHERE id = ?", [line.meal_item_id], conn
            )
            if not row or row["meal_category_id"] != category.id:
                raise ValidationError(
                    f"Item {line.meal_item_id} does not belong to {category.name}",
                    details={"meal_item_id": line.meal_item_id},
                )
            item = MealItem(**row)
            if not item.is_active:
                raise ValidationError(f"{item.name} is not available",
                                      details={"meal_item_id": item.id})
            if line.quantity > item.total_available:
                raise InsufficientAvailabilityError(
                    f"Maximum available quantity ({item.total_available}) reached for {item.name}",
                    details={"meal_item": item.name, "meal_item_id": item.id,
                             "total_available": item.total_available,
                             "requested": line.quantity},
                )
            resolved.append((item, line.quantity))
        return resolved
