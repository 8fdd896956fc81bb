"""
Meal catalogue service.

Maintains meal types, the priced categories inside them and the stocked
items inside each category. Deletions are refused while redemption
records still point at the row.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..core.database import db_manager, DatabaseManager
from ..core.exceptions import (
    BusinessRuleError,
    CategoryNotFoundError,
    MealItemNotFoundError,
    MealTypeNotFoundError,
    ValidationError,
)
from ..models.meal import (
    MealCategory,
    MealCategoryCreate,
    MealCategoryUpdate,
    MealItem,
    MealItemCreate,
    MealItemUpdate,
    MealType,
    MealTypeCreate,
    MealTypeUpdate,
)
from ..models.user import User

logger = logging.getLogger(__name__)

MEAL_TYPE_COLUMNS = "id, name, base_price_cents, icon, color, enabled, created_at"
CATEGORY_COLUMNS = (
    "id, meal_type_id, name, category, normal_price_cents, subsidized_price_cents, "
    "allowed_count, is_active, created_at"
)
ITEM_COLUMNS = (
    "id, meal_category_id, name, description, image_url, color, total_available, "
    "is_active, created_at, updated_at"
)


def _actor_id(actor: Optional[User]) -> Optional[int]:
    return actor.id if actor else None


def _update_clause(changes: Dict[str, Any]) -> str:
    return ", ".join(f"{column} = ?" for column in changes)


class MealService:
    """CRUD for meal types, categories and items."""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    # meal types

    def list_meal_types(self, enabled_only: bool = False) -> List[MealType]:
        query = f"SELECT {MEAL_TYPE_COLUMNS} FROM meal_types"
        if enabled_only:
            query += " WHERE enabled"
        query += " ORDER BY id"
        return [MealType(**row) for row in self.db.fetch_all(query)]

    def get_meal_type(self, meal_type_id: int, conn=None) -> MealType:
        row = self.db.fetch_one(
            f"SELECT {MEAL_TYPE_COLUMNS} FROM meal_types WHERE id = ?", [meal_type_id], conn
        )
        if not row:
            raise MealTypeNotFoundError(f"Meal type with ID {meal_type_id} not found")
        return MealType(**row)

    def create_meal_type(self, data: MealTypeCreate, actor: Optional[User] = None) -> MealType:
        with self.db.transaction() as conn:
            meal_type_id = conn.execute(
                "INSERT INTO meal_types(name, base_price_cents, icon, color, enabled) "
                "VALUES (?,?,?,?,?) RETURNING id",
                [data.name, data.base_price_cents, data.icon, data.color, data.enabled],
            ).fetchone()[0]
            self.db.log_action(conn, "meal_type_create",
                               {"meal_type_id": meal_type_id, "name": data.name},
                               actor_id=_actor_id(actor))
            return self.get_meal_type(meal_type_id, conn)

    def update_meal_type(self, meal_type_id: int, data: MealTypeUpdate,
                         actor: Optional[User] = None) -> MealType:
        changes = data.model_dump(exclude_unset=True)
        with self.db.transaction() as conn:
            self.get_meal_type(meal_type_id, conn)
            if changes:
                conn.execute(
                    f"UPDATE meal_types SET {_update_clause(changes)} WHERE id = ?",
                    [*changes.values(), meal_type_id],
                )
                self.db.log_action(conn, "meal_type_update",
                                   {"meal_type_id": meal_type_id, "changes": changes},
                                   actor_id=_actor_id(actor))
            return self.get_meal_type(meal_type_id, conn)

    def toggle_meal_type(self, meal_type_id: int, actor: Optional[User] = None) -> MealType:
        current = self.get_meal_type(meal_type_id)
        return self.update_meal_type(meal_type_id, MealTypeUpdate(enabled=not current.enabled), actor)

    def delete_meal_type(self, meal_type_id: int, actor: Optional[User] = None):
        with self.db.transaction() as conn:
            meal_type = self.get_meal_type(meal_type_id, conn)
            in_use = conn.execute(
                "SELECT (SELECT COUNT(*) FROM meal_categories WHERE meal_type_id = ?) + "
                "(SELECT COUNT(*) FROM meal_records WHERE meal_type_id = ?)",
                [meal_type_id, meal_type_id],
            ).fetchone()[0]
            if in_use:
                raise BusinessRuleError(
                    f"Meal type {meal_type.name} is still used by categories or meal records"
                )
            conn.execute("DELETE FROM meal_types WHERE id = ?", [meal_type_id])
            self.db.log_action(conn, "meal_type_delete", {"meal_type_id": meal_type_id},
                               actor_id=_actor_id(actor))

    # categories

    def list_categories(self, meal_type_id: Optional[int] = None,
                        active_only: bool = False) -> List[MealCategory]:
        conditions, params = [], []
        if meal_type_id is not None:
            conditions.append("meal_type_id = ?")
            params.append(meal_type_id)
        if active_only:
            conditions.append("is_active")
        query = f"SELECT {CATEGORY_COLUMNS} FROM meal_categories"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY id"
        return [MealCategory(**row) for row in self.db.fetch_all(query, params)]

    def get_category(self, category_id: int, conn=None) -> MealCategory:
        row = self.db.fetch_one(
            f"SELECT {CATEGORY_COLUMNS} FROM meal_categories WHERE id = ?", [category_id], conn
        )
        if not row:
            raise CategoryNotFoundError(f"Meal category with ID {category_id} not found")
        return MealCategory(**row)

    def create_category(self, data: MealCategoryCreate,
                        actor: Optional[User] = None) -> MealCategory:
        with self.db.transaction() as conn:
            self.get_meal_type(data.meal_type_id, conn)
            category_id = conn.execute(
                "INSERT INTO meal_categories(meal_type_id, name, category, normal_price_cents, "
                "subsidized_price_cents, allowed_count, is_active) VALUES (?,?,?,?,?,?,?) RETURNING id",
                [data.meal_type_id, data.name, data.category.value, data.normal_price_cents,
                 data.subsidized_price_cents, data.allowed_count, data.is_active],
            ).fetchone()[0]
            self.db.log_action(conn, "meal_category_create",
                               {"meal_category_id": category_id, "name": data.name},
                               actor_id=_actor_id(actor))
            return self.get_category(category_id, conn)

    def update_category(self, category_id: int, data: MealCategoryUpdate,
                        actor: Optional[User] = None) -> MealCategory:
        changes = data.model_dump(exclude_unset=True, mode="json")
        with self.db.transaction() as conn:
            current = self.get_category(category_id, conn)
            merged = {**current.model_dump(mode="json"), **changes}
            try:
                MealCategory(**merged)
            except PydanticValidationError as e:
                raise ValidationError(e.errors()[0]["msg"].removeprefix("Value error, "))
            if changes:
                conn.execute(
                    f"UPDATE meal_categories SET {_update_clause(changes)} WHERE id = ?",
                    [*changes.values(), category_id],
                )
                self.db.log_action(conn, "meal_category_update",
                                   {"meal_category_id": category_id, "changes": changes},
                                   actor_id=_actor_id(actor))
            return self.get_category(category_id, conn)

    def toggle_category(self, category_id: int, actor: Optional[User] = None) -> MealCategory:
        current = self.get_category(category_id)
        return self.update_category(category_id, MealCategoryUpdate(is_active=not current.is_active), actor)

    def delete_category(self, category_id: int, actor: Optional[User] = None):
        with self.db.transaction() as conn:
            category = self.get_category(category_id, conn)
            used = conn.execute(
                "SELECT COUNT(*) FROM meal_records WHERE meal_category_id = ?", [category_id]
            ).fetchone()[0]
            used += conn.execute(
                "SELECT COUNT(*) FROM coupon_batches b JOIN coupons c ON c.batch_number = b.batch_number "
                "WHERE b.meal_category_id = ? AND c.is_used",
                [category_id],
            ).fetchone()[0]
            if used:
                raise BusinessRuleError(
                    f"Meal category {category.name} has meal records or used coupons and cannot be deleted"
                )
            conn.execute("DELETE FROM meal_items WHERE meal_category_id = ?", [category_id])
            conn.execute("DELETE FROM meal_categories WHERE id = ?", [category_id])
            self.db.log_action(conn, "meal_category_delete", {"meal_category_id": category_id},
                               actor_id=_actor_id(actor))

    # items

    def list_items(self, category_id: Optional[int] = None,
                   active_only: bool = False) -> List[MealItem]:
        conditions, params = [], []
        if category_id is not None:
            conditions.append("meal_category_id = ?")
            params.append(category_id)
        if active_only:
            conditions.append("is_active")
        query = f"SELECT {ITEM_COLUMNS} FROM meal_items"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY id"
        return [MealItem(**row) for row in self.db.fetch_all(query, params)]

    def get_item(self, item_id: int, conn=None) -> MealItem:
        row = self.db.fetch_one(f"SELECT {ITEM_COLUMNS} FROM meal_items WHERE id = ?", [item_id], conn)
        if not row:
            raise MealItemNotFoundError(f"Meal item with ID {item_id} not found")
        return MealItem(**row)

    def create_item(self, data: MealItemCreate, actor: Optional[User] = None) -> MealItem:
        with self.db.transaction() as conn:
            self.get_category(data.meal_category_id, conn)
            item_id = conn.execute(
                "INSERT INTO meal_items(meal_category_id, name, description, image_url, color, "
                "total_available, is_active) VALUES (?,?,?,?,?,?,?) RETURNING id",
                [data.meal_category_id, data.name, data.description, data.image_url,
                 data.color, data.total_available, data.is_active],
            ).fetchone()[0]
            self.db.log_action(conn, "meal_item_create", {"meal_item_id": item_id, "name": data.name},
                               actor_id=_actor_id(actor))
            return self.get_item(item_id, conn)

    def update_item(self, item_id: int, data: MealItemUpdate,
                    actor: Optional[User] = None) -> MealItem:
        changes = data.model_dump(exclude_unset=True)
        with self.db.transaction() as conn:
            self.get_item(item_id, conn)
            if changes:
                conn.execute(
                    f"UPDATE meal_items SET {_update_clause(changes)}, updated_at = now() WHERE id = ?",
                    [*changes.values(), item_id],
                )
                self.db.log_action(conn, "meal_item_update",
                                   {"meal_item_id": item_id, "changes": changes},
                                   actor_id=_actor_id(actor))
            return self.get_item(item_id, conn)

    def toggle_item(self, item_id: int, actor: Optional[User] = None) -> MealItem:
        current = self.get_item(item_id)
        return self.update_item(item_id, MealItemUpdate(is_active=not current.is_active), actor)

    def set_availability(self, item_id: int, total_available: int,
                         actor: Optional[User] = None) -> MealItem:
        if total_available < 0:
            raise ValidationError("Available quantity cannot be negative")
        return self.update_item(item_id, MealItemUpdate(total_available=total_available), actor)

    def delete_item(self, item_id: int, actor: Optional[User] = None):
        with self.db.transaction() as conn:
            item = self.get_item(item_id, conn)
            used = conn.execute(
                "SELECT COUNT(*) FROM meal_record_items WHERE meal_item_id = ?", [item_id]
            ).fetchone()[0]
            if used:
                raise BusinessRuleError(f"Meal item {item.name} appears on meal records and cannot be deleted")
            conn.execute("DELETE FROM meal_items WHERE id = ?", [item_id])
            self.db.log_action(conn, "meal_item_delete", {"meal_item_id": item_id},
                               actor_id=_actor_id(actor))
