"""
Meal record persistence.

``TransactionCommitter`` writes a record, its item lines, the stock
decrements and the audit row on the caller's open transaction, so either
all of them land or none do. ``MealRecordService`` answers read queries
against the ledger.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import duckdb

from ..core.database import db_manager, DatabaseManager
from ..core.exceptions import (
    AlreadyRedeemedError,
    InsufficientAvailabilityError,
    MealRecordNotFoundError,
)
from ..core.timeutils import facility_date
from ..models.employee import Employee
from ..models.meal import MealCategory, MealType
from ..models.record import MealRecord, MealRecordItem, PricingResult
from ..models.user import User
from .redemption_guard import SelectionLine

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

RECORD_COLUMNS = (
    "id, order_number, employee_id, card_id, meal_type_id, meal_category_id, meal_name, "
    "category, price_type, normal_price_cents, subsidized_price_cents, actual_price_cents, "
    "support_amount_cents, employee_salary_cents, redemption_date, recorded_at, "
    "recorded_by_user_id, recorded_by_username"
)


def format_order_number(day: date, record_id: int) -> str:
    return f"{day.strftime('%Y%m%d')}-{record_id:06d}"


class TransactionCommitter:
    """Writes one immutable meal record and its stock movements."""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def commit(self, conn, employee: Employee, meal_type: MealType, category: MealCategory,
               pricing: PricingResult, lines: List[SelectionLine],
               actor: Optional[User], now: datetime) -> MealRecord:
        day = facility_date(now)
        record_id = conn.execute("SELECT nextval('meal_records_id_seq')").fetchone()[0]
        order_number = format_order_number(day, record_id)

        try:
            conn.execute(
                "INSERT INTO meal_records(id, order_number, employee_id, card_id, meal_type_id, "
                "meal_category_id, meal_name, category, price_type, normal_price_cents, "
                "subsidized_price_cents, actual_price_cents, support_amount_cents, "
                "employee_salary_cents, redemption_date, recorded_at, recorded_by_user_id, "
                "recorded_by_username) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)",
                [record_id, order_number, employee.id, employee.card_id, meal_type.id,
                 category.id, category.name, category.category.value, pricing.price_type.value,
                 pricing.normal_price_cents, pricing.subsidized_price_cents,
                 pricing.applicable_price_cents, pricing.subsidy_amount_cents,
                 employee.salary_cents, day, now.isoformat(timespec="seconds"),
                 actor.id if actor else None, actor.username if actor else SYSTEM_ACTOR],
            )
        except duckdb.ConstraintException:
            # another station committed the same (employee, meal type, day) first
            raise AlreadyRedeemedError(
                f"{employee.name} has already used their {meal_type.name} allowance today.",
                details={"employee_id": employee.id, "meal_type_id": meal_type.id,
                         "meal_type": meal_type.name},
            )

        self.write_items(conn, record_id, lines, pricing.applicable_price_cents)

        self.db.log_action(conn, "meal_redeemed", {
            "meal_record_id": record_id,
            "order_number": order_number,
            "meal_type": meal_type.name,
            "meal_category_id": category.id,
            "price_type": pricing.price_type.value,
            "actual_price_cents": pricing.applicable_price_cents,
            "support_amount_cents": pricing.subsidy_amount_cents,
            "items": [{"meal_item_id": item.id, "quantity": qty} for item, qty in lines],
        }, actor_id=actor.id if actor else None)

        return MealRecordService(self.db).get_record(record_id, conn)

    def write_items(self, conn, record_id: int, lines: List[SelectionLine], unit_price_cents: int):
        """Insert item lines and take their quantities out of stock."""
        for item, quantity in lines:
            remaining = conn.execute(
                "UPDATE meal_items SET total_available = total_available - ?, updated_at = now() "
                "WHERE id = ? AND total_available >= ? RETURNING total_available",
                [quantity, item.id, quantity],
            ).fetchone()
            if remaining is None:
                raise InsufficientAvailabilityError(
                    f"Maximum available quantity reached for {item.name}",
                    details={"meal_item": item.name, "meal_item_id": item.id, "requested": quantity},
                )
            conn.execute(
                "INSERT INTO meal_record_items(meal_record_id, meal_item_id, item_name, quantity, "
                "unit_price_cents) VALUES (?,?,?,?,?)",
                [record_id, item.id, item.name, quantity, unit_price_cents],
            )


class MealRecordService:
    """Read access to the meal record ledger."""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def get_record(self, record_id: int, conn=None) -> MealRecord:
        row = self.db.fetch_one(
            f"SELECT {RECORD_COLUMNS} FROM meal_records WHERE id = ?", [record_id], conn
        )
        if not row:
            raise MealRecordNotFoundError(f"Meal record {record_id} not found")
        return MealRecord(**row, items=self._items_for([record_id], conn).get(record_id, []))

    def list_records(self, employee_id: Optional[int] = None,
                     meal_type_id: Optional[int] = None,
                     date_from: Optional[date] = None, date_to: Optional[date] = None,
                     limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        conditions, params = [], []
        if employee_id is not None:
            conditions.append("employee_id = ?")
            params.append(employee_id)
        if meal_type_id is not None:
            conditions.append("meal_type_id = ?")
            params.append(meal_type_id)
        if date_from is not None:
            conditions.append("redemption_date >= ?")
            params.append(date_from)
        if date_to is not None:
            conditions.append("redemption_date <= ?")
            params.append(date_to)
        where = " WHERE " + " AND ".join(conditions) if conditions else ""

        total = self.db.fetch_one(f"SELECT COUNT(*) AS total FROM meal_records{where}", params)["total"]
        rows = self.db.fetch_all(
            f"SELECT {RECORD_COLUMNS} FROM meal_records{where} "
            "ORDER BY recorded_at DESC, id DESC LIMIT ? OFFSET ?",
            [*params, limit, offset],
        )
        items = self._items_for([row["id"] for row in rows])
        records = [MealRecord(**row, items=items.get(row["id"], [])) for row in rows]
        return {"items": records, "total": total, "limit": limit, "offset": offset}

    def _items_for(self, record_ids: List[int], conn=None) -> Dict[int, List[MealRecordItem]]:
        if not record_ids:
            return {}
        placeholders = ",".join("?" * len(record_ids))
        rows = self.db.fetch_all(
            "SELECT meal_record_id, meal_item_id, item_name, quantity, unit_price_cents "
            f"FROM meal_record_items WHERE meal_record_id IN ({placeholders}) ORDER BY id",
            record_ids,
            conn,
        )
        grouped: Dict[int, List[MealRecordItem]] = {}
        for row in rows:
            record_id = row.pop("meal_record_id")
            grouped.setdefault(record_id, []).append(MealRecordItem(**row))
        return grouped
