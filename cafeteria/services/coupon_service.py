"""
Coupon batches and single-use coupon redemption.

A coupon moves from unused to used exactly once. A batch has no active
flag of its own: it is active only while every coupon in it is.
"""

import logging
from typing import List, Optional

from ..core.database import db_manager, DatabaseManager
from ..core.exceptions import BusinessRuleError, CouponNotFoundError, DuplicateResourceError
from ..core.timeutils import facility_now
from ..models.coupon import Coupon, CouponBatch, CouponBatchCreate
from ..models.user import User
from .employee_service import EmployeeService
from .meal_service import MealService

logger = logging.getLogger(__name__)

COUPON_COLUMNS = "id, code, batch_number, is_used, is_active, used_by, used_at"

BATCH_QUERY = """
SELECT b.batch_number, b.title, b.meal_type_id, b.meal_category_id, b.color,
       b.generated_by, b.generated_at,
       COUNT(c.id) AS total_coupons,
       COUNT(c.id) FILTER (WHERE c.is_used) AS used_coupons,
       COALESCE(BOOL_AND(c.is_active), TRUE) AS is_active
FROM coupon_batches b
LEFT JOIN coupons c ON c.batch_number = b.batch_number
"""


class CouponService:
    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager
        self.meals = MealService(self.db)
        self.employees = EmployeeService(self.db)

    def list_batches(self) -> List[CouponBatch]:
        rows = self.db.fetch_all(BATCH_QUERY + " GROUP BY ALL ORDER BY b.generated_at DESC")
        return [CouponBatch(**row) for row in rows]

    def get_batch(self, batch_number: str, conn=None) -> CouponBatch:
        row = self.db.fetch_one(
            BATCH_QUERY + " WHERE b.batch_number = ? GROUP BY ALL", [batch_number], conn
        )
        if not row:
            raise CouponNotFoundError(f"Coupon batch {batch_number} not found")
        return CouponBatch(**row)

    def create_batch(self, data: CouponBatchCreate, actor: User) -> CouponBatch:
        with self.db.transaction() as conn:
            self.meals.get_meal_type(data.meal_type_id, conn)
            if data.meal_category_id is not None:
                category = self.meals.get_category(data.meal_category_id, conn)
                if category.meal_type_id != data.meal_type_id:
                    raise BusinessRuleError(f"{category.name} does not belong to the selected meal type")

            if self.db.fetch_one("SELECT 1 AS present FROM coupon_batches WHERE batch_number = ?",
                                 [data.batch_number], conn):
                raise DuplicateResourceError(f"Batch {data.batch_number} already exists")

            placeholders = ",".join("?" * len(data.codes))
            taken = self.db.fetch_all(
                f"SELECT code FROM coupons WHERE code IN ({placeholders})", data.codes, conn
            )
            if taken:
                raise DuplicateResourceError(
                    "Coupon codes already exist: " + ", ".join(row["code"] for row in taken)
                )

            conn.execute(
                "INSERT INTO coupon_batches(batch_number, title, meal_type_id, meal_category_id, "
                "color, generated_by, generated_at) VALUES (?,?,?,?,?,?,?)",
                [data.batch_number, data.title, data.meal_type_id, data.meal_category_id,
                 data.color, actor.username, facility_now().isoformat(timespec="seconds")],
            )
            conn.executemany(
                "INSERT INTO coupons(code, batch_number) VALUES (?, ?)",
                [[code, data.batch_number] for code in data.codes],
            )
            self.db.log_action(conn, "coupon_batch_create",
                               {"batch_number": data.batch_number, "count": len(data.codes)},
                               actor_id=actor.id)
            return self.get_batch(data.batch_number, conn)

    def list_coupons(self, batch_number: Optional[str] = None) -> List[Coupon]:
        query = f"SELECT {COUPON_COLUMNS} FROM coupons"
        params = []
        if batch_number:
            query += " WHERE batch_number = ?"
            params.append(batch_number)
        query += " ORDER BY id"
        return [Coupon(**row) for row in self.db.fetch_all(query, params)]

    def get_coupon(self, code: str, conn=None) -> Coupon:
        row = self.db.fetch_one(f"SELECT {COUPON_COLUMNS} FROM coupons WHERE code = ?",
                                [code.strip()], conn)
        if not row:
            raise CouponNotFoundError("Coupon not found")
        return Coupon(**row)

    def redeem_coupon(self, code: str, employee_id: int, actor: Optional[User] = None) -> Coupon:
        """Mark a coupon used by an employee. Fails if it is inactive or already used."""
        with self.db.transaction() as conn:
            coupon = self.get_coupon(code, conn)
            self.employees.get_employee(employee_id, conn)
            if not coupon.is_active:
                raise BusinessRuleError("Coupon is not active")

            updated = conn.execute(
                "UPDATE coupons SET is_used = TRUE, used_by = ?, used_at = ? "
                "WHERE id = ? AND NOT is_used RETURNING id",
                [employee_id, facility_now().isoformat(timespec="seconds"), coupon.id],
            ).fetchone()
            if updated is None:
                raise BusinessRuleError("Coupon has already been used")

            self.db.log_action(conn, "coupon_redeem",
                               {"code": coupon.code, "batch_number": coupon.batch_number},
                               user_id=None, actor_id=actor.id if actor else None)
            return self.get_coupon(code, conn)

    def set_batch_active(self, batch_number: str, is_active: bool,
                         actor: Optional[User] = None) -> CouponBatch:
        with self.db.transaction() as conn:
            self.get_batch(batch_number, conn)
            conn.execute("UPDATE coupons SET is_active = ? WHERE batch_number = ?",
                         [is_active, batch_number])
            self.db.log_action(conn, "coupon_batch_toggle",
                               {"batch_number": batch_number, "is_active": is_active},
                               actor_id=actor.id if actor else None)
            return self.get_batch(batch_number, conn)

    def toggle_batch(self, batch_number: str, actor: Optional[User] = None) -> CouponBatch:
        batch = self.get_batch(batch_number)
        return self.set_batch_active(batch_number, not batch.is_active, actor)

    def set_coupon_active(self, code: str, is_active: bool, actor: Optional[User] = None) -> Coupon:
        with self.db.transaction() as conn:
            coupon = self.get_coupon(code, conn)
            conn.execute("UPDATE coupons SET is_active = ? WHERE id = ?", [is_active, coupon.id])
            self.db.log_action(conn, "coupon_toggle", {"code": coupon.code, "is_active": is_active},
                               actor_id=actor.id if actor else None)
            return self.get_coupon(code, conn)

    def delete_batch(self, batch_number: str, actor: Optional[User] = None):
        with self.db.transaction() as conn:
            batch = self.get_batch(batch_number, conn)
            if batch.used_coupons:
                raise BusinessRuleError(f"Batch {batch_number} has used coupons and cannot be deleted")
            conn.execute("DELETE FROM coupons WHERE batch_number = ?", [batch_number])
            conn.execute("DELETE FROM coupon_batches WHERE batch_number = ?", [batch_number])
            self.db.log_action(conn, "coupon_batch_delete", {"batch_number": batch_number},
                               actor_id=actor.id if actor else None)
