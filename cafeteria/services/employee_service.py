"""
Employee administration and the support (subsidy) policy.

``eligible_for_support`` is stored on the employee row and recomputed
whenever the salary or the policy changes, so pricing never has to read
the policy itself.
"""

import logging
from typing import List, Optional

from ..core.database import db_manager, DatabaseManager
from ..core.exceptions import DuplicateResourceError, EmployeeNotFoundError
from ..models.employee import CardAssignment, Employee, EmployeeCreate, EmployeeUpdate, SupportConfig
from ..models.user import User
from .identity_service import EMPLOYEE_COLUMNS
from .pricing_service import is_eligible

logger = logging.getLogger(__name__)

SUPPORT_CONFIG_ID = 1


class EmployeeService:
    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def list_employees(self, active_only: bool = False,
                       department: Optional[str] = None) -> List[Employee]:
        conditions, params = [], []
        if active_only:
            conditions.append("is_active")
        if department:
            conditions.append("department = ?")
            params.append(department)
        query = f"SELECT {EMPLOYEE_COLUMNS} FROM employees"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY employee_code"
        return [Employee(**row) for row in self.db.fetch_all(query, params)]

    def get_employee(self, employee_id: int, conn=None) -> Employee:
        row = self.db.fetch_one(
            f"SELECT {EMPLOYEE_COLUMNS} FROM employees WHERE id = ?", [employee_id], conn
        )
        if not row:
            raise EmployeeNotFoundError("Employee not found")
        return Employee(**row)

    def create_employee(self, data: EmployeeCreate, actor: Optional[User] = None) -> Employee:
        with self.db.transaction() as conn:
            existing = self.db.fetch_one(
                "SELECT name FROM employees WHERE employee_code = ?", [data.employee_code], conn
            )
            if existing:
                raise DuplicateResourceError(
                    f"Employee code {data.employee_code} is already used by {existing['name']}"
                )
            eligible = is_eligible(data.salary_cents, self.get_support_config(conn))
            employee_id = conn.execute(
                "INSERT INTO employees(employee_code, name, department, photo_url, salary_cents, "
                "is_active, eligible_for_support) VALUES (?,?,?,?,?,?,?) RETURNING id",
                [data.employee_code, data.name, data.department, data.photo_url,
                 data.salary_cents, data.is_active, eligible],
            ).fetchone()[0]
            self.db.log_action(conn, "employee_create",
                               {"employee_id": employee_id, "employee_code": data.employee_code},
                               user_id=None, actor_id=actor.id if actor else None)
            return self.get_employee(employee_id, conn)

    def update_employee(self, employee_id: int, data: EmployeeUpdate,
                        actor: Optional[User] = None) -> Employee:
        changes = data.model_dump(exclude_unset=True)
        with self.db.transaction() as conn:
            current = self.get_employee(employee_id, conn)
            if "salary_cents" in changes:
                changes["eligible_for_support"] = is_eligible(
                    changes["salary_cents"], self.get_support_config(conn)
                )
            if changes:
                assignments = ", ".join(f"{column} = ?" for column in changes)
                conn.execute(f"UPDATE employees SET {assignments} WHERE id = ?",
                             [*changes.values(), employee_id])
                self.db.log_action(conn, "employee_update",
                                   {"employee_id": employee_id,
                                    "employee_code": current.employee_code,
                                    "fields": sorted(changes)},
                                   actor_id=actor.id if actor else None)
            return self.get_employee(employee_id, conn)

    def assign_card(self, employee_id: int, assignment: CardAssignment,
                    actor: Optional[User] = None) -> Employee:
        """Give an employee a card serial and short code, both unique."""
        with self.db.transaction() as conn:
            employee = self.get_employee(employee_id, conn)

            # card serials and short codes share one namespace
            holder = self.db.fetch_one(
                "SELECT name FROM employees WHERE (card_id = ? OR short_code = ?) AND id <> ?",
                [assignment.card_id, assignment.card_id, employee_id], conn,
            )
            if holder:
                raise DuplicateResourceError(f"Card ID is already assigned to {holder['name']}")

            holder = self.db.fetch_one(
                "SELECT name FROM employees WHERE (short_code = ? OR card_id = ?) AND id <> ?",
                [assignment.short_code, assignment.short_code, employee_id], conn,
            )
            if holder:
                raise DuplicateResourceError(f"Short code is already assigned to {holder['name']}")

            changes = {}
            if assignment.card_id != employee.card_id:
                changes["card_id"] = assignment.card_id
            if assignment.short_code != employee.short_code:
                changes["short_code"] = assignment.short_code
            if changes:
                # indexed columns are only rewritten when they actually change
                assignments = ", ".join(f"{column} = ?" for column in changes)
                conn.execute(f"UPDATE employees SET {assignments} WHERE id = ?",
                             [*changes.values(), employee_id])
            self.db.log_action(conn, "employee_card_assign",
                               {"employee_id": employee_id,
                                "employee_code": employee.employee_code,
                                "previous_card_id": employee.card_id},
                               actor_id=actor.id if actor else None)
            return self.get_employee(employee_id, conn)

    def toggle_status(self, employee_id: int, actor: Optional[User] = None) -> Employee:
        with self.db.transaction() as conn:
            employee = self.get_employee(employee_id, conn)
            conn.execute("UPDATE employees SET is_active = ? WHERE id = ?",
                         [not employee.is_active, employee_id])
            self.db.log_action(conn, "employee_toggle",
                               {"employee_id": employee_id, "is_active": not employee.is_active},
                               actor_id=actor.id if actor else None)
            return self.get_employee(employee_id, conn)

    def delete_employee(self, employee_id: int, actor: Optional[User] = None) -> Optional[Employee]:
        """
        Remove an employee. Employees with meal history are deactivated
        instead and the deactivated row is returned; otherwise None.
        """
        with self.db.transaction() as conn:
            employee = self.get_employee(employee_id, conn)
            history = conn.execute(
                "SELECT COUNT(*) FROM meal_records WHERE employee_id = ?", [employee_id]
            ).fetchone()[0]
            actor_id = actor.id if actor else None
            if history:
                conn.execute("UPDATE employees SET is_active = FALSE WHERE id = ?", [employee_id])
                self.db.log_action(conn, "employee_deactivate",
                                   {"employee_id": employee_id, "meal_records": history},
                                   actor_id=actor_id)
                return self.get_employee(employee_id, conn)

            conn.execute("DELETE FROM employees WHERE id = ?", [employee_id])
            self.db.log_action(conn, "employee_delete",
                               {"employee_id": employee_id, "employee_code": employee.employee_code},
                               actor_id=actor_id)
            return None

    def get_support_config(self, conn=None) -> Optional[SupportConfig]:
        row = self.db.fetch_one(
            "SELECT max_salary_for_support_cents, is_active FROM support_config WHERE id = ?",
            [SUPPORT_CONFIG_ID], conn,
        )
        return SupportConfig(**row) if row else None

    def update_support_config(self, config: SupportConfig,
                              actor: Optional[User] = None) -> SupportConfig:
        """Store the policy and re-evaluate every employee's eligibility with it."""
        with self.db.transaction() as conn:
            exists = self.get_support_config(conn) is not None
            if exists:
                conn.execute(
                    "UPDATE support_config SET max_salary_for_support_cents = ?, is_active = ?, "
                    "updated_at = now() WHERE id = ?",
                    [config.max_salary_for_support_cents, config.is_active, SUPPORT_CONFIG_ID],
                )
            else:
                conn.execute(
                    "INSERT INTO support_config(id, max_salary_for_support_cents, is_active) "
                    "VALUES (?,?,?)",
                    [SUPPORT_CONFIG_ID, config.max_salary_for_support_cents, config.is_active],
                )

            if config.is_active:
                conn.execute(
                    "UPDATE employees SET eligible_for_support = "
                    "COALESCE(salary_cents <= ?, FALSE)",
                    [config.max_salary_for_support_cents],
                )
            else:
                conn.execute("UPDATE employees SET eligible_for_support = FALSE")

            eligible = conn.execute(
                "SELECT COUNT(*) FROM employees WHERE eligible_for_support"
            ).fetchone()[0]
            self.db.log_action(conn, "support_config_update",
                               {**config.model_dump(), "eligible_employees": eligible},
                               actor_id=actor.id if actor else None)
            logger.info("Support policy updated, %d employees eligible", eligible)
            return self.get_support_config(conn)
