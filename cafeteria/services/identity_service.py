"""
Identity resolution: scanned NFC serial or typed short code -> active employee.
"""

import logging
from typing import Optional

from ..config.settings import settings
from ..core.database import db_manager, DatabaseManager
from ..core.exceptions import EmployeeNotFoundError, ValidationError
from ..models.employee import Employee

logger = logging.getLogger(__name__)

EMPLOYEE_COLUMNS = (
    "id, employee_code, name, department, card_id, short_code, photo_url, "
    "salary_cents, is_active, eligible_for_support, created_at"
)


class IdentityResolver:
    """Read-only employee lookups used by the redemption pipeline."""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def resolve_employee(self, token: str, conn=None) -> Employee:
        """Match ``token`` against card ids and short codes of active employees."""
        token = self._clean(token)
        row = self.db.fetch_one(
            f"SELECT {EMPLOYEE_COLUMNS} FROM employees "
            "WHERE is_active AND (card_id = ? OR short_code = ?) "
            "ORDER BY COALESCE(card_id = ?, FALSE) DESC LIMIT 1",
            [token, token, token],
            conn,
        )
        if not row:
            logger.info("No active employee for token %s", token)
            raise EmployeeNotFoundError()
        return Employee(**row)

    def resolve_by_card(self, card_id: str, conn=None) -> Employee:
        return self._resolve_on("card_id", card_id, conn)

    def resolve_by_code(self, short_code: str, conn=None) -> Employee:
        return self._resolve_on("short_code", short_code, conn)

    def _resolve_on(self, column: str, value: str, conn) -> Employee:
        value = self._clean(value)
        row = self.db.fetch_one(
            f"SELECT {EMPLOYEE_COLUMNS} FROM employees WHERE is_active AND {column} = ?",
            [value],
            conn,
        )
        if not row:
            raise EmployeeNotFoundError()
        return Employee(**row)

    @staticmethod
    def _clean(token: str) -> str:
        token = (token or "").strip()
        if len(token) < settings.station_min_token_length:
            raise ValidationError(
                f"Card or code must be at least {settings.station_min_token_length} characters"
            )
        return token
