"""
Reporting over the meal record ledger: per-employee usage, subsidy
summaries, department analysis and receipt text.
"""

from datetime import date
from typing import List, Optional

from ..config.settings import settings
from ..core.database import db_manager, DatabaseManager
from ..core.exceptions import ValidationError
from ..core.timeutils import facility_date, facility_now, period_bounds
from ..models.base import cents_to_units
from ..models.record import (
    DepartmentSupportAnalysis,
    EmployeeUsageStats,
    MealRecord,
    Receipt,
    SupportSummary,
)
from .employee_service import EmployeeService
from .meal_service import MealService
from .record_service import MealRecordService

RECEIPT_FORMATS = ("simple", "detailed")


def _percentage(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 2) if whole else 0.0


class ReportService:
    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager
        self.records = MealRecordService(self.db)
        self.employees = EmployeeService(self.db)
        self.meals = MealService(self.db)

    def employee_usage_stats(self, employee_id: int) -> EmployeeUsageStats:
        self.employees.get_employee(employee_id)
        rows = self.db.fetch_all(
            "SELECT meal_type_id, price_type, COUNT(*) AS meals, "
            "SUM(actual_price_cents) AS amount, SUM(support_amount_cents) AS subsidy "
            "FROM meal_records WHERE employee_id = ? GROUP BY meal_type_id, price_type",
            [employee_id],
        )
        stats = EmployeeUsageStats()
        for row in rows:
            stats.total_meals += row["meals"]
            stats.total_amount_cents += int(row["amount"])
            stats.total_subsidy_cents += int(row["subsidy"])
            if row["price_type"] == "subsidized":
                stats.supported_meals += row["meals"]
            else:
                stats.normal_meals += row["meals"]
            type_id = row["meal_type_id"]
            stats.meal_counts[type_id] = stats.meal_counts.get(type_id, 0) + row["meals"]
            stats.meal_amounts_cents[type_id] = stats.meal_amounts_cents.get(type_id, 0) + int(row["amount"])
        return stats

    def support_summary(self, period: str = "monthly", today: Optional[date] = None) -> SupportSummary:
        start, end = self._bounds(period, today)
        totals = self.db.fetch_one(
            """
            SELECT COUNT(*) AS total_meals,
                   COUNT(*) FILTER (WHERE price_type = 'subsidized') AS supported_meals,
                   COALESCE(SUM(actual_price_cents), 0) AS revenue,
                   COALESCE(SUM(support_amount_cents), 0) AS subsidy,
                   COALESCE(SUM(normal_price_cents), 0) AS potential,
                   COUNT(DISTINCT CASE WHEN price_type = 'subsidized' THEN employee_id END) AS supported_employees
            FROM meal_records
            WHERE redemption_date BETWEEN ? AND ?
            """,
            [start, end],
        )
        active = self.db.fetch_one("SELECT COUNT(*) AS n FROM employees WHERE is_active")["n"]
        return SupportSummary(
            period=period,
            start_date=start,
            end_date=end,
            total_meals=totals["total_meals"],
            supported_meals=totals["supported_meals"],
            normal_meals=totals["total_meals"] - totals["supported_meals"],
            total_revenue_cents=int(totals["revenue"]),
            total_subsidy_cents=int(totals["subsidy"]),
            potential_revenue_cents=int(totals["potential"]),
            supported_employees=totals["supported_employees"],
            total_employees=active,
            support_percentage=_percentage(totals["supported_meals"], totals["total_meals"]),
        )

    def department_analysis(self, period: str = "monthly",
                            today: Optional[date] = None) -> List[DepartmentSupportAnalysis]:
        start, end = self._bounds(period, today)
        rows = self.db.fetch_all(
            """
            SELECT COALESCE(e.department, 'Unassigned') AS department,
                   COUNT(DISTINCT e.id) AS total_employees,
                   COUNT(DISTINCT CASE WHEN e.eligible_for_support THEN e.id END) AS eligible_employees,
                   COUNT(DISTINCT CASE WHEN r.price_type = 'subsidized' THEN r.employee_id END) AS employees_using_support,
                   COUNT(r.id) AS total_meals,
                   COUNT(r.id) FILTER (WHERE r.price_type = 'subsidized') AS supported_meals,
                   COALESCE(SUM(r.actual_price_cents), 0) AS revenue,
                   COALESCE(SUM(r.support_amount_cents), 0) AS subsidy
            FROM employees e
            LEFT JOIN meal_records r
              ON r.employee_id = e.id AND r.redemption_date BETWEEN ? AND ?
            WHERE e.is_active
            GROUP BY 1
            ORDER BY 1
            """,
            [start, end],
        )
        return [
            DepartmentSupportAnalysis(
                department=row["department"],
                total_employees=row["total_employees"],
                eligible_employees=row["eligible_employees"],
                employees_using_support=row["employees_using_support"],
                total_meals=row["total_meals"],
                supported_meals=row["supported_meals"],
                total_revenue_cents=int(row["revenue"]),
                total_subsidy_cents=int(row["subsidy"]),
                eligibility_percentage=_percentage(row["eligible_employees"], row["total_employees"]),
            )
            for row in rows
        ]

    def receipt(self, record_id: int, fmt: str = "detailed") -> Receipt:
        if fmt not in RECEIPT_FORMATS:
            raise ValidationError(f"Receipt format must be one of {', '.join(RECEIPT_FORMATS)}")
        record = self.records.get_record(record_id)
        employee = self.employees.get_employee(record.employee_id)
        meal_type = self.meals.get_meal_type(record.meal_type_id)
        return Receipt(
            receipt_text=render_receipt(record, employee.short_code, meal_type.name, fmt),
            order_number=record.order_number or "N/A",
            timestamp=record.recorded_at,
            format=fmt,
        )

    def _bounds(self, period: str, today: Optional[date]):
        try:
            return period_bounds(period, today or facility_date(facility_now()))
        except ValueError as e:
            raise ValidationError(str(e))


def render_receipt(record: MealRecord, short_code: Optional[str], meal_type_name: str,
                   fmt: str = "detailed") -> str:
    currency = settings.currency
    day, _, clock = record.recorded_at.partition("T")
    lines = [
        settings.receipt_header,
        f"Order: {record.order_number or 'N/A'}",
        f"Date: {day}",
        f"Time: {clock[:8]}",
        f"Employee: {short_code or 'Unknown'}",
        f"Meal Type: {meal_type_name}",
        f"Meal Category: {record.meal_name}",
    ]
    if fmt == "detailed":
        for item in record.items:
            lines.append(f"  {item.item_name} x{item.quantity}")
        if record.support_amount_cents:
            lines.append(f"Subsidy: {cents_to_units(record.support_amount_cents):.2f} {currency}")
    lines.append(f"Actual Price: {cents_to_units(record.actual_price_cents):.2f} {currency}")
    lines.append("Thank you for using our service!")
    return "\n".join(lines) + "\n"
