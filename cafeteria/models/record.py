"""
Meal record (redemption ledger) and pricing models.
"""

from pydantic import BaseModel, Field
from datetime import date
from typing import Dict, List, Optional
from enum import Enum
from .base import BaseEntity, cents_to_units


class PriceType(str, Enum):
    NORMAL = "normal"
    SUBSIDIZED = "subsidized"


class RedemptionState(str, Enum):
    """States a single redemption attempt moves through."""
    IDLE = "idle"
    RESOLVING = "resolving"
    PRICING = "pricing"
    GUARDING = "guarding"
    COMMITTING = "committing"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RedemptionState.SUCCESS, RedemptionState.FAILED)


class PricingResult(BaseModel):
    normal_price_cents: int
    subsidized_price_cents: int
    applicable_price_cents: int
    price_type: PriceType
    subsidy_amount_cents: int

    @property
    def applicable_price(self) -> float:
        return cents_to_units(self.applicable_price_cents)

    @property
    def subsidy_amount(self) -> float:
        return cents_to_units(self.subsidy_amount_cents)


class ItemSelection(BaseModel):
    meal_item_id: int
    quantity: int = Field(1, gt=0)


class MealRecordItem(BaseEntity):
    meal_item_id: int
    item_name: str
    quantity: int
    unit_price_cents: int


class MealRecord(BaseEntity):
    """Immutable ledger entry written by the transaction committer."""
    id: int
    order_number: Optional[str] = None
    employee_id: int
    card_id: Optional[str] = None
    meal_type_id: int
    meal_category_id: int
    meal_name: str
    category: str
    price_type: PriceType
    normal_price_cents: int
    subsidized_price_cents: int
    actual_price_cents: int
    support_amount_cents: int
    employee_salary_cents: Optional[int] = None
    redemption_date: date
    recorded_at: str = Field(..., description="ISO-8601 timestamp in facility time")
    recorded_by_user_id: Optional[int] = None
    recorded_by_username: str
    items: List[MealRecordItem] = Field(default_factory=list)

    @property
    def actual_price(self) -> float:
        return cents_to_units(self.actual_price_cents)

    @property
    def support_amount(self) -> float:
        return cents_to_units(self.support_amount_cents)


class EmployeeUsageStats(BaseModel):
    total_meals: int = 0
    total_amount_cents: int = 0
    total_subsidy_cents: int = 0
    supported_meals: int = 0
    normal_meals: int = 0
    meal_counts: Dict[int, int] = Field(default_factory=dict)
    meal_amounts_cents: Dict[int, int] = Field(default_factory=dict)


class SupportSummary(BaseModel):
    period: str
    start_date: date
    end_date: date
    total_meals: int
    supported_meals: int
    normal_meals: int
    total_revenue_cents: int
    total_subsidy_cents: int
    potential_revenue_cents: int
    supported_employees: int
    total_employees: int
    support_percentage: float


class DepartmentSupportAnalysis(BaseModel):
    department: str
    total_employees: int
    eligible_employees: int
    employees_using_support: int
    total_meals: int
    supported_meals: int
    total_revenue_cents: int
    total_subsidy_cents: int
    eligibility_percentage: float


class Receipt(BaseModel):
    receipt_text: str
    order_number: str
    timestamp: str
    format: str
