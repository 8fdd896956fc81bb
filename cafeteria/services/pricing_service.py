"""
Eligibility and pricing.

Both functions are pure: the result depends only on their arguments.
"""

from typing import Optional

from ..models.employee import Employee, SupportConfig
from ..models.meal import MealCategory
from ..models.record import PriceType, PricingResult


def is_eligible(salary_cents: Optional[int], config: Optional[SupportConfig]) -> bool:
    """An employee qualifies when the policy is active and the salary is at or below its ceiling."""
    if config is None or not config.is_active or salary_cents is None:
        return False
    return salary_cents <= config.max_salary_for_support_cents


def compute_pricing(employee: Employee, category: MealCategory) -> PricingResult:
    """Price a meal category for an employee."""
    if employee.eligible_for_support:
        price_type = PriceType.SUBSIDIZED
        applicable = category.subsidized_price_cents
        subsidy = category.normal_price_cents - category.subsidized_price_cents
    else:
        price_type = PriceType.NORMAL
        applicable = category.normal_price_cents
        subsidy = 0

    return PricingResult(
        normal_price_cents=category.normal_price_cents,
        subsidized_price_cents=category.subsidized_price_cents,
        applicable_price_cents=applicable,
        price_type=price_type,
        subsidy_amount_cents=subsidy,
    )
