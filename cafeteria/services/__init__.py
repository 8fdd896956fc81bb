"""
Business logic services.
"""

from .coupon_service import CouponService
from .employee_service import EmployeeService
from .identity_service import IdentityResolver
from .meal_service import MealService
from .pricing_service import compute_pricing, is_eligible
from .record_service import MealRecordService, TransactionCommitter
from .redemption_guard import RedemptionGuard, normalize_selection
from .redemption_service import RedemptionOutcome, RedemptionService
from .report_service import ReportService
from .user_service import UserService

__all__ = [
    "CouponService",
    "EmployeeService",
    "IdentityResolver",
    "MealService",
    "MealRecordService",
    "RedemptionGuard",
    "RedemptionOutcome",
    "RedemptionService",
    "ReportService",
    "TransactionCommitter",
    "UserService",
    "compute_pricing",
    "is_eligible",
    "normalize_selection",
]
