"""
Application exceptions.

Every failure of the redemption pipeline surfaces as one of these types;
the HTTP layer maps ``error_code`` to a status code in ``error_handler``.
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """Base class for all application errors."""

    default_code = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BaseApplicationError):
    """Malformed input, e.g. a non-numeric quantity or a too short token."""
    default_code = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    default_code = "RESOURCE_NOT_FOUND"


class EmployeeNotFoundError(NotFoundError):
    default_code = "EMPLOYEE_NOT_FOUND"

    def __init__(self, message: str = "Employee not found with this card or code.", **kwargs):
        super().__init__(message, **kwargs)


class MealTypeNotFoundError(NotFoundError):
    default_code = "MEAL_TYPE_NOT_FOUND"


class CategoryNotFoundError(NotFoundError):
    default_code = "MEAL_CATEGORY_NOT_FOUND"


class MealItemNotFoundError(NotFoundError):
    default_code = "MEAL_ITEM_NOT_FOUND"


class MealRecordNotFoundError(NotFoundError):
    default_code = "MEAL_RECORD_NOT_FOUND"


class CouponNotFoundError(NotFoundError):
    default_code = "COUPON_NOT_FOUND"


class UserNotFoundError(NotFoundError):
    default_code = "USER_NOT_FOUND"


class AlreadyRedeemedError(BaseApplicationError):
    """The employee already has a record for this meal type today."""
    default_code = "ALREADY_REDEEMED"


class LimitExceededError(BaseApplicationError):
    """Selected quantity is above the category's allowed item count."""
    default_code = "LIMIT_EXCEEDED"


class InsufficientAvailabilityError(BaseApplicationError):
    """Requested quantity of an item is above its remaining stock."""
    default_code = "INSUFFICIENT_AVAILABILITY"


class DuplicateResourceError(BaseApplicationError):
    default_code = "DUPLICATE_RESOURCE"


class BusinessRuleError(BaseApplicationError):
    default_code = "BUSINESS_RULE_VIOLATION"


class PersistenceError(BaseApplicationError):
    """Storage or commit failure. Nothing of the failed transaction is kept."""
    default_code = "PERSISTENCE_ERROR"


class ConstraintViolationError(PersistenceError):
    """A unique or check constraint rejected a write."""
    default_code = "CONSTRAINT_VIOLATION"


class AuthenticationError(BaseApplicationError):
    default_code = "AUTHENTICATION_REQUIRED"


class PermissionDeniedError(BaseApplicationError):
    default_code = "PERMISSION_DENIED"
