"""
Meal redemption service.

Turns a scanned card or code into a priced, recorded meal:

    Resolving -> Pricing -> Guarding -> Committing -> Success | Failed

Every stage runs inside one ``transaction()``. The transaction holds the
database lock, so the duplicate check and the insert that follows it
cannot interleave with another station's attempt; the unique index on
meal_records catches anything that slips past the check anyway.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from ..core.database import db_manager, DatabaseManager
from ..core.exceptions import BaseApplicationError, BusinessRuleError, ValidationError
from ..core.timeutils import facility_date, facility_now
from ..models.record import MealRecord, PricingResult, RedemptionState
from ..models.user import User
from .identity_service import IdentityResolver
from .meal_service import MealService
from .pricing_service import compute_pricing
from .record_service import MealRecordService, TransactionCommitter
from .redemption_guard import RedemptionGuard

logger = logging.getLogger(__name__)


@dataclass
class RedemptionOutcome:
    """Terminal result of one attempt; exactly one of record/error is set."""
    state: RedemptionState
    record: Optional[MealRecord] = None
    error: Optional[BaseApplicationError] = None
    trail: List[RedemptionState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == RedemptionState.SUCCESS

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.message
        return "Meal recorded"


class RedemptionService:
    """Runs the redemption pipeline for scanning stations."""

    def __init__(self, db: Optional[DatabaseManager] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.db = db or db_manager
        self.clock = clock or facility_now
        self.identity = IdentityResolver(self.db)
        self.meals = MealService(self.db)
        self.guard = RedemptionGuard(self.db)
        self.committer = TransactionCommitter(self.db)
        self.records = MealRecordService(self.db)

    def redeem(self, token: str, meal_category_id: int,
               selection: Optional[Iterable] = None,
               actor: Optional[User] = None,
               trail: Optional[List[RedemptionState]] = None) -> MealRecord:
        """
        Redeem one meal.

        ``selection`` is a list of (meal_item_id, quantity); None means the
        single-item path, which picks the category's first active item.

        Raises EmployeeNotFoundError, CategoryNotFoundError,
        AlreadyRedeemedError, LimitExceededError,
        InsufficientAvailabilityError, ValidationError or PersistenceError.
        """
        trail = trail if trail is not None else []
        now = self.clock()
        day = facility_date(now)

        with self.db.transaction() as conn:
            self._enter(trail, RedemptionState.RESOLVING)
            employee = self.identity.resolve_employee(token, conn)

            self._enter(trail, RedemptionState.PRICING)
            category = self.meals.get_category(meal_category_id, conn)
            meal_type = self.meals.get_meal_type(category.meal_type_id, conn)
            pricing = compute_pricing(employee, category)

            self._enter(trail, RedemptionState.GUARDING)
            if selection is None:
                selection = self.guard.default_selection(conn, category)
            else:
                selection = list(selection)
                if not selection:
                    raise ValidationError("At least one item must be selected")
            lines = self.guard.check_and_reserve(conn, employee, meal_type, category, selection, day)

            self._enter(trail, RedemptionState.COMMITTING)
            record = self.committer.commit(conn, employee, meal_type, category, pricing,
                                           lines, actor, now)

        logger.info("Recorded %s for employee %s (%s, %d cents)", meal_type.name,
                    employee.employee_code, pricing.price_type.value,
                    pricing.applicable_price_cents)
        return record

    def attempt(self, token: str, meal_category_id: int,
                selection: Optional[Iterable] = None,
                actor: Optional[User] = None) -> RedemptionOutcome:
        """Run ``redeem`` and fold any typed failure into a RedemptionOutcome."""
        trail = [RedemptionState.IDLE]
        try:
            record = self.redeem(token, meal_category_id, selection, actor, trail)
        except BaseApplicationError as e:
            logger.warning("Redemption failed in %s: %s (%s)", trail[-1].value, e.message, e.error_code)
            trail.append(RedemptionState.FAILED)
            return RedemptionOutcome(state=RedemptionState.FAILED, error=e, trail=trail)
        trail.append(RedemptionState.SUCCESS)
        return RedemptionOutcome(state=RedemptionState.SUCCESS, record=record, trail=trail)

    def has_used_today(self, token: str, meal_type_id: int) -> bool:
        """Read-only duplicate check for a card/code and meal type."""
        employee = self.identity.resolve_employee(token)
        self.meals.get_meal_type(meal_type_id)
        return self.guard.has_used_today(employee.id, meal_type_id, facility_date(self.clock()))

    def quote(self, token: str, meal_category_id: int) -> PricingResult:
        """Price a category for an employee without recording anything."""
        employee = self.identity.resolve_employee(token)
        category = self.meals.get_category(meal_category_id)
        return compute_pricing(employee, category)

    def attach_items(self, record_id: int, selection: Iterable,
                     actor: Optional[User] = None) -> MealRecord:
        """Add item lines to a record that was committed without any."""
        with self.db.transaction() as conn:
            record = self.records.get_record(record_id, conn)
            if record.items:
                raise BusinessRuleError(f"Meal record {record.order_number} already has items")
            category = self.meals.get_category(record.meal_category_id, conn)
            lines = self.guard.check_items(conn, category, selection)
            if not lines:
                raise ValidationError("At least one item must be selected")
            self.committer.write_items(conn, record_id, lines, record.actual_price_cents)
            self.db.log_action(conn, "meal_record_items_attached", {
                "meal_record_id": record_id,
                "items": [{"meal_item_id": item.id, "quantity": qty} for item, qty in lines],
            }, actor_id=actor.id if actor else None)
            return self.records.get_record(record_id, conn)

    @staticmethod
    def _enter(trail: List[RedemptionState], state: RedemptionState):
        trail.append(state)
        logger.debug("Redemption state -> %s", state.value)
