import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from ..core.database import db_manager
from ..core.exceptions import (
    AlreadyRedeemedError,
    BusinessRuleError,
    CategoryNotFoundError,
    EmployeeNotFoundError,
    InsufficientAvailabilityError,
    LimitExceededError,
    PersistenceError,
    ValidationError,
)
from ..models.meal import MealCategoryUpdate, MealItemCreate, MealTypeUpdate
from ..models.record import PriceType, RedemptionState
from ..models.user import Role
from ..services.meal_service import MealService
from ..services.record_service import TransactionCommitter
from ..services.redemption_guard import normalize_selection
from ..services.redemption_service import RedemptionService
from .conftest import FIXED_NOW


def _record_count():
    return db_manager.fetch_one("SELECT COUNT(*) AS n FROM meal_records")["n"]


def _available(item_id):
    return MealService().get_item(item_id).total_available


class TestRedeem:
    """Resolving -> Pricing -> Guarding -> Committing"""

    def test_eligible_employee_lunch(self, seed, redemption_service):
        record = redemption_service.redeem("04A1B2C3D4", seed["c1"].id)

        assert record.price_type == PriceType.SUBSIDIZED
        assert record.actual_price == 30.0
        assert record.support_amount == 20.0
        assert record.normal_price_cents == 5000
        assert record.subsidized_price_cents == 3000
        assert record.employee_id == seed["e1"].id
        assert record.card_id == "04A1B2C3D4"
        assert record.meal_type_id == seed["lunch"].id
        assert record.meal_name == "Lunch Plate"
        assert record.category == "non_fasting"
        assert record.employee_salary_cents == 300000
        assert record.redemption_date == FIXED_NOW.date()
        assert record.recorded_at.startswith("2024-03-12T12:30:00")
        assert record.order_number == f"20240312-{record.id:06d}"

    def test_second_lunch_same_day_is_rejected(self, seed, redemption_service):
        redemption_service.redeem("04A1B2C3D4", seed["c1"].id)

        with pytest.raises(AlreadyRedeemedError) as exc_info:
            redemption_service.redeem("1001", seed["c1"].id)

        assert "lunch" in exc_info.value.message
        assert exc_info.value.message == "Abebe Bikila has already used their lunch allowance today."
        assert _record_count() == 1

    def test_ineligible_employee_pays_normal_price(self, seed, redemption_service):
        record = redemption_service.redeem("04E5F6A7B8", seed["c1"].id)

        assert record.price_type == PriceType.NORMAL
        assert record.actual_price == 50.0
        assert record.support_amount == 0.0

    def test_other_meal_types_are_independent(self, seed, redemption_service):
        redemption_service.redeem("1001", seed["c1"].id)
        redemption_service.redeem("1001", seed["c2"].id, [(seed["i2"].id, 1)])
        redemption_service.redeem("1001", seed["c3"].id)
        assert _record_count() == 3

    def test_next_day_is_allowed(self, seed):
        RedemptionService(clock=lambda: FIXED_NOW).redeem("1001", seed["c1"].id)
        record = RedemptionService(clock=lambda: FIXED_NOW + timedelta(days=1)).redeem(
            "1001", seed["c1"].id)
        assert record.redemption_date == (FIXED_NOW + timedelta(days=1)).date()

    def test_day_follows_facility_timezone(self, seed):
        """22:30 UTC is already the next morning at the facility."""
        late_utc = datetime(2024, 3, 12, 22, 30, tzinfo=timezone.utc)
        first = RedemptionService(clock=lambda: FIXED_NOW).redeem("1001", seed["c1"].id)
        second = RedemptionService(clock=lambda: late_utc).redeem("1001", seed["c1"].id)
        assert first.redemption_date == date(2024, 3, 12)
        assert second.redemption_date == date(2024, 3, 13)

    def test_unknown_employee(self, seed, redemption_service):
        with pytest.raises(EmployeeNotFoundError):
            redemption_service.redeem("5555", seed["c1"].id)

    def test_unknown_category(self, seed, redemption_service):
        with pytest.raises(CategoryNotFoundError):
            redemption_service.redeem("1001", 9999)

    def test_inactive_category_is_refused(self, seed, redemption_service):
        MealService().update_category(seed["c1"].id, MealCategoryUpdate(is_active=False))
        with pytest.raises(BusinessRuleError):
            redemption_service.redeem("1001", seed["c1"].id)
        assert _record_count() == 0

    def test_disabled_meal_type_is_refused(self, seed, redemption_service):
        MealService().update_meal_type(seed["lunch"].id, MealTypeUpdate(enabled=False))
        with pytest.raises(BusinessRuleError):
            redemption_service.redeem("1001", seed["c1"].id)

    def test_records_who_scanned(self, seed, users, redemption_service):
        operator = users[Role.OPERATOR]
        record = redemption_service.redeem("1001", seed["c1"].id, actor=operator)
        assert record.recorded_by_user_id == operator.id
        assert record.recorded_by_username == operator.username

        other = redemption_service.redeem("1002", seed["c1"].id)
        assert other.recorded_by_user_id is None
        assert other.recorded_by_username == "system"

    def test_audit_row_written(self, seed, redemption_service):
        record = redemption_service.redeem("1001", seed["c1"].id)
        row = db_manager.fetch_one("SELECT action, detail_json FROM logs WHERE action = 'meal_redeemed'")
        assert row is not None
        assert record.order_number in row["detail_json"]


class TestItemSelection:

    def test_default_item_is_recorded_and_decremented(self, seed, redemption_service):
        record = redemption_service.redeem("1001", seed["c1"].id)

        assert len(record.items) == 1
        assert record.items[0].meal_item_id == seed["i0"].id
        assert record.items[0].quantity == 1
        assert record.items[0].unit_price_cents == 3000
        assert _available(seed["i0"].id) == 99

    def test_category_without_items_records_meal_only(self, seed, redemption_service):
        record = redemption_service.redeem("1001", seed["c3"].id)
        assert record.items == []

    def test_explicit_empty_selection_is_rejected(self, seed, redemption_service):
        with pytest.raises(ValidationError):
            redemption_service.redeem("1001", seed["c1"].id, [])

        assert db_manager.fetch_one("SELECT COUNT(*) AS n FROM meal_records")["n"] == 0
        assert _available(seed["i0"].id) == 100

    def test_selection_within_limit(self, seed, redemption_service):
        record = redemption_service.redeem(
            "1002", seed["c2"].id, [(seed["i1"].id, 1), (seed["i2"].id, 1)])

        assert {item.meal_item_id: item.quantity for item in record.items} == {
            seed["i1"].id: 1, seed["i2"].id: 1}
        assert _available(seed["i1"].id) == 0
        assert _available(seed["i2"].id) == 4

    def test_selection_over_allowed_count(self, seed, redemption_service):
        with pytest.raises(LimitExceededError) as exc_info:
            redemption_service.redeem("1001", seed["c2"].id, [(seed["i2"].id, 3)])

        assert exc_info.value.message == "You can only select 2 item(s) from Dinner Combo."
        assert _record_count() == 0
        assert _available(seed["i2"].id) == 5

    def test_repeated_items_count_toward_the_limit(self, seed, redemption_service):
        with pytest.raises(LimitExceededError):
            redemption_service.redeem(
                "1001", seed["c2"].id,
                [(seed["i2"].id, 1), (seed["i1"].id, 1), (seed["i2"].id, 1)])

    def test_more_than_available(self, seed, redemption_service):
        with pytest.raises(InsufficientAvailabilityError) as exc_info:
            redemption_service.redeem("1001", seed["c2"].id, [(seed["i1"].id, 2)])

        assert "Shiro" in exc_info.value.message
        assert "(1)" in exc_info.value.message
        assert _record_count() == 0
        assert _available(seed["i1"].id) == 1

    def test_no_partial_decrement(self, seed):
        """A failed decrement on the second line undoes the first line too."""
        meals = MealService()
        lines = [(meals.get_item(seed["i2"].id), 1), (meals.get_item(seed["i1"].id), 2)]
        with pytest.raises(InsufficientAvailabilityError):
            with db_manager.transaction() as conn:
                TransactionCommitter().write_items(conn, 999, lines, 4000)
        assert _available(seed["i2"].id) == 5
        assert _available(seed["i1"].id) == 1

    def test_item_from_another_category(self, seed, redemption_service):
        with pytest.raises(ValidationError):
            redemption_service.redeem("1001", seed["c2"].id, [(seed["i0"].id, 1)])

    def test_inactive_item(self, seed, redemption_service):
        MealService().toggle_item(seed["i2"].id)
        with pytest.raises(ValidationError):
            redemption_service.redeem("1001", seed["c2"].id, [(seed["i2"].id, 1)])

    @pytest.mark.parametrize("quantity", [0, -1, "2", 1.5])
    def test_bad_quantity(self, seed, redemption_service, quantity):
        with pytest.raises(ValidationError):
            redemption_service.redeem("1001", seed["c2"].id, [(seed["i2"].id, quantity)])
        assert _record_count() == 0

    def test_inventory_never_negative(self, seed):
        """Two employees ask for the last unit of Shiro."""
        MealService().set_availability(seed["i1"].id, 1)
        tokens = ["1001", "1002"]
        results = []
        for token in tokens:
            try:
                RedemptionService(clock=lambda: FIXED_NOW).redeem(token, seed["c2"].id, [(seed["i1"].id, 1)])
                results.append("ok")
            except InsufficientAvailabilityError:
                results.append("sold out")

        assert results == ["ok", "sold out"]
        assert _available(seed["i1"].id) == 0


class TestNormalizeSelection:

    def test_merges_duplicates_in_order(self):
        lines = normalize_selection([(3, 1), {"mealItemId": 1, "quantity": 2}, (3, 2)])
        assert [(line.meal_item_id, line.quantity) for line in lines] == [(3, 3), (1, 2)]

    def test_empty_selection(self):
        assert normalize_selection([]) == []
        assert normalize_selection(None) == []

    def test_malformed_entry(self):
        with pytest.raises(ValidationError):
            normalize_selection(["not-a-pair"])


class TestAtomicity:

    def test_failure_after_guard_rolls_everything_back(self, seed, redemption_service, monkeypatch):
        def broken_log(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(db_manager, "log_action", broken_log)

        with pytest.raises(PersistenceError):
            redemption_service.redeem("1001", seed["c2"].id, [(seed["i2"].id, 2)])

        monkeypatch.undo()
        assert _record_count() == 0
        assert _available(seed["i2"].id) == 5
        assert db_manager.fetch_one("SELECT COUNT(*) AS n FROM meal_record_items")["n"] == 0

    def test_storage_unique_index_backs_the_guard(self, seed, redemption_service, monkeypatch):
        """Even if the duplicate check is skipped, the second insert fails as AlreadyRedeemed."""
        redemption_service.redeem("1001", seed["c1"].id)
        monkeypatch.setattr(redemption_service.guard, "has_used_today", lambda *a, **k: False)

        with pytest.raises(AlreadyRedeemedError):
            redemption_service.redeem("1001", seed["c1"].id)
        monkeypatch.undo()
        assert _record_count() == 1
        assert _available(seed["i0"].id) == 99

    def test_concurrent_attempts_commit_once(self, seed):
        """Two stations scan the same card at the same moment."""
        barrier = threading.Barrier(4)
        outcomes = []
        lock = threading.Lock()

        def scan(token):
            service = RedemptionService(clock=lambda: FIXED_NOW)
            barrier.wait()
            outcome = service.attempt(token, seed["c1"].id)
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=scan, args=(token,))
                   for token in ("04A1B2C3D4", "1001", "04A1B2C3D4", "1001")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        succeeded = [o for o in outcomes if o.succeeded]
        failed = [o for o in outcomes if not o.succeeded]
        assert len(succeeded) == 1
        assert len(failed) == 3
        assert all(isinstance(o.error, AlreadyRedeemedError) for o in failed)
        assert _record_count() == 1
        assert _available(seed["i0"].id) == 99


class TestAttempt:

    def test_success_trail(self, seed, redemption_service):
        outcome = redemption_service.attempt("1001", seed["c1"].id)

        assert outcome.succeeded
        assert outcome.state == RedemptionState.SUCCESS
        assert outcome.message == "Meal recorded"
        assert outcome.trail == [
            RedemptionState.IDLE, RedemptionState.RESOLVING, RedemptionState.PRICING,
            RedemptionState.GUARDING, RedemptionState.COMMITTING, RedemptionState.SUCCESS,
        ]

    def test_failure_stops_at_failing_stage(self, seed, redemption_service):
        outcome = redemption_service.attempt("7777", seed["c1"].id)

        assert not outcome.succeeded
        assert outcome.record is None
        assert isinstance(outcome.error, EmployeeNotFoundError)
        assert outcome.message == "Employee not found with this card or code."
        assert outcome.trail == [RedemptionState.IDLE, RedemptionState.RESOLVING, RedemptionState.FAILED]
        assert outcome.state.is_terminal


class TestReadOnlyChecks:

    def test_has_used_today(self, seed, redemption_service):
        assert not redemption_service.has_used_today("1001", seed["lunch"].id)
        redemption_service.redeem("1001", seed["c1"].id)
        assert redemption_service.has_used_today("04A1B2C3D4", seed["lunch"].id)
        assert not redemption_service.has_used_today("1001", seed["dinner"].id)

    def test_quote_records_nothing(self, seed, redemption_service):
        pricing = redemption_service.quote("1002", seed["c1"].id)
        assert pricing.applicable_price_cents == 5000
        assert _record_count() == 0


class TestAttachItems:

    def test_attach_to_record_without_items(self, seed, redemption_service):
        record = redemption_service.redeem("1001", seed["c3"].id)
        item = MealService().create_item(
            MealItemCreate(meal_category_id=seed["c3"].id, name="Chechebsa", total_available=3))

        updated = redemption_service.attach_items(record.id, [(item.id, 1)])

        assert [(i.item_name, i.quantity) for i in updated.items] == [("Chechebsa", 1)]
        assert updated.items[0].unit_price_cents == record.actual_price_cents
        assert _available(item.id) == 2

    def test_attach_refused_when_items_exist(self, seed, redemption_service):
        record = redemption_service.redeem("1001", seed["c1"].id)
        with pytest.raises(BusinessRuleError):
            redemption_service.attach_items(record.id, [(seed["i0"].id, 1)])

    def test_attach_requires_a_selection(self, seed, redemption_service):
        record = redemption_service.redeem("1001", seed["c3"].id)
        with pytest.raises(ValidationError):
            redemption_service.attach_items(record.id, [])
