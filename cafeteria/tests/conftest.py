"""
Test fixtures: an in-memory database per test, seeded reference data,
a fixed facility clock and an API client with per-role tokens.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from ..api.v1.deps import get_redemption_service
from ..app import create_app
from ..core.database import db_manager
from ..core.security import security_manager
from ..models.employee import CardAssignment, EmployeeCreate, SupportConfig
from ..models.meal import MealCategoryCreate, MealItemCreate, MealTypeCreate
from ..models.user import Role, UserCreate
from ..services.employee_service import EmployeeService
from ..services.meal_service import MealService
from ..services.redemption_service import RedemptionService
from ..services.user_service import UserService

FIXED_NOW = datetime(2024, 3, 12, 12, 30, tzinfo=ZoneInfo("Africa/Addis_Ababa"))


@pytest.fixture(autouse=True)
def test_db():
    """Fresh in-memory database for every test."""
    db_manager.configure(":memory:")
    yield db_manager
    db_manager.close()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def redemption_service(clock):
    return RedemptionService(clock=clock)


@pytest.fixture
def seed(test_db):
    """
    Reference data shared by most tests.

    e1 earns below the support ceiling, e2 above it, e3 is inactive.
    lunch/c1: 50.00 normal, 30.00 subsidized, one item.
    dinner/c2: two items allowed, i1 has a single unit left.
    breakfast/c3: no items at all.
    """
    employees = EmployeeService()
    meals = MealService()

    employees.update_support_config(SupportConfig(max_salary_for_support_cents=500000, is_active=True))

    def employee(code, name, department, salary, card, short_code, active=True):
        created = employees.create_employee(EmployeeCreate(
            employee_code=code, name=name, department=department,
            salary_cents=salary, is_active=active,
        ))
        return employees.assign_card(created.id, CardAssignment(card_id=card, short_code=short_code))

    e1 = employee("EMP-001", "Abebe Bikila", "Kitchen", 300000, "04A1B2C3D4", "1001")
    e2 = employee("EMP-002", "Tirunesh Dibaba", "Finance", 900000, "04E5F6A7B8", "1002")
    e3 = employee("EMP-003", "Haile Gebrselassie", "Finance", 200000, "04C9D0E1F2", "1003", active=False)

    breakfast = meals.create_meal_type(MealTypeCreate(name="breakfast", base_price_cents=2000))
    lunch = meals.create_meal_type(MealTypeCreate(name="lunch", base_price_cents=5000))
    dinner = meals.create_meal_type(MealTypeCreate(name="dinner", base_price_cents=6000))

    c1 = meals.create_category(MealCategoryCreate(
        meal_type_id=lunch.id, name="Lunch Plate", category="non_fasting",
        normal_price_cents=5000, subsidized_price_cents=3000, allowed_count=1,
    ))
    i0 = meals.create_item(MealItemCreate(meal_category_id=c1.id, name="Tibs", total_available=100))

    c2 = meals.create_category(MealCategoryCreate(
        meal_type_id=dinner.id, name="Dinner Combo", category="fasting",
        normal_price_cents=6000, subsidized_price_cents=4000, allowed_count=2,
    ))
    i1 = meals.create_item(MealItemCreate(meal_category_id=c2.id, name="Shiro", total_available=1))
    i2 = meals.create_item(MealItemCreate(meal_category_id=c2.id, name="Misir", total_available=5))

    c3 = meals.create_category(MealCategoryCreate(
        meal_type_id=breakfast.id, name="Firfir", normal_price_cents=2000,
        subsidized_price_cents=1000,
    ))

    return {
        "e1": e1, "e2": e2, "e3": e3,
        "breakfast": breakfast, "lunch": lunch, "dinner": dinner,
        "c1": c1, "c2": c2, "c3": c3,
        "i0": i0, "i1": i1, "i2": i2,
    }


@pytest.fixture
def users(test_db):
    service = UserService()
    return {
        role: service.create_user(UserCreate(username=f"{role.value}1", password="secret123", role=role))
        for role in Role
    }


def _headers(user):
    token = security_manager.create_jwt_token(user.username, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def operator_headers(users):
    return _headers(users[Role.OPERATOR])


@pytest.fixture
def manager_headers(users):
    return _headers(users[Role.MANAGER])


@pytest.fixture
def admin_headers(users):
    return _headers(users[Role.ADMIN])


@pytest.fixture
def app_instance(clock):
    app = create_app()
    app.dependency_overrides[get_redemption_service] = lambda: RedemptionService(clock=clock)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_instance):
    return TestClient(app_instance)
