"""
API routes and endpoints.
"""

from fastapi import APIRouter
from .v1 import auth, coupons, employees, meal_records, meals, reports, users
from ..schemas.common import ErrorResponse

api_router = APIRouter(responses={
    status: {"model": ErrorResponse} for status in (400, 401, 403, 404, 409, 422)
})

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(employees.router, tags=["employees"])
api_router.include_router(meals.router, tags=["meals"])
api_router.include_router(meal_records.router, prefix="/meal-records", tags=["meal records"])
api_router.include_router(reports.router, prefix="/support-reports", tags=["reports"])
api_router.include_router(coupons.router, prefix="/coupons", tags=["coupons"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
