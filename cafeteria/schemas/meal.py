"""
Meal type, category and item request/response schemas.
"""

from pydantic import Field

from .common import CamelModel
from ..models.meal import (
    MealCategory,
    MealCategoryCreate,
    MealCategoryUpdate,
    MealItem,
    MealItemCreate,
    MealItemUpdate,
    MealType,
    MealTypeCreate,
    MealTypeUpdate,
)


class MealTypeCreateRequest(CamelModel, MealTypeCreate):
    pass


class MealTypeUpdateRequest(CamelModel, MealTypeUpdate):
    pass


class MealTypeResponse(CamelModel, MealType):
    pass


class MealCategoryCreateRequest(CamelModel, MealCategoryCreate):
    pass


class MealCategoryUpdateRequest(CamelModel, MealCategoryUpdate):
    pass


class MealCategoryResponse(CamelModel, MealCategory):
    pass


class MealItemCreateRequest(CamelModel, MealItemCreate):
    pass


class MealItemUpdateRequest(CamelModel, MealItemUpdate):
    pass


class AvailabilityRequest(CamelModel):
    total_available: int = Field(..., ge=0, description="Units left in stock")


class MealItemResponse(CamelModel, MealItem):
    pass
