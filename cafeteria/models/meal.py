"""
Meal type, category and item models.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional
from enum import Enum
from .base import BaseEntity, TimestampMixin, cents_to_units


class CategoryKind(str, Enum):
    FASTING = "fasting"
    NON_FASTING = "non_fasting"


class MealTypeBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="e.g. breakfast, lunch, dinner")
    base_price_cents: int = Field(0, ge=0)
    icon: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=100)
    enabled: bool = True


class MealTypeCreate(MealTypeBase):
    pass


class MealTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    base_price_cents: Optional[int] = Field(None, ge=0)
    icon: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=100)
    enabled: Optional[bool] = None


class MealType(MealTypeBase, BaseEntity, TimestampMixin):
    id: int


class MealCategoryBase(BaseModel):
    meal_type_id: int
    name: str = Field(..., min_length=1, max_length=200)
    category: CategoryKind = CategoryKind.NON_FASTING
    normal_price_cents: int = Field(..., gt=0)
    subsidized_price_cents: int = Field(..., ge=0)
    allowed_count: int = Field(1, ge=1, description="Max items selectable per redemption")
    is_active: bool = True

    @model_validator(mode="after")
    def check_prices(self):
        if self.subsidized_price_cents >= self.normal_price_cents:
            raise ValueError("subsidized price must be lower than normal price")
        return self

    @property
    def normal_price(self) -> float:
        return cents_to_units(self.normal_price_cents)

    @property
    def subsidized_price(self) -> float:
        return cents_to_units(self.subsidized_price_cents)


class MealCategoryCreate(MealCategoryBase):
    pass


class MealCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[CategoryKind] = None
    normal_price_cents: Optional[int] = Field(None, gt=0)
    subsidized_price_cents: Optional[int] = Field(None, ge=0)
    allowed_count: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class MealCategory(MealCategoryBase, BaseEntity, TimestampMixin):
    id: int


class MealItemBase(BaseModel):
    meal_category_id: int
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    image_url: Optional[str] = None
    color: Optional[str] = Field(None, max_length=100)
    total_available: int = Field(0, ge=0)
    is_active: bool = True


class MealItemCreate(MealItemBase):
    pass


class MealItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    image_url: Optional[str] = None
    color: Optional[str] = Field(None, max_length=100)
    total_available: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class MealItem(MealItemBase, BaseEntity, TimestampMixin):
    id: int
    updated_at: Optional[datetime] = None
