"""
Coupon models. Codes are supplied by the caller; nothing here generates them.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from .base import BaseEntity


class Coupon(BaseEntity):
    id: int
    code: str
    batch_number: str
    is_used: bool = False
    is_active: bool = True
    used_by: Optional[int] = None
    used_at: Optional[str] = None


class CouponBatchCreate(BaseModel):
    batch_number: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    meal_type_id: int
    meal_category_id: Optional[int] = None
    color: Optional[str] = None
    codes: List[str] = Field(..., min_length=1)

    @field_validator("codes")
    @classmethod
    def unique_codes(cls, v: List[str]) -> List[str]:
        codes = [c.strip() for c in v]
        if any(not c for c in codes):
            raise ValueError("coupon codes must not be empty")
        if len(codes) != len(set(codes)):
            raise ValueError("coupon codes must be unique within a batch")
        return codes


class CouponBatch(BaseEntity):
    batch_number: str
    title: str
    meal_type_id: int
    meal_category_id: Optional[int] = None
    color: Optional[str] = None
    generated_by: str
    generated_at: str
    total_coupons: int = 0
    used_coupons: int = 0
    is_active: bool = True
