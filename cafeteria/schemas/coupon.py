"""
Coupon request/response schemas.
"""

from pydantic import Field

from .common import CamelModel
from ..models.coupon import Coupon, CouponBatch, CouponBatchCreate


class CouponBatchCreateRequest(CamelModel, CouponBatchCreate):
    model_config = {"json_schema_extra": {"example": {
        "batchNumber": "B-2024-001",
        "title": "Guest lunch",
        "mealTypeId": 2,
        "codes": ["GL-0001", "GL-0002"],
    }}}


class CouponBatchResponse(CamelModel, CouponBatch):
    pass


class CouponResponse(CamelModel, Coupon):
    pass


class CouponRedeemRequest(CamelModel):
    employee_id: int


class ActiveFlagRequest(CamelModel):
    is_active: bool = Field(..., description="New active state")
