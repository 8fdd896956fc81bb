"""
Coupon batch and coupon routes.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Response

from ...core.security import require_manager, require_operator
from ...models.user import User
from ...schemas.coupon import (
    ActiveFlagRequest,
    CouponBatchCreateRequest,
    CouponBatchResponse,
    CouponRedeemRequest,
    CouponResponse,
)
from ...services.coupon_service import CouponService

router = APIRouter()


@router.get("/batches", response_model=List[CouponBatchResponse])
def list_batches(user: User = Depends(require_manager)):
    return CouponService().list_batches()


@router.post("/batches", response_model=CouponBatchResponse, status_code=201)
def create_batch(req: CouponBatchCreateRequest, user: User = Depends(require_manager)):
    """Create a batch from caller supplied codes."""
    return CouponService().create_batch(req, actor=user)


@router.get("/batches/{batch_number}", response_model=CouponBatchResponse)
def get_batch(batch_number: str, user: User = Depends(require_manager)):
    return CouponService().get_batch(batch_number)


@router.patch("/batches/{batch_number}/toggle", response_model=CouponBatchResponse)
def toggle_batch(batch_number: str, user: User = Depends(require_manager)):
    return CouponService().toggle_batch(batch_number, actor=user)


@router.delete("/batches/{batch_number}", status_code=204)
def delete_batch(batch_number: str, user: User = Depends(require_manager)):
    CouponService().delete_batch(batch_number, actor=user)
    return Response(status_code=204)


@router.get("", response_model=List[CouponResponse])
def list_coupons(batch_number: Optional[str] = None, user: User = Depends(require_manager)):
    return CouponService().list_coupons(batch_number)


@router.get("/{code}", response_model=CouponResponse)
def get_coupon(code: str, user: User = Depends(require_operator)):
    return CouponService().get_coupon(code)


@router.post("/{code}/redeem", response_model=CouponResponse)
def redeem_coupon(code: str, req: CouponRedeemRequest, user: User = Depends(require_operator)):
    """Mark a coupon as used. A used coupon can never be used again."""
    return CouponService().redeem_coupon(code, req.employee_id, actor=user)


@router.put("/{code}/active", response_model=CouponResponse)
def set_coupon_active(code: str, req: ActiveFlagRequest, user: User = Depends(require_manager)):
    return CouponService().set_coupon_active(code, req.is_active, actor=user)
