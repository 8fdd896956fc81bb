"""
Meal record routes: the scanning station's redemption endpoints plus
ledger queries and receipts.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...core.security import require_manager, require_operator
from ...models.user import User
from ...schemas.redemption import (
    AttachItemsRequest,
    DuplicateCheckResponse,
    MealRecordListResponse,
    MealRecordResponse,
    PricingResponse,
    ReceiptResponse,
    RecordMealRequest,
    RecordWithItemsRequest,
)
from ...services.record_service import MealRecordService
from ...services.redemption_service import RedemptionService
from ...services.report_service import ReportService
from .deps import get_redemption_service

router = APIRouter()


def _selection(items):
    return [(item.meal_item_id, item.quantity) for item in items]


@router.get("/check-duplicate", response_model=DuplicateCheckResponse)
def check_duplicate(card_id: str = Query(..., alias="cardId"),
                    meal_type_id: int = Query(..., alias="mealTypeId"),
                    user: User = Depends(require_operator),
                    service: RedemptionService = Depends(get_redemption_service)):
    """Whether the card or code has already redeemed this meal type today."""
    return {"has_used_today": service.has_used_today(card_id, meal_type_id)}


@router.get("/quote", response_model=PricingResponse)
def quote(card_id: str = Query(..., alias="cardId"),
          meal_category_id: int = Query(..., alias="mealCategoryId"),
          user: User = Depends(require_operator),
          service: RedemptionService = Depends(get_redemption_service)):
    return service.quote(card_id, meal_category_id)


@router.post("/record", response_model=MealRecordResponse, status_code=201)
def record_meal(req: RecordMealRequest, user: User = Depends(require_operator),
                service: RedemptionService = Depends(get_redemption_service)):
    """Record a meal with the category's default item."""
    return service.redeem(req.card_id, req.meal_category_id, actor=user)


@router.post("/record-with-items", response_model=MealRecordResponse, status_code=201)
def record_meal_with_items(req: RecordWithItemsRequest, user: User = Depends(require_operator),
                           service: RedemptionService = Depends(get_redemption_service)):
    """Record a meal with an explicit item selection."""
    return service.redeem(req.card_id, req.meal_category_id,
                          selection=_selection(req.selected_items), actor=user)


@router.post("/{record_id}/items", response_model=MealRecordResponse)
def attach_items(record_id: int, req: AttachItemsRequest, user: User = Depends(require_operator),
                 service: RedemptionService = Depends(get_redemption_service)):
    return service.attach_items(record_id, _selection(req.selected_items), actor=user)


@router.get("", response_model=MealRecordListResponse)
def list_records(employee_id: Optional[int] = Query(None, alias="employeeId"),
                 meal_type_id: Optional[int] = Query(None, alias="mealTypeId"),
                 date_from: Optional[date] = Query(None, alias="dateFrom"),
                 date_to: Optional[date] = Query(None, alias="dateTo"),
                 limit: int = Query(50, ge=1, le=500),
                 offset: int = Query(0, ge=0),
                 user: User = Depends(require_manager)):
    return MealRecordService().list_records(employee_id=employee_id, meal_type_id=meal_type_id,
                                            date_from=date_from, date_to=date_to,
                                            limit=limit, offset=offset)


@router.get("/{record_id}", response_model=MealRecordResponse)
def get_record(record_id: int, user: User = Depends(require_operator)):
    return MealRecordService().get_record(record_id)


@router.get("/{record_id}/receipt", response_model=ReceiptResponse)
def get_receipt(record_id: int, fmt: str = Query("detailed", alias="format"),
                user: User = Depends(require_operator)):
    """Printable receipt text for a record."""
    return ReportService().receipt(record_id, fmt)
