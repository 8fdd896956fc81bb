"""
Request/response schemas for scanning and meal records.
"""

from datetime import date
from typing import List, Optional

from pydantic import Field, computed_field

from .common import CamelModel
from ..models.base import cents_to_units
from ..models.record import PriceType


class SelectedItem(CamelModel):
    meal_item_id: int = Field(..., description="Meal item ID")
    quantity: int = Field(1, gt=0, description="Quantity of this item")


class RecordMealRequest(CamelModel):
    card_id: str = Field(..., min_length=1, description="Scanned card serial or typed short code")
    meal_category_id: int


class RecordWithItemsRequest(RecordMealRequest):
    selected_items: List[SelectedItem] = Field(..., min_length=1)


class AttachItemsRequest(CamelModel):
    selected_items: List[SelectedItem] = Field(..., min_length=1)


class DuplicateCheckResponse(CamelModel):
    has_used_today: bool


class PricingResponse(CamelModel):
    normal_price_cents: int
    subsidized_price_cents: int
    applicable_price_cents: int
    price_type: PriceType
    subsidy_amount_cents: int


class MealRecordItemResponse(CamelModel):
    meal_item_id: int
    item_name: str
    quantity: int
    unit_price_cents: int


class MealRecordResponse(CamelModel):
    id: int
    order_number: Optional[str] = None
    employee_id: int
    card_id: Optional[str] = None
    meal_type_id: int
    meal_category_id: int
    meal_name: str
    category: str
    price_type: PriceType
    normal_price_cents: int
    subsidized_price_cents: int
    actual_price_cents: int
    support_amount_cents: int
    redemption_date: date
    recorded_at: str
    recorded_by_user_id: Optional[int] = None
    recorded_by_username: str
    items: List[MealRecordItemResponse] = Field(default_factory=list)

    @computed_field
    @property
    def actual_price(self) -> float:
        return cents_to_units(self.actual_price_cents)

    @computed_field
    @property
    def support_amount(self) -> float:
        return cents_to_units(self.support_amount_cents)


class MealRecordListResponse(CamelModel):
    items: List[MealRecordResponse]
    total: int
    limit: int
    offset: int


class ReceiptResponse(CamelModel):
    receipt_text: str
    order_number: str
    timestamp: str
    format: str
