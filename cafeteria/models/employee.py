"""
Employee and support policy models.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from .base import BaseEntity, TimestampMixin, cents_to_units

SHORT_CODE_LENGTH = 4


class EmployeeBase(BaseModel):
    employee_code: str = Field(..., min_length=1, max_length=50, description="HR employee number")
    name: str = Field(..., min_length=1, max_length=200)
    department: Optional[str] = Field(None, max_length=200)
    photo_url: Optional[str] = None
    salary_cents: Optional[int] = Field(None, ge=0, description="Monthly salary (cents)")


class EmployeeCreate(EmployeeBase):
    is_active: bool = True


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    department: Optional[str] = Field(None, max_length=200)
    photo_url: Optional[str] = None
    salary_cents: Optional[int] = Field(None, ge=0)


class CardAssignment(BaseModel):
    card_id: str = Field(..., min_length=4, max_length=64, description="NFC serial")
    short_code: str = Field(..., description="Four digit manual code")

    @field_validator("card_id")
    @classmethod
    def strip_card(cls, v: str) -> str:
        return v.strip()

    @field_validator("short_code")
    @classmethod
    def validate_short_code(cls, v: str) -> str:
        v = v.strip()
        if len(v) != SHORT_CODE_LENGTH or not v.isdigit():
            raise ValueError(f"short code must be exactly {SHORT_CODE_LENGTH} digits")
        return v


class Employee(EmployeeBase, BaseEntity, TimestampMixin):
    id: int
    card_id: Optional[str] = None
    short_code: Optional[str] = None
    is_active: bool = True
    eligible_for_support: bool = False

    @property
    def support_status(self) -> str:
        return "eligible" if self.eligible_for_support else "not_eligible"


class SupportConfig(BaseEntity):
    """Salary threshold policy that decides subsidy eligibility."""
    max_salary_for_support_cents: int = Field(..., ge=0)
    is_active: bool = True

    @property
    def max_salary_for_support(self) -> float:
        return cents_to_units(self.max_salary_for_support_cents)
