"""
Base data models shared by the domain modules.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class TimestampMixin(BaseModel):
    created_at: Optional[datetime] = None


class BaseEntity(BaseModel):
    """Base model for rows loaded from the database."""

    model_config = {"from_attributes": True}


def cents_to_units(cents: Optional[int]) -> Optional[float]:
    """Integer cents to a currency amount with two decimals."""
    if cents is None:
        return None
    return round(cents / 100, 2)

