"""
Administrative user models and the role hierarchy.
"""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum
from .base import BaseEntity, TimestampMixin


class Role(str, Enum):
    """Ordered roles: operator < manager < admin."""
    OPERATOR = "operator"
    MANAGER = "manager"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_ORDER.index(self)

    def allows(self, required: "Role") -> bool:
        """True when this role grants at least the access of ``required``."""
        return self.rank >= Role(required).rank

    def __lt__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.rank >= other.rank


_ROLE_ORDER = [Role.OPERATOR, Role.MANAGER, Role.ADMIN]


class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: Optional[str] = Field(None, max_length=200)
    full_name: Optional[str] = Field(None, max_length=200)
    role: Role = Role.OPERATOR


class UserCreate(UserBase):
    password: str = Field(..., min_length=6, max_length=128)
    is_active: bool = True


class UserUpdate(BaseModel):
    email: Optional[str] = Field(None, max_length=200)
    full_name: Optional[str] = Field(None, max_length=200)
    role: Optional[Role] = None
    password: Optional[str] = Field(None, min_length=6, max_length=128)


class User(UserBase, BaseEntity, TimestampMixin):
    id: int
    is_active: bool = True
    last_login: Optional[str] = None
