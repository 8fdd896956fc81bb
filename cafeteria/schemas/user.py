"""
Administrative user request/response schemas.
"""

from .common import CamelModel
from ..models.user import User, UserCreate, UserUpdate


class UserCreateRequest(CamelModel, UserCreate):
    pass


class UserUpdateRequest(CamelModel, UserUpdate):
    pass


class UserResponse(CamelModel, User):
    pass
