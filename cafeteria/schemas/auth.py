"""
Login request/response schemas.
"""

from pydantic import Field

from .common import CamelModel
from .user import UserResponse


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1, description="Account username")
    password: str = Field(..., min_length=1, description="Account password")

    model_config = {"json_schema_extra": {"example": {"username": "cashier1", "password": "secret123"}}}


class LoginResponse(CamelModel):
    access_token: str = Field(description="JWT access token")
    token_type: str = Field(default="Bearer", description="Token type")
    user: UserResponse
