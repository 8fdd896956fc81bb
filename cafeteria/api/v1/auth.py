"""
Login and current-user routes.
"""

from fastapi import APIRouter, Depends

from ...core.security import get_current_user
from ...models.user import User
from ...schemas.auth import LoginRequest, LoginResponse
from ...schemas.user import UserResponse
from ...services.user_service import UserService

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
def login(req: LoginRequest):
    """Exchange username and password for a bearer token."""
    return UserService().authenticate(req.username, req.password)


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user
