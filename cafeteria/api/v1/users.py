"""
User administration routes (admin only).
"""

from typing import List

from fastapi import APIRouter, Depends, Response

from ...core.security import require_admin
from ...models.user import User
from ...schemas.user import UserCreateRequest, UserResponse, UserUpdateRequest
from ...services.user_service import UserService

router = APIRouter()


@router.get("", response_model=List[UserResponse])
def list_users(user: User = Depends(require_admin)):
    return UserService().list_users()


@router.post("", response_model=UserResponse, status_code=201)
def create_user(req: UserCreateRequest, user: User = Depends(require_admin)):
    return UserService().create_user(req, actor=user)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: int, user: User = Depends(require_admin)):
    return UserService().get_user(user_id)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(user_id: int, req: UserUpdateRequest, user: User = Depends(require_admin)):
    return UserService().update_user(user_id, req, actor=user)


@router.patch("/{user_id}/toggle", response_model=UserResponse)
def toggle_user(user_id: int, user: User = Depends(require_admin)):
    return UserService().toggle_status(user_id, actor=user)


@router.delete("/{user_id}", status_code=204)
def delete_user(user_id: int, user: User = Depends(require_admin)):
    UserService().delete_user(user_id, actor=user)
    return Response(status_code=204)
