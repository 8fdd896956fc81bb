"""
Meal type, category and item routes.

Stations read categories and items; everything that writes needs a
manager.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Response

from ...core.security import require_manager, require_operator
from ...models.user import User
from ...schemas.meal import (
    AvailabilityRequest,
    MealCategoryCreateRequest,
    MealCategoryResponse,
    MealCategoryUpdateRequest,
    MealItemCreateRequest,
    MealItemResponse,
    MealItemUpdateRequest,
    MealTypeCreateRequest,
    MealTypeResponse,
    MealTypeUpdateRequest,
)
from ...services.meal_service import MealService

router = APIRouter()


# meal types

@router.get("/meal-types", response_model=List[MealTypeResponse])
def list_meal_types(enabled_only: bool = False, user: User = Depends(require_operator)):
    return MealService().list_meal_types(enabled_only=enabled_only)


@router.get("/meal-types/{meal_type_id}", response_model=MealTypeResponse)
def get_meal_type(meal_type_id: int, user: User = Depends(require_operator)):
    return MealService().get_meal_type(meal_type_id)


@router.post("/meal-types", response_model=MealTypeResponse, status_code=201)
def create_meal_type(req: MealTypeCreateRequest, user: User = Depends(require_manager)):
    return MealService().create_meal_type(req, actor=user)


@router.put("/meal-types/{meal_type_id}", response_model=MealTypeResponse)
def update_meal_type(meal_type_id: int, req: MealTypeUpdateRequest,
                     user: User = Depends(require_manager)):
    return MealService().update_meal_type(meal_type_id, req, actor=user)


@router.patch("/meal-types/{meal_type_id}/toggle", response_model=MealTypeResponse)
def toggle_meal_type(meal_type_id: int, user: User = Depends(require_manager)):
    return MealService().toggle_meal_type(meal_type_id, actor=user)


@router.delete("/meal-types/{meal_type_id}", status_code=204)
def delete_meal_type(meal_type_id: int, user: User = Depends(require_manager)):
    MealService().delete_meal_type(meal_type_id, actor=user)
    return Response(status_code=204)


# categories

@router.get("/meal-categories", response_model=List[MealCategoryResponse])
def list_categories(meal_type_id: Optional[int] = None, active_only: bool = False,
                    user: User = Depends(require_operator)):
    return MealService().list_categories(meal_type_id=meal_type_id, active_only=active_only)


@router.get("/meal-categories/{category_id}", response_model=MealCategoryResponse)
def get_category(category_id: int, user: User = Depends(require_operator)):
    return MealService().get_category(category_id)


@router.post("/meal-categories", response_model=MealCategoryResponse, status_code=201)
def create_category(req: MealCategoryCreateRequest, user: User = Depends(require_manager)):
    """Create a category; the subsidized price must stay below the normal price."""
    return MealService().create_category(req, actor=user)


@router.put("/meal-categories/{category_id}", response_model=MealCategoryResponse)
def update_category(category_id: int, req: MealCategoryUpdateRequest,
                    user: User = Depends(require_manager)):
    return MealService().update_category(category_id, req, actor=user)


@router.patch("/meal-categories/{category_id}/toggle", response_model=MealCategoryResponse)
def toggle_category(category_id: int, user: User = Depends(require_manager)):
    return MealService().toggle_category(category_id, actor=user)


@router.delete("/meal-categories/{category_id}", status_code=204)
def delete_category(category_id: int, user: User = Depends(require_manager)):
    MealService().delete_category(category_id, actor=user)
    return Response(status_code=204)


@router.get("/meal-categories/{category_id}/items", response_model=List[MealItemResponse])
def list_category_items(category_id: int, active_only: bool = False,
                        user: User = Depends(require_operator)):
    service = MealService()
    service.get_category(category_id)
    return service.list_items(category_id=category_id, active_only=active_only)


# items

@router.get("/meal-items", response_model=List[MealItemResponse])
def list_items(category_id: Optional[int] = None, active_only: bool = False,
               user: User = Depends(require_operator)):
    return MealService().list_items(category_id=category_id, active_only=active_only)


@router.get("/meal-items/{item_id}", response_model=MealItemResponse)
def get_item(item_id: int, user: User = Depends(require_operator)):
    return MealService().get_item(item_id)


@router.post("/meal-items", response_model=MealItemResponse, status_code=201)
def create_item(req: MealItemCreateRequest, user: User = Depends(require_manager)):
    return MealService().create_item(req, actor=user)


@router.put("/meal-items/{item_id}", response_model=MealItemResponse)
def update_item(item_id: int, req: MealItemUpdateRequest, user: User = Depends(require_manager)):
    return MealService().update_item(item_id, req, actor=user)


@router.patch("/meal-items/{item_id}/toggle", response_model=MealItemResponse)
def toggle_item(item_id: int, user: User = Depends(require_manager)):
    return MealService().toggle_item(item_id, actor=user)


@router.put("/meal-items/{item_id}/availability", response_model=MealItemResponse)
def set_availability(item_id: int, req: AvailabilityRequest, user: User = Depends(require_manager)):
    return MealService().set_availability(item_id, req.total_available, actor=user)


@router.delete("/meal-items/{item_id}", status_code=204)
def delete_item(item_id: int, user: User = Depends(require_manager)):
    MealService().delete_item(item_id, actor=user)
    return Response(status_code=204)
