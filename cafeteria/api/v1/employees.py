"""
Employee routes: card/code lookup for stations, administration for managers.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from ...core.security import require_manager, require_operator
from ...models.user import User
from ...schemas.employee import (
    CardAssignmentRequest,
    EmployeeCreateRequest,
    EmployeeDeleteResponse,
    EmployeeResponse,
    EmployeeUpdateRequest,
    SupportConfigRequest,
    SupportConfigResponse,
)
from ...schemas.report import EmployeeUsageStatsResponse
from ...services.employee_service import EmployeeService
from ...services.identity_service import IdentityResolver
from ...services.report_service import ReportService

router = APIRouter()


@router.get("/employees/by-card/{token}", response_model=EmployeeResponse)
def get_by_card(token: str, user: User = Depends(require_operator)):
    """Look up an active employee by NFC card serial."""
    return IdentityResolver().resolve_by_card(token)


@router.get("/employees/by-code/{code}", response_model=EmployeeResponse)
def get_by_code(code: str, user: User = Depends(require_operator)):
    """Look up an active employee by the four digit short code."""
    return IdentityResolver().resolve_by_code(code)


@router.get("/employees", response_model=List[EmployeeResponse])
def list_employees(active_only: bool = False, department: Optional[str] = None,
                   user: User = Depends(require_manager)):
    return EmployeeService().list_employees(active_only=active_only, department=department)


@router.post("/employees", response_model=EmployeeResponse, status_code=201)
def create_employee(req: EmployeeCreateRequest, user: User = Depends(require_manager)):
    return EmployeeService().create_employee(req, actor=user)


@router.get("/employees/{employee_id}", response_model=EmployeeResponse)
def get_employee(employee_id: int, user: User = Depends(require_manager)):
    return EmployeeService().get_employee(employee_id)


@router.put("/employees/{employee_id}", response_model=EmployeeResponse)
def update_employee(employee_id: int, req: EmployeeUpdateRequest,
                    user: User = Depends(require_manager)):
    return EmployeeService().update_employee(employee_id, req, actor=user)


@router.put("/employees/{employee_id}/card", response_model=EmployeeResponse)
def assign_card(employee_id: int, req: CardAssignmentRequest,
                user: User = Depends(require_manager)):
    """Assign the NFC card serial and short code."""
    return EmployeeService().assign_card(employee_id, req, actor=user)


@router.patch("/employees/{employee_id}/toggle", response_model=EmployeeResponse)
def toggle_employee(employee_id: int, user: User = Depends(require_manager)):
    return EmployeeService().toggle_status(employee_id, actor=user)


@router.delete("/employees/{employee_id}", response_model=EmployeeDeleteResponse)
def delete_employee(employee_id: int, user: User = Depends(require_manager)):
    """Delete an employee, or deactivate one that has meal history."""
    remaining = EmployeeService().delete_employee(employee_id, actor=user)
    return {"deleted": remaining is None, "employee": remaining}


@router.get("/employees/{employee_id}/usage", response_model=EmployeeUsageStatsResponse)
def employee_usage(employee_id: int, user: User = Depends(require_manager)):
    return ReportService().employee_usage_stats(employee_id)


@router.get("/support-config", response_model=Optional[SupportConfigResponse])
def get_support_config(user: User = Depends(require_manager)):
    return EmployeeService().get_support_config()


@router.put("/support-config", response_model=SupportConfigResponse)
def update_support_config(req: SupportConfigRequest, user: User = Depends(require_manager)):
    """Store the salary threshold and re-evaluate every employee's eligibility."""
    return EmployeeService().update_support_config(req, actor=user)
