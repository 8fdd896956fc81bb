"""
Employee and support policy request/response schemas.
"""

from typing import Optional

from pydantic import computed_field

from .common import CamelModel
from ..models.base import cents_to_units
from ..models.employee import CardAssignment, Employee, EmployeeCreate, EmployeeUpdate, SupportConfig


class EmployeeCreateRequest(CamelModel, EmployeeCreate):
    pass


class EmployeeUpdateRequest(CamelModel, EmployeeUpdate):
    pass


class CardAssignmentRequest(CamelModel, CardAssignment):
    pass


class EmployeeResponse(CamelModel, Employee):
    @computed_field
    @property
    def salary(self) -> Optional[float]:
        return cents_to_units(self.salary_cents)


class EmployeeDeleteResponse(CamelModel):
    deleted: bool
    employee: Optional[EmployeeResponse] = None


class SupportConfigRequest(CamelModel, SupportConfig):
    pass


class SupportConfigResponse(CamelModel, SupportConfig):
    pass
