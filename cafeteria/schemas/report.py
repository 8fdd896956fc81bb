"""
Report response schemas.
"""

from pydantic import computed_field

from .common import CamelModel
from ..models.base import cents_to_units
from ..models.record import DepartmentSupportAnalysis, EmployeeUsageStats, SupportSummary


class EmployeeUsageStatsResponse(CamelModel, EmployeeUsageStats):
    pass


class SupportSummaryResponse(CamelModel, SupportSummary):
    @computed_field
    @property
    def total_revenue(self) -> float:
        return cents_to_units(self.total_revenue_cents)

    @computed_field
    @property
    def total_subsidy(self) -> float:
        return cents_to_units(self.total_subsidy_cents)


class DepartmentSupportAnalysisResponse(CamelModel, DepartmentSupportAnalysis):
    pass
