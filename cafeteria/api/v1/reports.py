"""
Support (subsidy) report routes.
"""

from typing import List

from fastapi import APIRouter, Depends

from ...core.security import require_manager
from ...models.user import User
from ...schemas.report import DepartmentSupportAnalysisResponse, SupportSummaryResponse
from ...services.report_service import ReportService

router = APIRouter()


@router.get("/summary", response_model=SupportSummaryResponse)
def support_summary(period: str = "monthly", user: User = Depends(require_manager)):
    """Subsidy totals for the daily, weekly, monthly or yearly period ending today."""
    return ReportService().support_summary(period)


@router.get("/department-analysis", response_model=List[DepartmentSupportAnalysisResponse])
def department_analysis(period: str = "monthly", user: User = Depends(require_manager)):
    return ReportService().department_analysis(period)
