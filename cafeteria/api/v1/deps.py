"""
Service providers shared by the routers. Tests override these through
``app.dependency_overrides``.
"""

from ...services.redemption_service import RedemptionService


def get_redemption_service() -> RedemptionService:
    return RedemptionService()
