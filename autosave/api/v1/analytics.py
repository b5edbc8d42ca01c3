# api/v1/analytics.py

from fastapi import APIRouter

from ...db.enums import AnalyticsPeriod
from ...schemas.analytics import SavingsAnalytics
from ..dependencies import ServiceDependency, UserDependency

router = APIRouter(
    prefix="/analytics",
    tags=["Savings Analytics"],
)


@router.get(
    "",
    response_model=SavingsAnalytics,
    summary="Savings totals, top rules, goal progress and nudges for a trailing window",
)
async def get_savings_analytics(
    service: ServiceDependency,
    user_id: UserDependency,
    period: AnalyticsPeriod = AnalyticsPeriod.MONTH,
):
    return await service.get_savings_analytics(user_id, period)
