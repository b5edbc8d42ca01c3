# api/v1/goals.py

from typing import List

from fastapi import APIRouter, status

from ...schemas.savings import GoalContributionCreate, GoalContributionOut, SavingsGoalCreate, SavingsGoalOut
from ..dependencies import ServiceDependency, UserDependency

router = APIRouter(
    prefix="/goals",
    tags=["Savings Goals"],
)


# --- Goals ---

@router.post("", response_model=SavingsGoalOut, status_code=status.HTTP_201_CREATED)
async def create_savings_goal(goal_data: SavingsGoalCreate, service: ServiceDependency, user_id: UserDependency):
    return await service.create_savings_goal(user_id, goal_data)


@router.get("", response_model=List[SavingsGoalOut], summary="Active goals, highest priority first")
async def get_savings_goals(service: ServiceDependency, user_id: UserDependency):
    return await service.get_savings_goals(user_id)


@router.post(
    "/{goal_id}/rules/{rule_id}",
    response_model=SavingsGoalOut,
    summary="Link an auto-save rule so its completed round-ups count toward the goal",
)
async def link_rule_to_goal(goal_id: str, rule_id: str, service: ServiceDependency, user_id: UserDependency):
    return await service.link_rule_to_goal(user_id, goal_id, rule_id)


# --- Contributions ---

@router.post(
    "/{goal_id}/contributions",
    response_model=GoalContributionOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_goal_contribution(
    goal_id: str,
    contribution: GoalContributionCreate,
    service: ServiceDependency,
    user_id: UserDependency,
):
    return await service.add_goal_contribution(
        user_id,
        goal_id,
        contribution.amount,
        source=contribution.source,
        source_id=contribution.source_id,
        description=contribution.description,
    )


@router.get("/{goal_id}/contributions", response_model=List[GoalContributionOut])
async def get_goal_contributions(goal_id: str, service: ServiceDependency, user_id: UserDependency):
    return await service.get_goal_contributions(user_id, goal_id)
