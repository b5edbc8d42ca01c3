# services/goal_service.py

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import AsyncIterator, Callable, Dict, List, Optional

from ..db.enums import ContributionSource, GoalPriority, TriggerType
from ..models import AutoSaveRule, GoalContribution, RoundUpTransaction, SavingsGoal
from ..schemas.savings import SavingsGoalCreate
from ..utils.dates import as_naive_utc, utcnow
from .exceptions import NotFoundError, ValidationError
from .repository import AutoSaveRepository

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
PRIORITY_RANK = {GoalPriority.HIGH: 2, GoalPriority.MEDIUM: 1, GoalPriority.LOW: 0}


def calculate_progress(current_amount: Decimal, target_amount: Decimal) -> Decimal:
    """Percent of target reached, clamped at 100. Rounded down so an unfinished goal never reads 100."""
    progress = (current_amount * HUNDRED / target_amount).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
    return min(HUNDRED, progress)


def sort_goals(goals: List[SavingsGoal]) -> List[SavingsGoal]:
    """Highest priority first, newest first within a priority."""
    by_age = sorted(goals, key=lambda goal: goal.created_at or datetime.min, reverse=True)
    return sorted(by_age, key=lambda goal: PRIORITY_RANK.get(GoalPriority(goal.priority), 0), reverse=True)


class GoalContributionTracker:
    """
    Owns savings goals and their append-only contributions. Progress updates
    for one goal are serialized so concurrent contributions cannot lose an
    increment.
    """

    def __init__(self, repository: AutoSaveRepository, clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _locked(self, goal_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(goal_id, asyncio.Lock())
        self._lock_users[goal_id] = self._lock_users.get(goal_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[goal_id] -= 1
            # Nobody holds or waits on it any more
            if not self._lock_users[goal_id]:
                del self._lock_users[goal_id]
                del self._locks[goal_id]

    async def create_goal(self, user_id: str, data: SavingsGoalCreate) -> SavingsGoal:
        goal = SavingsGoal(
            user_id=user_id,
            name=data.name,
            description=data.description,
            target_amount=data.target_amount,
            target_date=as_naive_utc(data.target_date),
            priority=data.priority,
            category=data.category,
            auto_save_rules=list(dict.fromkeys(data.auto_save_rules)),
        )
        goal = await self.repository.create_goal(goal)
        logger.info("Created savings goal %s for user %s (target %s)", goal.id, user_id, goal.target_amount)
        return goal

    async def get_goals(self, user_id: str) -> List[SavingsGoal]:
        return sort_goals(await self.repository.list_active_goals(user_id))

    async def get_goal(self, goal_id: str, user_id: Optional[str] = None) -> SavingsGoal:
        goal = await self.repository.get_goal(goal_id)
        if goal is None or (user_id is not None and goal.user_id != user_id):
            raise NotFoundError("Savings goal", goal_id)
        return goal

    async def link_rule_to_goal(self, goal_id: str, rule_id: str) -> SavingsGoal:
        goal = await self.repository.link_rule_to_goal(goal_id, rule_id)
        if goal is None:
            raise NotFoundError("Savings goal", goal_id)
        return goal

    async def list_contributions(self, goal_id: str) -> List[GoalContribution]:
        return await self.repository.list_contributions(goal_id)

    async def add_contribution(
        self,
        goal_id: str,
        amount: Decimal,
        source: ContributionSource,
        source_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> GoalContribution:
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValidationError("Contribution amount must be positive")

        async with self._locked(goal_id):
            await self.get_goal(goal_id)
            contribution = await self.repository.create_contribution(
                GoalContribution(
                    goal_id=goal_id,
                    amount=amount,
                    source=ContributionSource(source),
                    source_id=source_id,
                    description=description,
                )
            )
            await self._apply_progress(goal_id, amount)
        return contribution

    async def update_goal_progress(self, goal_id: str, amount: Decimal) -> SavingsGoal:
        async with self._locked(goal_id):
            return await self._apply_progress(goal_id, amount)

    async def _apply_progress(self, goal_id: str, amount: Decimal) -> SavingsGoal:
        goal = await self.get_goal(goal_id)

        new_current = goal.current_amount + amount
        progress = calculate_progress(new_current, goal.target_amount)
        is_completed = new_current >= goal.target_amount

        completed_at = goal.completed_at
        if is_completed and not goal.is_completed:
            completed_at = self.clock()
            logger.info("Savings goal %s reached its target of %s", goal_id, goal.target_amount)

        updated = await self.repository.update_goal_progress(
            goal_id, new_current, progress, is_completed, completed_at
        )
        if updated is None:
            raise NotFoundError("Savings goal", goal_id)
        return updated

    async def contribute_round_up(
        self, rule: AutoSaveRule, round_up: RoundUpTransaction
    ) -> Optional[GoalContribution]:
        """Credits a completed round-up to the highest-priority goal linked to its rule, if any."""
        goals = sort_goals(await self.repository.list_goals_for_rule(round_up.user_id, rule.id))
        if not goals:
            return None

        source = (
            ContributionSource.ROUND_UP
            if TriggerType(rule.trigger_type) is TriggerType.ROUND_UP
            else ContributionSource.AUTO_SAVE
        )
        return await self.add_contribution(
            goals[0].id,
            round_up.round_up_amount,
            source,
            source_id=round_up.id,
            description=f"Auto-save: {rule.name}",
        )
