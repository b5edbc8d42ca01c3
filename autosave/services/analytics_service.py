# services/analytics_service.py

from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime

from ..db.enums import AnalyticsPeriod, DestinationType, InsightPriority, InsightType
from ..models import SavingsGoal
from ..schemas.analytics import GoalProgressSnapshot, RuleBreakdown, SavingsAnalytics, SmartSaveInsight
from ..utils.dates import days_until, period_start, utcnow
from .goal_service import sort_goals
from .repository import AutoSaveRepository, RuleTotals

HUNDRED = Decimal("100")
INVESTED_DESTINATIONS = (DestinationType.INVESTMENT_VAULT, DestinationType.SPECIFIC_STOCK)
PRIORITY_ORDER = {InsightPriority.HIGH: 0, InsightPriority.MEDIUM: 1, InsightPriority.LOW: 2}


def expected_progress(days_remaining: int, horizon_days: int = 365) -> Decimal:
    """Linear schedule over a nominal horizon: 0% with a full horizon left, 100% at the deadline."""
    expected = HUNDRED - Decimal(days_remaining) / Decimal(horizon_days) * HUNDRED
    return max(Decimal("0"), expected)


class AnalyticsAggregator:
    """
    Builds the SavingsAnalytics read-model for a (user, period) pair and the
    behavioral nudges that go with it. Nothing here is persisted.
    """

    def __init__(
        self,
        repository: AutoSaveRepository,
        horizon_days: int = 365,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.horizon_days = horizon_days
        self.clock = clock

    def create_insight(
        self,
        insight_id: str,
        user_id: str,
        insight_type: InsightType,
        priority: InsightPriority,
        title: str,
        description: str,
        action_text: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> SmartSaveInsight:
        """Helper to structure the insight card consistently."""
        return SmartSaveInsight(
            id=insight_id,
            user_id=user_id,
            type=insight_type,
            title=title,
            description=description,
            action_required=action_text is not None,
            action_text=action_text,
            priority=priority,
            is_read=False,
            created_at=now or self.clock(),
            metadata=metadata or {},
        )

    async def get_analytics(self, user_id: str, period: AnalyticsPeriod) -> SavingsAnalytics:
        period = AnalyticsPeriod(period)
        now = self.clock()
        start_date = period_start(now, period)

        total_saved, count = await self.repository.sum_completed_round_ups_for_user(user_id, start_date)
        average_round_up = total_saved / count if count else Decimal("0")

        breakdown = await self.repository.completed_round_up_breakdown(user_id, start_date)
        total_invested = sum(
            (row.amount for row in breakdown if DestinationType(row.destination_type) in INVESTED_DESTINATIONS),
            Decimal("0"),
        )

        goals = sort_goals(await self.repository.list_active_goals(user_id))

        return SavingsAnalytics(
            user_id=user_id,
            period=period,
            start_date=start_date,
            total_saved=total_saved,
            total_invested=total_invested,
            # Every firing is recorded as a round-up, whatever its trigger type
            auto_save_transactions=count,
            round_up_transactions=count,
            average_round_up=average_round_up,
            top_rules=await self._top_rules(breakdown, total_saved),
            goal_progress=self.goal_progress(goals, now),
            insights=self.generate_insights(user_id, goals, now),
        )

    async def _top_rules(self, breakdown: List[RuleTotals], total_saved: Decimal) -> List[RuleBreakdown]:
        per_rule: Dict[str, List[Any]] = {}
        for row in breakdown:
            entry = per_rule.setdefault(row.rule_id, [Decimal("0"), 0])
            entry[0] += row.amount
            entry[1] += row.count

        top_rules = []
        for rule_id, (amount, count) in per_rule.items():
            rule = await self.repository.get_rule(rule_id)
            share = (amount * HUNDRED / total_saved).quantize(Decimal("0.01")) if total_saved else Decimal("0")
            top_rules.append(
                RuleBreakdown(
                    rule_id=rule_id,
                    rule_name=rule.name if rule is not None else "Deleted rule",
                    amount=amount,
                    count=count,
                    percentage=share,
                )
            )
        return sorted(top_rules, key=lambda item: item.amount, reverse=True)

    def goal_progress(self, goals: List[SavingsGoal], now: datetime) -> List[GoalProgressSnapshot]:
        return [
            GoalProgressSnapshot(
                goal_id=goal.id,
                goal_name=goal.name,
                progress=goal.progress,
                remaining=goal.target_amount - goal.current_amount,
                days_remaining=days_until(goal.target_date, now),
            )
            for goal in goals
        ]

    def behind_schedule(self, goals: List[SavingsGoal], now: datetime) -> List[SavingsGoal]:
        behind = []
        for goal in goals:
            if goal.is_completed:
                continue
            expected = expected_progress(days_until(goal.target_date, now), self.horizon_days)
            if goal.progress < expected:
                behind.append(goal)
        return behind

    def generate_insights(self, user_id: str, goals: List[SavingsGoal], now: datetime) -> List[SmartSaveInsight]:
        insights = []

        # 1. No goals yet: nudge the user to create one
        if not goals:
            insights.append(self.create_insight(
                "no_goals",
                user_id,
                InsightType.SAVING_OPPORTUNITY,
                InsightPriority.HIGH,
                title="Set Your First Savings Goal",
                description="Create a savings goal to track your progress and stay motivated.",
                action_text="Create Goal",
                now=now,
            ))

        # 2. Goals falling behind a linear schedule
        behind = self.behind_schedule(goals, now)
        if behind:
            insights.append(self.create_insight(
                "behind_schedule",
                user_id,
                InsightType.GOAL_PROGRESS,
                InsightPriority.MEDIUM,
                title="Goals Behind Schedule",
                description=(
                    f"You have {len(behind)} goal(s) that are behind schedule. "
                    "Consider increasing your savings rate."
                ),
                action_text="View Goals",
                metadata={"amount": len(behind), "goal_ids": [goal.id for goal in behind]},
                now=now,
            ))

        return sorted(insights, key=lambda insight: PRIORITY_ORDER[insight.priority])
