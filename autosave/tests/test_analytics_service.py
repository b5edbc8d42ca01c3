"""
Tests for the savings analytics read-model and its insights.
"""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

from autosave.db.enums import (
    AnalyticsPeriod,
    DestinationType,
    GoalPriority,
    InsightPriority,
    RoundUpStatus,
    TriggerType,
)
from autosave.models import RoundUpTransaction, SavingsGoal
from autosave.services.analytics_service import AnalyticsAggregator, expected_progress
from autosave.tests.fakes import FakeClock, InMemoryRepository, make_rule


def add_round_up(repository, rule, amount: str, status=RoundUpStatus.COMPLETED, created_at=None):
    round_up = RoundUpTransaction(
        user_id=rule.user_id,
        original_transaction_id="txn",
        original_amount=Decimal("100"),
        round_up_amount=Decimal(amount),
        total_amount=Decimal("100") + Decimal(amount),
        auto_save_rule_id=rule.id,
        destination_type=rule.destination_type,
        destination_id=rule.destination_id,
        status=status,
    )
    round_up.created_at = created_at or repository.clock()
    repository.round_ups[round_up.id] = round_up
    return round_up


def add_goal(repository, target: str, current: str, days_left: int, priority=GoalPriority.MEDIUM):
    target_amount, current_amount = Decimal(target), Decimal(current)
    goal = SavingsGoal(
        user_id="user_1",
        name=f"Goal {target}",
        target_amount=target_amount,
        target_date=repository.clock() + timedelta(days=days_left),
        current_amount=current_amount,
        priority=priority,
        progress=(current_amount * 100 / target_amount).quantize(Decimal("0.01")),
    )
    goal.created_at = repository.clock()
    repository.goals[goal.id] = goal
    return goal


class TestExpectedProgress:

    def test_hundred_days_left(self):
        assert expected_progress(100).quantize(Decimal("0.1")) == Decimal("72.6")

    def test_never_negative(self):
        assert expected_progress(1000) == Decimal("0")

    def test_custom_horizon(self):
        assert expected_progress(15, horizon_days=30) == Decimal("50")


class TestAnalyticsAggregator:

    def test_new_user_gets_single_first_goal_insight(self):
        repository = InMemoryRepository()
        analytics = asyncio.run(AnalyticsAggregator(repository, clock=repository.clock).get_analytics("user_1", "month"))

        assert analytics.total_saved == Decimal("0")
        assert analytics.average_round_up == Decimal("0")
        assert analytics.auto_save_transactions == 0
        assert analytics.top_rules == []
        assert len(analytics.insights) == 1
        insight = analytics.insights[0]
        assert insight.id == "no_goals"
        assert insight.priority is InsightPriority.HIGH
        assert insight.action_required
        assert insight.action_text == "Create Goal"

    def test_goal_behind_schedule_flagged(self):
        repository = InMemoryRepository()
        goal = add_goal(repository, target="10000", current="2500", days_left=100)

        analytics = asyncio.run(AnalyticsAggregator(repository, clock=repository.clock).get_analytics("user_1", "month"))

        [insight] = analytics.insights
        assert insight.id == "behind_schedule"
        assert insight.priority is InsightPriority.MEDIUM
        assert insight.metadata == {"amount": 1, "goal_ids": [goal.id]}
        [snapshot] = analytics.goal_progress
        assert snapshot.progress == Decimal("25.00")
        assert snapshot.remaining == Decimal("7500")
        assert snapshot.days_remaining == 100

    def test_goal_on_schedule_not_flagged(self):
        repository = InMemoryRepository()
        add_goal(repository, target="1000", current="800", days_left=100)

        analytics = asyncio.run(AnalyticsAggregator(repository, clock=repository.clock).get_analytics("user_1", "month"))

        assert analytics.insights == []

    def test_completed_goal_never_behind(self):
        repository = InMemoryRepository()
        goal = add_goal(repository, target="100", current="100", days_left=-5)
        goal.is_completed = True

        analytics = asyncio.run(AnalyticsAggregator(repository, clock=repository.clock).get_analytics("user_1", "week"))

        assert analytics.insights == []

    def test_totals_count_only_completed_round_ups_in_window(self):
        clock = FakeClock(datetime(2025, 3, 31, 12, 0))
        repository = InMemoryRepository(clock)
        vault_rule = make_rule(TriggerType.ROUND_UP, name="Vault round-up")
        account_rule = make_rule(
            TriggerType.PERCENTAGE, name="Savings 5%",
            destination_type=DestinationType.SAVINGS_ACCOUNT, destination_id="acc_1",
        )
        repository.rules[vault_rule.id] = vault_rule
        repository.rules[account_rule.id] = account_rule

        add_round_up(repository, vault_rule, "2")
        add_round_up(repository, vault_rule, "4")
        add_round_up(repository, account_rule, "9")
        add_round_up(repository, account_rule, "100", status=RoundUpStatus.FAILED)
        add_round_up(repository, account_rule, "50", status=RoundUpStatus.PENDING)
        # Month window starts on Feb 28 (day clamped), so Feb 27 is outside it
        add_round_up(repository, vault_rule, "30", created_at=datetime(2025, 2, 27, 12, 0))

        analytics = asyncio.run(AnalyticsAggregator(repository, clock=clock).get_analytics("user_1", AnalyticsPeriod.MONTH))

        assert analytics.start_date == datetime(2025, 2, 28, 12, 0)
        assert analytics.total_saved == Decimal("15")
        assert analytics.auto_save_transactions == 3
        assert analytics.round_up_transactions == 3
        assert analytics.average_round_up == Decimal("5")
        assert analytics.total_invested == Decimal("6")
        assert [(r.rule_name, r.amount, r.count, r.percentage) for r in analytics.top_rules] == [
            ("Savings 5%", Decimal("9"), 1, Decimal("60.00")),
            ("Vault round-up", Decimal("6"), 2, Decimal("40.00")),
        ]
        assert sum(r.percentage for r in analytics.top_rules) == Decimal("100.00")
