"""
Tests for the round-up state machine and its side effects.
"""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from autosave.db.enums import ContributionSource, DestinationType, GoalPriority, RoundUpStatus, TriggerType
from autosave.models import SavingsAccount, SavingsGoal
from autosave.services.destination_router import DestinationRouter
from autosave.services.exceptions import InvalidTransitionError, ValidationError
from autosave.services.goal_service import GoalContributionTracker
from autosave.services.round_up_ledger import RoundUpLedger
from autosave.tests.fakes import InMemoryRepository, RecordingGateway, make_event, make_rule


def build_ledger(repository, gateway=None, with_goals=True):
    router = DestinationRouter(repository, vault_gateway=gateway or RecordingGateway(), max_attempts=1)
    tracker = GoalContributionTracker(repository, clock=repository.clock) if with_goals else None
    return RoundUpLedger(repository, router, goal_tracker=tracker)


class TestRoundUpLedger:

    def test_create_records_pending_round_up(self):
        async def scenario():
            repository = InMemoryRepository()
            ledger = build_ledger(repository)
            rule = await repository.create_rule(make_rule(TriggerType.ROUND_UP))
            round_up = await ledger.create(make_event("23", merchant_name="Kofi's Kitchen"), rule, Decimal("2"))
            return rule, round_up

        rule, round_up = asyncio.run(scenario())
        assert round_up.status is RoundUpStatus.PENDING
        assert round_up.original_amount == Decimal("23")
        assert round_up.total_amount == Decimal("25")
        assert round_up.destination_type is DestinationType.INVESTMENT_VAULT
        assert round_up.transaction_metadata == {"transaction_type": "payment", "merchant_name": "Kofi's Kitchen"}
        assert round_up.completed_at is None
        assert rule.last_triggered is not None

    def test_create_rejects_non_positive_amount(self):
        async def scenario():
            repository = InMemoryRepository()
            rule = await repository.create_rule(make_rule())
            await build_ledger(repository).create(make_event("20"), rule, Decimal("0"))

        with pytest.raises(ValidationError):
            asyncio.run(scenario())

    def test_successful_processing_completes_and_updates_stats(self):
        async def scenario():
            repository = InMemoryRepository()
            ledger = build_ledger(repository)
            rule = await repository.create_rule(make_rule())
            round_up = await ledger.create(make_event("23"), rule, Decimal("2"))
            return rule, await ledger.process_pending(round_up.id)

        rule, round_up = asyncio.run(scenario())
        assert round_up.status is RoundUpStatus.COMPLETED
        assert round_up.completed_at is not None
        assert rule.total_saved == Decimal("2")
        assert rule.transaction_count == 1

    def test_destination_failure_marks_failed_without_stats(self):
        async def scenario():
            repository = InMemoryRepository()
            ledger = build_ledger(repository, gateway=RecordingGateway(failures=1))
            rule = await repository.create_rule(make_rule())
            round_up = await ledger.create(make_event("23"), rule, Decimal("2"))
            return rule, await ledger.process_pending(round_up.id)

        rule, round_up = asyncio.run(scenario())
        assert round_up.status is RoundUpStatus.FAILED
        assert round_up.completed_at is None
        assert rule.total_saved == Decimal("0")
        assert rule.transaction_count == 0

    def test_missing_savings_account_marks_failed(self):
        async def scenario():
            repository = InMemoryRepository()
            ledger = build_ledger(repository)
            rule = await repository.create_rule(
                make_rule(destination_type=DestinationType.SAVINGS_ACCOUNT, destination_id="gone")
            )
            round_up = await ledger.create(make_event("23"), rule, Decimal("2"))
            return await ledger.process_pending(round_up.id)

        assert asyncio.run(scenario()).status is RoundUpStatus.FAILED

    def test_processing_twice_routes_once(self):
        async def scenario():
            repository = InMemoryRepository()
            account = SavingsAccount(user_id="user_1", name="Main")
            repository.accounts[account.id] = account
            ledger = build_ledger(repository)
            rule = await repository.create_rule(
                make_rule(destination_type=DestinationType.SAVINGS_ACCOUNT, destination_id=account.id)
            )
            round_up = await ledger.create(make_event("23"), rule, Decimal("2"))
            results = await asyncio.gather(ledger.process_pending(round_up.id), ledger.process_pending(round_up.id))
            again = await ledger.process_pending(round_up.id)
            return account, rule, results, again

        account, rule, results, again = asyncio.run(scenario())
        assert account.balance == Decimal("2")
        assert rule.transaction_count == 1
        assert again.status is RoundUpStatus.COMPLETED

    def test_terminal_states_have_no_exits(self):
        async def scenario():
            repository = InMemoryRepository()
            ledger = build_ledger(repository)
            rule = await repository.create_rule(make_rule())
            round_up = await ledger.create(make_event("23"), rule, Decimal("2"))
            await ledger.process_pending(round_up.id)
            await ledger.transition(round_up.id, RoundUpStatus.COMPLETED, RoundUpStatus.FAILED)

        with pytest.raises(InvalidTransitionError):
            asyncio.run(scenario())

    def test_pending_cannot_jump_to_completed(self):
        ledger = build_ledger(InMemoryRepository())
        with pytest.raises(InvalidTransitionError):
            asyncio.run(ledger.transition("ru_1", RoundUpStatus.PENDING, RoundUpStatus.COMPLETED))

    def test_completed_round_up_feeds_linked_goal(self):
        async def scenario():
            repository = InMemoryRepository()
            ledger = build_ledger(repository)
            rule = await repository.create_rule(make_rule(TriggerType.ROUND_UP))
            low = await repository.create_goal(SavingsGoal(
                user_id="user_1", name="Car", target_amount=Decimal("100"),
                target_date=datetime(2026, 1, 1), priority=GoalPriority.LOW, auto_save_rules=[rule.id],
            ))
            high = await repository.create_goal(SavingsGoal(
                user_id="user_1", name="Emergency", target_amount=Decimal("100"),
                target_date=datetime(2026, 1, 1), priority=GoalPriority.HIGH, auto_save_rules=[rule.id],
            ))
            round_up = await ledger.create(make_event("23"), rule, Decimal("2"))
            await ledger.process_pending(round_up.id)
            return repository, low, high, round_up

        repository, low, high, round_up = asyncio.run(scenario())
        assert high.current_amount == Decimal("2")
        assert high.progress == Decimal("2.00")
        assert low.current_amount == Decimal("0")
        [contribution] = repository.contributions
        assert contribution.source is ContributionSource.ROUND_UP
        assert contribution.source_id == round_up.id

    def test_failed_round_up_does_not_feed_goal(self):
        async def scenario():
            repository = InMemoryRepository()
            ledger = build_ledger(repository, gateway=RecordingGateway(failures=1))
            rule = await repository.create_rule(make_rule(TriggerType.PERCENTAGE, {"percentage": "5"}))
            goal = await repository.create_goal(SavingsGoal(
                user_id="user_1", name="Trip", target_amount=Decimal("100"),
                target_date=datetime(2026, 1, 1), auto_save_rules=[rule.id],
            ))
            round_up = await ledger.create(make_event("200"), rule, Decimal("10"))
            await ledger.process_pending(round_up.id)
            return repository, goal

        repository, goal = asyncio.run(scenario())
        assert goal.current_amount == Decimal("0")
        assert repository.contributions == []
