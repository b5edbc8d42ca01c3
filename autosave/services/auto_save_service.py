# services/auto_save_service.py

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Set

from ..config import Settings
from ..db.enums import AnalyticsPeriod, ContributionSource, DestinationType, RoundUpStatus, TransactionType
from ..models import AutoSaveRule, GoalContribution, RoundUpTransaction, SavingsAccount, SavingsGoal
from ..schemas.analytics import SavingsAnalytics
from ..schemas.auto_save_rule import AutoSaveRuleCreate, AutoSaveRuleUpdate
from ..schemas.savings import SavingsAccountCreate, SavingsGoalCreate
from ..utils.dates import utcnow
from .analytics_service import AnalyticsAggregator
from .daily_cap_guard import DailyCapGuard
from .destination_router import DestinationRouter
from .exceptions import NotFoundError
from .goal_service import GoalContributionTracker
from .repository import AutoSaveRepository
from .round_up_ledger import RoundUpLedger
from .rule_evaluator import EvaluationResult, RuleEvaluator, TransactionEvent, validate_trigger_settings

logger = logging.getLogger(__name__)


class AutoSaveService:
    """
    Entry point of the engine. Stateless apart from the in-process locks and
    the set of background routing tasks; construct it once with the
    repository and destination router it should use.

    Transaction flow: evaluate rules -> daily cap -> create pending round-ups
    -> (background) route -> completed/failed -> goal contribution.
    """

    def __init__(
        self,
        repository: AutoSaveRepository,
        router: DestinationRouter,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.router = router
        self.settings = settings or Settings()
        self.clock = clock

        self.evaluator = RuleEvaluator()
        self.cap_guard = DailyCapGuard(repository)
        self.goal_tracker = GoalContributionTracker(repository, clock=clock)
        self.ledger = RoundUpLedger(repository, router, goal_tracker=self.goal_tracker)
        self.analytics = AnalyticsAggregator(
            repository, horizon_days=self.settings.behind_schedule_horizon_days, clock=clock
        )

        self._tasks: Set[asyncio.Task] = set()
        self._processing_slots: Optional[asyncio.Semaphore] = None

    # ----------------------------------------------------------------------
    # AUTO-SAVE RULES
    # ----------------------------------------------------------------------
    async def create_auto_save_rule(self, user_id: str, data: AutoSaveRuleCreate) -> AutoSaveRule:
        validate_trigger_settings(data.trigger_type, data.trigger_settings)
        await self._check_destination(user_id, data.destination_type, data.destination_id)

        rule = AutoSaveRule(
            user_id=user_id,
            name=data.name,
            description=data.description,
            trigger_type=data.trigger_type,
            trigger_settings=data.trigger_settings.to_storage(),
            destination_type=data.destination_type,
            destination_id=data.destination_id,
            priority=data.priority,
            is_active=data.is_active,
        )
        rule = await self.repository.create_rule(rule)
        logger.info("Created %s auto-save rule %s for user %s", rule.trigger_type.value, rule.id, user_id)
        return rule

    async def get_auto_save_rules(self, user_id: str) -> List[AutoSaveRule]:
        return await self.repository.list_active_rules(user_id)

    async def get_auto_save_rule(self, user_id: str, rule_id: str) -> AutoSaveRule:
        rule = await self.repository.get_rule(rule_id)
        if rule is None or rule.user_id != user_id:
            raise NotFoundError("Auto-save rule", rule_id)
        return rule

    async def update_auto_save_rule(self, user_id: str, rule_id: str, updates: AutoSaveRuleUpdate) -> AutoSaveRule:
        rule = await self.get_auto_save_rule(user_id, rule_id)

        patch: Dict[str, Any] = updates.model_dump(exclude_unset=True, exclude={"trigger_settings"})
        if updates.trigger_settings is not None:
            validate_trigger_settings(rule.trigger_type, updates.trigger_settings)
            patch["trigger_settings"] = updates.trigger_settings.to_storage()
        if updates.destination_id is not None:
            await self._check_destination(user_id, rule.destination_type, updates.destination_id)

        updated = await self.repository.update_rule(rule_id, patch)
        if updated is None:
            raise NotFoundError("Auto-save rule", rule_id)
        return updated

    async def _check_destination(self, user_id: str, destination_type: DestinationType, destination_id: str) -> None:
        if DestinationType(destination_type) is not DestinationType.SAVINGS_ACCOUNT:
            return
        account = await self.repository.get_savings_account(destination_id)
        if account is None or account.user_id != user_id:
            raise NotFoundError("Savings account", destination_id)

    async def delete_auto_save_rule(self, user_id: str, rule_id: str) -> None:
        """Soft delete: the rule stops firing but its round-up history stays intact."""
        await self.get_auto_save_rule(user_id, rule_id)
        await self.repository.update_rule(rule_id, {"is_active": False})
        logger.info("Deactivated auto-save rule %s", rule_id)

    # ----------------------------------------------------------------------
    # TRANSACTION PROCESSING (transaction-completed event)
    # ----------------------------------------------------------------------
    async def on_transaction_completed(self, event: TransactionEvent) -> List[RoundUpTransaction]:
        event.validate()
        rules = await self.repository.list_active_rules(event.user_id)
        firing = self.evaluator.firing(event, rules)
        if not firing:
            return []

        today = self.clock()
        slots = asyncio.Semaphore(max(1, self.settings.fanout_concurrency))
        outcomes = await asyncio.gather(
            *(self._fire(event, result, today, slots) for result in firing),
            return_exceptions=True,
        )

        triggered: List[RoundUpTransaction] = []
        for result, outcome in zip(firing, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                # One rule's failure never blocks the others
                logger.error(
                    "Auto-save rule %s failed for transaction %s: %s",
                    result.rule.id, event.transaction_id, outcome,
                )
                continue
            if outcome is not None:
                triggered.append(outcome)

        if self.settings.auto_process_round_ups:
            for round_up in triggered:
                self._schedule_processing(round_up.id)

        return triggered

    async def process_transaction_for_auto_save(
        self,
        user_id: str,
        transaction_id: str,
        amount: Decimal,
        transaction_type: TransactionType,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[RoundUpTransaction]:
        event = TransactionEvent(
            user_id=user_id,
            transaction_id=transaction_id,
            amount=amount,
            type=transaction_type,
            metadata=metadata or {},
        )
        return await self.on_transaction_completed(event)

    async def _fire(
        self,
        event: TransactionEvent,
        result: EvaluationResult,
        today: datetime,
        slots: asyncio.Semaphore,
    ) -> Optional[RoundUpTransaction]:
        async with slots:
            async with self.cap_guard.hold(result.rule, event.user_id, today):
                if not await self.cap_guard.allow(result.rule, result.amount, event.user_id, today):
                    return None
                return await self.ledger.create(event, result.rule, result.amount)

    # ----------------------------------------------------------------------
    # ROUND-UP PROCESSING
    # ----------------------------------------------------------------------
    async def process_round_up(self, round_up_id: str, user_id: Optional[str] = None) -> RoundUpTransaction:
        if user_id is not None:
            round_up = await self.repository.get_round_up(round_up_id)
            if round_up is None or round_up.user_id != user_id:
                raise NotFoundError("Round-up transaction", round_up_id)
        return await self.ledger.process_pending(round_up_id)

    async def list_round_ups(self, user_id: str, status: Optional[RoundUpStatus] = None) -> List[RoundUpTransaction]:
        return await self.repository.list_round_ups(user_id, status)

    def _schedule_processing(self, round_up_id: str) -> None:
        task = asyncio.create_task(self._process_in_background(round_up_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process_in_background(self, round_up_id: str) -> None:
        if self._processing_slots is None:
            self._processing_slots = asyncio.Semaphore(max(1, self.settings.fanout_concurrency))
        async with self._processing_slots:
            try:
                await self.ledger.process_pending(round_up_id)
            except Exception:
                # Nobody awaits this task; the ledger has already marked the round-up failed
                logger.exception("Background processing of round-up %s failed", round_up_id)

    async def drain(self) -> None:
        """Waits for every scheduled round-up to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ----------------------------------------------------------------------
    # SAVINGS ACCOUNTS
    # ----------------------------------------------------------------------
    async def create_savings_account(self, user_id: str, data: SavingsAccountCreate) -> SavingsAccount:
        account = SavingsAccount(
            user_id=user_id,
            name=data.name,
            description=data.description,
            currency=data.currency,
            interest_rate=data.interest_rate,
            settings=data.settings.model_dump(mode="json"),
        )
        return await self.repository.create_savings_account(account)

    async def get_savings_accounts(self, user_id: str) -> List[SavingsAccount]:
        return await self.repository.list_savings_accounts(user_id)

    # ----------------------------------------------------------------------
    # SAVINGS GOALS
    # ----------------------------------------------------------------------
    async def create_savings_goal(self, user_id: str, data: SavingsGoalCreate) -> SavingsGoal:
        for rule_id in data.auto_save_rules:
            await self.get_auto_save_rule(user_id, rule_id)
        return await self.goal_tracker.create_goal(user_id, data)

    async def get_savings_goals(self, user_id: str) -> List[SavingsGoal]:
        return await self.goal_tracker.get_goals(user_id)

    async def add_goal_contribution(
        self,
        user_id: str,
        goal_id: str,
        amount: Decimal,
        source: ContributionSource = ContributionSource.MANUAL,
        source_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> GoalContribution:
        await self.goal_tracker.get_goal(goal_id, user_id)
        return await self.goal_tracker.add_contribution(goal_id, amount, source, source_id, description)

    async def get_goal_contributions(self, user_id: str, goal_id: str) -> List[GoalContribution]:
        await self.goal_tracker.get_goal(goal_id, user_id)
        return await self.goal_tracker.list_contributions(goal_id)

    async def link_rule_to_goal(self, user_id: str, goal_id: str, rule_id: str) -> SavingsGoal:
        await self.goal_tracker.get_goal(goal_id, user_id)
        await self.get_auto_save_rule(user_id, rule_id)
        return await self.goal_tracker.link_rule_to_goal(goal_id, rule_id)

    # ----------------------------------------------------------------------
    # ANALYTICS
    # ----------------------------------------------------------------------
    async def get_savings_analytics(self, user_id: str, period: AnalyticsPeriod) -> SavingsAnalytics:
        return await self.analytics.get_analytics(user_id, period)
