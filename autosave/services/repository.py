# services/repository.py

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ..db.enums import DestinationType, RoundUpStatus
from ..models import (
    AutoSaveRule,
    GoalContribution,
    RoundUpTransaction,
    SavingsAccount,
    SavingsGoal,
)


@dataclass(frozen=True)
class RuleTotals:
    """Completed round-ups of one rule inside an analytics window."""
    rule_id: str
    destination_type: DestinationType
    amount: Decimal
    count: int


class AutoSaveRepository(ABC):
    """
    Storage contract the engine needs. Implementations assign ids and creation
    timestamps on insert; the engine never supplies its own clock to the store.
    """

    # --- Auto-save rules ---

    @abstractmethod
    async def create_rule(self, rule: AutoSaveRule) -> AutoSaveRule: ...

    @abstractmethod
    async def get_rule(self, rule_id: str) -> Optional[AutoSaveRule]: ...

    @abstractmethod
    async def list_active_rules(self, user_id: str) -> List[AutoSaveRule]:
        """Active rules, priority desc then newest first."""

    @abstractmethod
    async def update_rule(self, rule_id: str, patch: Dict[str, Any]) -> Optional[AutoSaveRule]: ...

    @abstractmethod
    async def increment_rule_stats(self, rule_id: str, amount: Decimal) -> None:
        """Atomic total_saved += amount, transaction_count += 1."""

    @abstractmethod
    async def touch_rule(self, rule_id: str) -> None:
        """Stamp last_triggered with the store's clock."""

    # --- Round-up transactions ---

    @abstractmethod
    async def create_round_up(self, round_up: RoundUpTransaction) -> RoundUpTransaction: ...

    @abstractmethod
    async def get_round_up(self, round_up_id: str) -> Optional[RoundUpTransaction]: ...

    @abstractmethod
    async def list_round_ups(
        self, user_id: str, status: Optional[RoundUpStatus] = None
    ) -> List[RoundUpTransaction]: ...

    @abstractmethod
    async def update_round_up_status(
        self,
        round_up_id: str,
        status: RoundUpStatus,
        completed_at: Optional[datetime] = None,
        expected: Optional[RoundUpStatus] = None,
    ) -> bool:
        """
        Compare-and-set status change. Returns False when the round-up is
        missing or its current status differs from `expected`. Completing
        without an explicit completed_at uses the store's clock.
        """

    @abstractmethod
    async def sum_completed_round_ups_for_rule(self, rule_id: str, since: datetime) -> Decimal:
        """Completed amounts only, for reporting. The daily cap uses the reserved sum."""

    @abstractmethod
    async def sum_reserved_round_ups_for_rule(self, rule_id: str, since: datetime) -> Decimal:
        """Completed plus in-flight (pending/processing) amounts; failed ones are excluded."""

    @abstractmethod
    async def sum_completed_round_ups_for_user(
        self, user_id: str, since: datetime
    ) -> Tuple[Decimal, int]: ...

    @abstractmethod
    async def completed_round_up_breakdown(self, user_id: str, since: datetime) -> List[RuleTotals]: ...

    # --- Savings goals ---

    @abstractmethod
    async def create_goal(self, goal: SavingsGoal) -> SavingsGoal: ...

    @abstractmethod
    async def get_goal(self, goal_id: str) -> Optional[SavingsGoal]: ...

    @abstractmethod
    async def list_active_goals(self, user_id: str) -> List[SavingsGoal]: ...

    @abstractmethod
    async def link_rule_to_goal(self, goal_id: str, rule_id: str) -> Optional[SavingsGoal]: ...

    @abstractmethod
    async def update_goal_progress(
        self,
        goal_id: str,
        new_current: Decimal,
        progress: Decimal,
        is_completed: bool,
        completed_at: Optional[datetime] = None,
    ) -> Optional[SavingsGoal]: ...

    @abstractmethod
    async def create_contribution(self, contribution: GoalContribution) -> GoalContribution: ...

    @abstractmethod
    async def list_contributions(self, goal_id: str) -> List[GoalContribution]: ...

    async def list_goals_for_rule(self, user_id: str, rule_id: str) -> List[SavingsGoal]:
        goals = await self.list_active_goals(user_id)
        return [goal for goal in goals if rule_id in (goal.auto_save_rules or [])]

    # --- Savings accounts ---

    @abstractmethod
    async def create_savings_account(self, account: SavingsAccount) -> SavingsAccount: ...

    @abstractmethod
    async def get_savings_account(self, account_id: str) -> Optional[SavingsAccount]: ...

    @abstractmethod
    async def list_savings_accounts(self, user_id: str) -> List[SavingsAccount]: ...

    @abstractmethod
    async def credit_savings_account(self, account_id: str, amount: Decimal, reference: str) -> bool:
        """
        Atomically adds amount to balance and total_deposits and records the
        credit under `reference`. Returns False if that reference was already
        applied.
        """
