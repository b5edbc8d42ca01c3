# services/sql_repository.py

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.enums import RoundUpStatus
from ..models import (
    AutoSaveRule,
    GoalContribution,
    RoundUpTransaction,
    SavingsAccount,
    SavingsAccountCredit,
    SavingsGoal,
)
from .repository import AutoSaveRepository, RuleTotals

RESERVED_STATUSES = (RoundUpStatus.PENDING, RoundUpStatus.PROCESSING, RoundUpStatus.COMPLETED)


def _as_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class SqlAutoSaveRepository(AutoSaveRepository):
    """
    SQLAlchemy (async) implementation of the repository contract.
    Every operation runs in its own session and transaction, so concurrent
    tasks (rule fan-out, background routing) never share a session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _insert(self, instance):
        async with self.session_factory() as session:
            session.add(instance)
            await session.commit()
            # Loads the server-assigned created_at
            await session.refresh(instance)
            return instance

    async def _get(self, model, key: str):
        async with self.session_factory() as session:
            return await session.get(model, key)

    # ------------------------------------------------------------------
    # AUTO-SAVE RULES
    # ------------------------------------------------------------------
    async def create_rule(self, rule: AutoSaveRule) -> AutoSaveRule:
        return await self._insert(rule)

    async def get_rule(self, rule_id: str) -> Optional[AutoSaveRule]:
        return await self._get(AutoSaveRule, rule_id)

    async def list_active_rules(self, user_id: str) -> List[AutoSaveRule]:
        stmt = select(AutoSaveRule).where(
            and_(
                AutoSaveRule.user_id == user_id,
                AutoSaveRule.is_active == True,  # noqa: E712
            )
        ).order_by(AutoSaveRule.priority.desc(), AutoSaveRule.created_at.desc())

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_rule(self, rule_id: str, patch: Dict[str, Any]) -> Optional[AutoSaveRule]:
        async with self.session_factory() as session:
            rule = await session.get(AutoSaveRule, rule_id)
            if rule is None:
                return None
            for key, value in patch.items():
                setattr(rule, key, value)
            await session.commit()
            await session.refresh(rule)
            return rule

    async def increment_rule_stats(self, rule_id: str, amount: Decimal) -> None:
        # Single UPDATE ... SET x = x + n, no read-modify-write
        stmt = (
            update(AutoSaveRule)
            .where(AutoSaveRule.id == rule_id)
            .values(
                total_saved=AutoSaveRule.total_saved + amount,
                transaction_count=AutoSaveRule.transaction_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def touch_rule(self, rule_id: str) -> None:
        stmt = (
            update(AutoSaveRule)
            .where(AutoSaveRule.id == rule_id)
            .values(last_triggered=func.now())
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    # ------------------------------------------------------------------
    # ROUND-UP TRANSACTIONS
    # ------------------------------------------------------------------
    async def create_round_up(self, round_up: RoundUpTransaction) -> RoundUpTransaction:
        return await self._insert(round_up)

    async def get_round_up(self, round_up_id: str) -> Optional[RoundUpTransaction]:
        return await self._get(RoundUpTransaction, round_up_id)

    async def list_round_ups(
        self, user_id: str, status: Optional[RoundUpStatus] = None
    ) -> List[RoundUpTransaction]:
        stmt = select(RoundUpTransaction).where(RoundUpTransaction.user_id == user_id)
        if status is not None:
            stmt = stmt.where(RoundUpTransaction.status == status)
        stmt = stmt.order_by(RoundUpTransaction.created_at.desc())

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_round_up_status(
        self,
        round_up_id: str,
        status: RoundUpStatus,
        completed_at: Optional[datetime] = None,
        expected: Optional[RoundUpStatus] = None,
    ) -> bool:
        values: Dict[str, Any] = {"status": status}
        if status is RoundUpStatus.COMPLETED:
            values["completed_at"] = completed_at if completed_at is not None else func.now()

        stmt = update(RoundUpTransaction).where(RoundUpTransaction.id == round_up_id)
        if expected is not None:
            stmt = stmt.where(RoundUpTransaction.status == expected)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount == 1

    async def sum_completed_round_ups_for_rule(self, rule_id: str, since: datetime) -> Decimal:
        """
        Settled savings for one rule since `since`. Used for reporting; the daily
        cap counts in-flight firings too and reads sum_reserved_round_ups_for_rule.
        """
        stmt = select(func.coalesce(func.sum(RoundUpTransaction.round_up_amount), 0)).where(
            and_(
                RoundUpTransaction.auto_save_rule_id == rule_id,
                RoundUpTransaction.status == RoundUpStatus.COMPLETED,
                RoundUpTransaction.created_at >= since,
            )
        )
        async with self.session_factory() as session:
            return _as_decimal((await session.execute(stmt)).scalar())

    async def sum_reserved_round_ups_for_rule(self, rule_id: str, since: datetime) -> Decimal:
        stmt = select(func.coalesce(func.sum(RoundUpTransaction.round_up_amount), 0)).where(
            and_(
                RoundUpTransaction.auto_save_rule_id == rule_id,
                RoundUpTransaction.status.in_(RESERVED_STATUSES),
                RoundUpTransaction.created_at >= since,
            )
        )
        async with self.session_factory() as session:
            return _as_decimal((await session.execute(stmt)).scalar())

    async def sum_completed_round_ups_for_user(
        self, user_id: str, since: datetime
    ) -> Tuple[Decimal, int]:
        stmt = select(
            func.coalesce(func.sum(RoundUpTransaction.round_up_amount), 0),
            func.count(RoundUpTransaction.id),
        ).where(
            and_(
                RoundUpTransaction.user_id == user_id,
                RoundUpTransaction.status == RoundUpStatus.COMPLETED,
                RoundUpTransaction.created_at >= since,
            )
        )
        async with self.session_factory() as session:
            total, count = (await session.execute(stmt)).one()
            return _as_decimal(total), int(count or 0)

    async def completed_round_up_breakdown(self, user_id: str, since: datetime) -> List[RuleTotals]:
        stmt = select(
            RoundUpTransaction.auto_save_rule_id,
            RoundUpTransaction.destination_type,
            func.sum(RoundUpTransaction.round_up_amount),
            func.count(RoundUpTransaction.id),
        ).where(
            and_(
                RoundUpTransaction.user_id == user_id,
                RoundUpTransaction.status == RoundUpStatus.COMPLETED,
                RoundUpTransaction.created_at >= since,
            )
        ).group_by(RoundUpTransaction.auto_save_rule_id, RoundUpTransaction.destination_type)

        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).all()
        return [
            RuleTotals(rule_id=rule_id, destination_type=destination_type, amount=_as_decimal(amount), count=int(count))
            for rule_id, destination_type, amount, count in rows
        ]

    # ------------------------------------------------------------------
    # SAVINGS GOALS
    # ------------------------------------------------------------------
    async def create_goal(self, goal: SavingsGoal) -> SavingsGoal:
        return await self._insert(goal)

    async def get_goal(self, goal_id: str) -> Optional[SavingsGoal]:
        return await self._get(SavingsGoal, goal_id)

    async def list_active_goals(self, user_id: str) -> List[SavingsGoal]:
        stmt = select(SavingsGoal).where(
            and_(
                SavingsGoal.user_id == user_id,
                SavingsGoal.is_active == True,  # noqa: E712
            )
        ).order_by(SavingsGoal.created_at.desc())

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def link_rule_to_goal(self, goal_id: str, rule_id: str) -> Optional[SavingsGoal]:
        async with self.session_factory() as session:
            goal = await session.get(SavingsGoal, goal_id)
            if goal is None:
                return None
            if rule_id not in goal.auto_save_rules:
                # Reassign so the JSON column is flagged dirty
                goal.auto_save_rules = [*goal.auto_save_rules, rule_id]
                await session.commit()
                await session.refresh(goal)
            return goal

    async def update_goal_progress(
        self,
        goal_id: str,
        new_current: Decimal,
        progress: Decimal,
        is_completed: bool,
        completed_at: Optional[datetime] = None,
    ) -> Optional[SavingsGoal]:
        async with self.session_factory() as session:
            goal = await session.get(SavingsGoal, goal_id)
            if goal is None:
                return None
            goal.current_amount = new_current
            goal.progress = progress
            goal.is_completed = is_completed
            goal.completed_at = completed_at
            await session.commit()
            await session.refresh(goal)
            return goal

    async def create_contribution(self, contribution: GoalContribution) -> GoalContribution:
        return await self._insert(contribution)

    async def list_contributions(self, goal_id: str) -> List[GoalContribution]:
        stmt = (
            select(GoalContribution)
            .where(GoalContribution.goal_id == goal_id)
            .order_by(GoalContribution.created_at)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # SAVINGS ACCOUNTS
    # ------------------------------------------------------------------
    async def create_savings_account(self, account: SavingsAccount) -> SavingsAccount:
        return await self._insert(account)

    async def get_savings_account(self, account_id: str) -> Optional[SavingsAccount]:
        return await self._get(SavingsAccount, account_id)

    async def list_savings_accounts(self, user_id: str) -> List[SavingsAccount]:
        stmt = select(SavingsAccount).where(
            and_(
                SavingsAccount.user_id == user_id,
                SavingsAccount.is_active == True,  # noqa: E712
            )
        ).order_by(SavingsAccount.created_at.desc())

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def credit_savings_account(self, account_id: str, amount: Decimal, reference: str) -> bool:
        async with self.session_factory() as session:
            try:
                # The credit row and the balance change commit together; a
                # duplicate reference violates the unique constraint.
                session.add(SavingsAccountCredit(account_id=account_id, amount=amount, reference=reference))
                await session.flush()
                await session.execute(
                    update(SavingsAccount)
                    .where(SavingsAccount.id == account_id)
                    .values(
                        balance=SavingsAccount.balance + amount,
                        total_deposits=SavingsAccount.total_deposits + amount,
                        last_activity=func.now(),
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
        return True
