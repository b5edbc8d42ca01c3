# services/round_up_ledger.py

import logging
from decimal import Decimal
from typing import Dict, FrozenSet, Optional

from ..db.enums import DestinationType, RoundUpStatus
from ..models import AutoSaveRule, RoundUpTransaction
from .destination_router import DestinationRouter
from .exceptions import (
    DestinationUnavailableError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from .goal_service import GoalContributionTracker
from .repository import AutoSaveRepository
from .rule_evaluator import TransactionEvent

logger = logging.getLogger(__name__)

# pending -> processing -> completed, pending|processing -> failed. Terminal states have no exits.
ALLOWED_TRANSITIONS: Dict[RoundUpStatus, FrozenSet[RoundUpStatus]] = {
    RoundUpStatus.PENDING: frozenset({RoundUpStatus.PROCESSING, RoundUpStatus.FAILED}),
    RoundUpStatus.PROCESSING: frozenset({RoundUpStatus.COMPLETED, RoundUpStatus.FAILED}),
    RoundUpStatus.COMPLETED: frozenset(),
    RoundUpStatus.FAILED: frozenset(),
}


class RoundUpLedger:
    """
    Creates one RoundUpTransaction per firing and drives it through its
    state machine. Status changes are compare-and-set in the store, so a
    round-up is routed at most once even if processing is requested twice.
    """

    def __init__(
        self,
        repository: AutoSaveRepository,
        router: DestinationRouter,
        goal_tracker: Optional[GoalContributionTracker] = None,
    ):
        self.repository = repository
        self.router = router
        self.goal_tracker = goal_tracker

    async def create(self, event: TransactionEvent, rule: AutoSaveRule, amount: Decimal) -> RoundUpTransaction:
        if amount <= 0:
            raise ValidationError("Round-up amount must be positive")

        round_up = RoundUpTransaction(
            user_id=event.user_id,
            original_transaction_id=event.transaction_id,
            original_amount=event.amount,
            round_up_amount=amount,
            total_amount=event.amount + amount,
            auto_save_rule_id=rule.id,
            destination_type=DestinationType(rule.destination_type),
            destination_id=rule.destination_id,
            status=RoundUpStatus.PENDING,
            transaction_metadata={"transaction_type": event.type.value, **event.metadata},
        )
        round_up = await self.repository.create_round_up(round_up)
        await self.repository.touch_rule(rule.id)

        logger.info(
            "Round-up %s created: rule %s siphons %s from transaction %s",
            round_up.id, rule.id, amount, event.transaction_id,
        )
        return round_up

    async def transition(self, round_up_id: str, current: RoundUpStatus, new: RoundUpStatus) -> bool:
        if new not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(round_up_id, current.value, new.value)
        return await self.repository.update_round_up_status(round_up_id, new, expected=current)

    async def _reload(self, round_up_id: str) -> RoundUpTransaction:
        round_up = await self.repository.get_round_up(round_up_id)
        if round_up is None:
            raise NotFoundError("Round-up transaction", round_up_id)
        return round_up

    async def process_pending(self, round_up_id: str) -> RoundUpTransaction:
        """
        Routes a pending round-up and settles it as completed or failed.
        Anything not pending is returned untouched.
        """
        round_up = await self._reload(round_up_id)
        if round_up.status is not RoundUpStatus.PENDING:
            logger.info("Round-up %s is already %s, not processing again", round_up_id, round_up.status.value)
            return round_up

        if not await self.transition(round_up_id, RoundUpStatus.PENDING, RoundUpStatus.PROCESSING):
            # Another worker claimed it first
            return await self._reload(round_up_id)

        try:
            rule = await self.repository.get_rule(round_up.auto_save_rule_id)
            if rule is None:
                raise NotFoundError("Auto-save rule", round_up.auto_save_rule_id)

            await self.router.route(
                round_up.destination_type,
                round_up.destination_id,
                round_up.round_up_amount,
                reference=round_up.id,
                owner_id=round_up.user_id,
            )
        except (NotFoundError, DestinationUnavailableError) as exc:
            logger.warning("Round-up %s failed: %s", round_up_id, exc)
            await self.transition(round_up_id, RoundUpStatus.PROCESSING, RoundUpStatus.FAILED)
            return await self._reload(round_up_id)
        except Exception:
            logger.exception("Unexpected error routing round-up %s", round_up_id)
            await self.transition(round_up_id, RoundUpStatus.PROCESSING, RoundUpStatus.FAILED)
            raise

        await self.transition(round_up_id, RoundUpStatus.PROCESSING, RoundUpStatus.COMPLETED)
        await self.repository.increment_rule_stats(rule.id, round_up.round_up_amount)

        if self.goal_tracker is not None:
            try:
                await self.goal_tracker.contribute_round_up(rule, round_up)
            except (NotFoundError, ValidationError) as exc:
                # The money has moved; the round-up stays completed
                logger.error("Round-up %s completed but goal contribution failed: %s", round_up_id, exc)

        return await self._reload(round_up_id)
