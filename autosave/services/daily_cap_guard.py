# services/daily_cap_guard.py

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncIterator, Dict, Optional, Tuple

from ..models import AutoSaveRule
from ..utils.dates import start_of_day
from .repository import AutoSaveRepository
from .rule_evaluator import parse_trigger_settings

logger = logging.getLogger(__name__)

CapKey = Tuple[str, str, date]


class DailyCapGuard:
    """
    Enforces a rule's max_daily_amount per calendar day.

    The check-then-create sequence must not interleave for the same
    (user, rule, day): callers wrap it in `hold(...)`, which serializes on a
    per-key asyncio.Lock. The day's total counts completed and in-flight
    round-ups, so a firing that is still being routed already uses capacity;
    a failed one gives it back.
    """

    def __init__(self, repository: AutoSaveRepository):
        self.repository = repository
        self._locks: Dict[CapKey, asyncio.Lock] = {}

    @staticmethod
    def max_daily_amount(rule: AutoSaveRule) -> Optional[Decimal]:
        return parse_trigger_settings(rule.trigger_settings).max_daily_amount

    def _lock_for(self, key: CapKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            # Locks for past days can never be contended again
            for stale in [k for k in self._locks if k[2] < key[2]]:
                del self._locks[stale]
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, rule: AutoSaveRule, user_id: str, today: datetime) -> AsyncIterator[None]:
        if self.max_daily_amount(rule) is None:
            yield
            return
        async with self._lock_for((user_id, rule.id, today.date())):
            yield

    async def daily_saved(self, rule: AutoSaveRule, today: datetime) -> Decimal:
        return await self.repository.sum_reserved_round_ups_for_rule(rule.id, start_of_day(today))

    async def allow(self, rule: AutoSaveRule, candidate_amount: Decimal, user_id: str, today: datetime) -> bool:
        max_daily = self.max_daily_amount(rule)
        if max_daily is None:
            return True

        daily_saved = await self.daily_saved(rule, today)
        if daily_saved + candidate_amount > max_daily:
            logger.info(
                "Daily cap reached for rule %s (user %s): %s saved today, %s requested, cap %s",
                rule.id, user_id, daily_saved, candidate_amount, max_daily,
            )
            return False
        return True
