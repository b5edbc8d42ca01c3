# services/rule_evaluator.py

"""
Rule Evaluator

Decides, for one completed transaction, which auto-save rules fire and how
much each one siphons. Every active rule is evaluated independently: all
eligible rules fire for the same transaction, priority only orders the output.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_CEILING
from typing import Any, Dict, List, Optional, Sequence

import pydantic

from ..db.enums import TransactionType, TriggerType
from ..models import AutoSaveRule
from ..schemas.auto_save_rule import TriggerSettings
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_ROUND_UP_AMOUNT = Decimal("5")
DEFAULT_PERCENTAGE = Decimal("5")
ZERO = Decimal("0")

# Smart save: (lower bound inclusive, amount saved), checked from the top tier down
SMART_SAVE_TIERS = (
    (Decimal("1000"), Decimal("10")),
    (Decimal("500"), Decimal("5")),
    (Decimal("100"), Decimal("2")),
    (Decimal("50"), Decimal("1")),
)


@dataclass
class TransactionEvent:
    """A completed payment, trade or transfer, as published upstream."""
    user_id: str
    transaction_id: str
    amount: Decimal
    type: TransactionType
    metadata: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> "TransactionEvent":
        if not self.user_id or not self.transaction_id:
            raise ValidationError("Transaction event requires user_id and transaction_id")
        try:
            self.amount = Decimal(str(self.amount))
        except ArithmeticError:
            raise ValidationError(f"Invalid transaction amount: {self.amount!r}")
        if not self.amount.is_finite() or self.amount <= ZERO:
            raise ValidationError("Transaction amount must be positive")
        try:
            self.type = TransactionType(self.type)
        except ValueError:
            raise ValidationError(f"Unsupported transaction type: {self.type!r}")
        self.metadata = dict(self.metadata or {})
        return self


@dataclass(frozen=True)
class EvaluationResult:
    rule: AutoSaveRule
    fires: bool
    amount: Decimal = ZERO


# ----------------------------------------------------------------------
# Amount strategies
# ----------------------------------------------------------------------

def round_up_amount(amount: Decimal, unit: Decimal = DEFAULT_ROUND_UP_AMOUNT) -> Decimal:
    """Distance from amount up to the next multiple of unit (0 when already a multiple)."""
    multiples = (amount / unit).to_integral_value(rounding=ROUND_CEILING)
    return multiples * unit - amount


def percentage_amount(amount: Decimal, percentage: Decimal) -> Decimal:
    return amount * percentage / Decimal("100")


def smart_save_amount(amount: Decimal) -> Decimal:
    for lower_bound, saved in SMART_SAVE_TIERS:
        if amount >= lower_bound:
            return saved
    return ZERO


def parse_trigger_settings(raw: Optional[Dict[str, Any]]) -> TriggerSettings:
    return TriggerSettings.model_validate(raw or {})


def should_trigger(trigger_type: TriggerType, settings: TriggerSettings, amount: Decimal) -> bool:
    if settings.minimum_transaction is not None and amount < settings.minimum_transaction:
        return False

    if trigger_type is TriggerType.SMART_SAVE and settings.spending_threshold is not None:
        return amount >= settings.spending_threshold

    return True


def compute_amount(trigger_type: TriggerType, settings: TriggerSettings, amount: Decimal) -> Decimal:
    if trigger_type is TriggerType.ROUND_UP:
        return round_up_amount(amount, settings.round_up_amount or DEFAULT_ROUND_UP_AMOUNT)

    if trigger_type is TriggerType.PERCENTAGE:
        percentage = settings.percentage if settings.percentage is not None else DEFAULT_PERCENTAGE
        return percentage_amount(amount, percentage)

    if trigger_type is TriggerType.FIXED_AMOUNT:
        return settings.fixed_amount or ZERO

    if trigger_type is TriggerType.SMART_SAVE:
        return smart_save_amount(amount)

    return ZERO


def validate_trigger_settings(trigger_type: TriggerType, settings: TriggerSettings) -> None:
    """Rule-level checks on top of the per-field constraints of TriggerSettings."""
    if TriggerType(trigger_type) is TriggerType.FIXED_AMOUNT and settings.fixed_amount is None:
        raise ValidationError("fixed_amount rules require trigger_settings.fixed_amount")


class RuleEvaluator:
    """Stateless; safe to share between concurrent transactions."""

    def evaluate_rule(self, rule: AutoSaveRule, event: TransactionEvent) -> EvaluationResult:
        trigger_type = TriggerType(rule.trigger_type)
        try:
            settings = parse_trigger_settings(rule.trigger_settings)
        except pydantic.ValidationError as exc:
            logger.warning("Rule %s has malformed trigger settings, skipping: %s", rule.id, exc)
            return EvaluationResult(rule=rule, fires=False)

        if not should_trigger(trigger_type, settings, event.amount):
            return EvaluationResult(rule=rule, fires=False)

        amount = compute_amount(trigger_type, settings, event.amount)
        if amount <= ZERO:
            return EvaluationResult(rule=rule, fires=False)

        return EvaluationResult(rule=rule, fires=True, amount=amount)

    def evaluate(self, event: TransactionEvent, rules: Sequence[AutoSaveRule]) -> List[EvaluationResult]:
        """One result per active rule, highest priority first."""
        ordered = sorted(
            (rule for rule in rules if rule.is_active),
            key=lambda rule: rule.priority or 0,
            reverse=True,
        )
        return [self.evaluate_rule(rule, event) for rule in ordered]

    def firing(self, event: TransactionEvent, rules: Sequence[AutoSaveRule]) -> List[EvaluationResult]:
        return [result for result in self.evaluate(event, rules) if result.fires]
