# schemas/transaction.py

from pydantic import BaseModel, Field, condecimal
from decimal import Decimal
from typing import Any, Dict, List

from ..db.enums import TransactionType
from .round_up import RoundUpTransactionOut


class CompletedTransactionIn(BaseModel):
    """Transaction-completed event published by the payment/trading subsystem."""

    transaction_id: str = Field(..., min_length=1, max_length=64)
    amount: condecimal(gt=Decimal("0")) = Field(..., description="Completed transaction amount.")
    type: TransactionType
    metadata: Dict[str, Any] = Field(default_factory=dict, description="e.g. merchant_name, stock_symbol.")


class TransactionProcessedOut(BaseModel):
    transaction_id: str
    triggered_count: int
    total_round_up: Decimal = Field(Decimal("0"), description="Sum of the triggered round-ups (status resolves asynchronously).")
    round_ups: List[RoundUpTransactionOut]
