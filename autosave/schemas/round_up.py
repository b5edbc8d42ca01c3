# schemas/round_up.py

from pydantic import BaseModel, ConfigDict, Field
from decimal import Decimal
from typing import Any, Dict, Optional
from datetime import datetime

from ..db.enums import DestinationType, RoundUpStatus


class RoundUpTransactionOut(BaseModel):
    """A single auto-save firing. A failed status means the siphon did not go through."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    original_transaction_id: str
    original_amount: Decimal
    round_up_amount: Decimal
    total_amount: Decimal
    auto_save_rule_id: str
    destination_type: DestinationType
    destination_id: str
    status: RoundUpStatus
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    transaction_metadata: Dict[str, Any] = Field(default_factory=dict, serialization_alias="metadata")
