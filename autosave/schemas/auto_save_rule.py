# schemas/auto_save_rule.py

from pydantic import BaseModel, ConfigDict, Field, condecimal
from decimal import Decimal
from typing import Any, Dict, Optional
from datetime import datetime

from ..db.enums import TriggerType, DestinationType

PositiveDecimal = condecimal(gt=Decimal("0"))


class TriggerSettings(BaseModel):
    """Variant payload of an auto-save rule; which fields matter depends on the trigger type."""

    # Round-up settings
    round_up_amount: Optional[PositiveDecimal] = Field(None, description="Round up to the next multiple of this amount (default 5).")
    minimum_transaction: Optional[PositiveDecimal] = Field(None, description="Transactions below this amount never trigger the rule.")

    # Percentage settings
    percentage: Optional[condecimal(gt=Decimal("0"), le=Decimal("100"))] = Field(None, description="Share of the transaction to save (default 5).")

    # Fixed amount settings
    fixed_amount: Optional[PositiveDecimal] = Field(None, description="Amount saved per qualifying transaction.")

    # Smart save settings
    smart_save_enabled: Optional[bool] = None
    max_daily_amount: Optional[PositiveDecimal] = Field(None, description="Ceiling on the amount this rule may siphon per calendar day.")
    spending_threshold: Optional[PositiveDecimal] = Field(None, description="Smart save only fires at or above this spend.")

    def to_storage(self) -> Dict[str, Any]:
        """JSON-safe dict for the rule's trigger_settings column (decimals become strings)."""
        return self.model_dump(mode="json", exclude_none=True)


class AutoSaveRuleCreate(BaseModel):
    """Input for registering a new auto-save rule."""

    name: str = Field(..., min_length=1, max_length=120)
    description: str = Field("", max_length=2000)
    trigger_type: TriggerType
    trigger_settings: TriggerSettings = Field(default_factory=TriggerSettings)
    destination_type: DestinationType
    destination_id: str = Field(..., min_length=1, max_length=64, description="Savings account id, vault id or stock symbol.")
    priority: int = Field(0, ge=0, description="Higher number = evaluated first.")
    is_active: bool = True


class AutoSaveRuleUpdate(BaseModel):
    """Partial update; only the fields sent are changed."""

    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=2000)
    trigger_settings: Optional[TriggerSettings] = None
    destination_id: Optional[str] = Field(None, min_length=1, max_length=64)
    priority: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class AutoSaveRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    description: str
    is_active: bool
    trigger_type: TriggerType
    trigger_settings: Dict[str, Any]
    destination_type: DestinationType
    destination_id: str
    priority: int

    # Settled siphons only
    total_saved: Decimal = Field(Decimal("0"), description="Total amount successfully siphoned by this rule.")
    transaction_count: int = 0
    last_triggered: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
