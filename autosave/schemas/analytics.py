# schemas/analytics.py

from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Any, Dict, List, Optional
from datetime import datetime

from ..db.enums import AnalyticsPeriod, InsightPriority, InsightType


class SmartSaveInsight(BaseModel):
    """Generated behavioral nudge. Never persisted."""

    id: str
    user_id: str
    type: InsightType
    title: str
    description: str
    action_required: bool
    action_text: Optional[str] = None
    priority: InsightPriority
    is_read: bool = False
    created_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)


class GoalProgressSnapshot(BaseModel):
    goal_id: str
    goal_name: str
    progress: Decimal
    remaining: Decimal
    days_remaining: int


class RuleBreakdown(BaseModel):
    rule_id: str
    rule_name: str
    amount: Decimal
    count: int
    percentage: Decimal = Field(..., description="Share of the period's total saved (%).")


class SavingsAnalytics(BaseModel):
    """Read-model for one (user, period) pair, computed on demand."""

    user_id: str
    period: AnalyticsPeriod
    start_date: datetime
    total_saved: Decimal = Decimal("0")
    total_invested: Decimal = Field(Decimal("0"), description="Completed siphons routed to vaults or stocks.")
    auto_save_transactions: int = 0
    round_up_transactions: int = 0
    average_round_up: Decimal = Decimal("0")
    top_rules: List[RuleBreakdown] = Field(default_factory=list)
    goal_progress: List[GoalProgressSnapshot] = Field(default_factory=list)
    insights: List[SmartSaveInsight] = Field(default_factory=list)
