# schemas/savings.py

from pydantic import BaseModel, ConfigDict, Field, condecimal
from decimal import Decimal
from typing import List, Optional
from datetime import datetime

from ..db.enums import ContributionSource, Currency, GoalCategory, GoalPriority

PositiveDecimal = condecimal(gt=Decimal("0"))


# --- Savings Accounts ---

class SavingsAccountSettings(BaseModel):
    allow_withdrawals: bool = True
    minimum_balance: condecimal(ge=Decimal("0")) = Decimal("0")
    auto_compound: bool = False
    notifications: bool = True


class SavingsAccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: str = ""
    currency: Currency = Currency.GHS
    interest_rate: condecimal(ge=Decimal("0"), le=Decimal("100")) = Field(Decimal("0"), description="Annual interest rate (%).")
    settings: SavingsAccountSettings = Field(default_factory=SavingsAccountSettings)


class SavingsAccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    description: str
    currency: Currency
    balance: Decimal
    interest_rate: Decimal
    is_active: bool
    total_deposits: Decimal
    total_withdrawals: Decimal
    total_interest: Decimal
    settings: SavingsAccountSettings
    created_at: Optional[datetime] = None
    last_activity: Optional[datetime] = None


# --- Savings Goals ---

class SavingsGoalCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    target_amount: PositiveDecimal
    target_date: datetime
    priority: GoalPriority = GoalPriority.MEDIUM
    category: GoalCategory = GoalCategory.OTHER
    auto_save_rules: List[str] = Field(default_factory=list, description="IDs of auto-save rules feeding this goal.")


class SavingsGoalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    description: str
    target_amount: Decimal
    current_amount: Decimal
    target_date: datetime
    priority: GoalPriority
    category: GoalCategory
    is_active: bool
    progress: Decimal
    is_completed: bool
    completed_at: Optional[datetime] = None
    auto_save_rules: List[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GoalContributionCreate(BaseModel):
    amount: PositiveDecimal
    source: ContributionSource = ContributionSource.MANUAL
    source_id: Optional[str] = None
    description: Optional[str] = None


class GoalContributionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    goal_id: str
    amount: Decimal
    source: ContributionSource
    source_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
