# models/savings_goal.py

from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DECIMAL, DateTime, ForeignKey, String, Text, Boolean, Index, func
from datetime import datetime
from decimal import Decimal

from ..db.base import Base
from ..db.enums import GoalCategory, GoalPriority, ContributionSource, EnumString
from ._ids import new_id


class SavingsGoal(Base):
    __tablename__ = "savings_goals"

    user_id: Mapped[str] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(200))
    target_amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 6))
    target_date: Mapped[datetime] = mapped_column(DateTime)

    description: Mapped[str] = mapped_column(Text, default="")
    current_amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 6), default=Decimal("0"))
    priority: Mapped[GoalPriority] = mapped_column(EnumString(GoalPriority, 16), default=GoalPriority.MEDIUM)
    category: Mapped[GoalCategory] = mapped_column(EnumString(GoalCategory, 16), default=GoalCategory.OTHER)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Derived: min(100, 100 * current / target), 2 dp
    progress: Mapped[Decimal] = mapped_column(DECIMAL(5, 2), default=Decimal("0"))
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    # IDs of auto-save rules feeding this goal (back-references, not ownership)
    auto_save_rules: Mapped[list[str]] = mapped_column(default_factory=list)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default_factory=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), init=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), init=False
    )

    __table_args__ = (
        Index("ix_savings_goals_user_active", "user_id", "is_active"),
    )


class GoalContribution(Base):
    """Append-only record of money added to a goal."""
    __tablename__ = "goal_contributions"

    goal_id: Mapped[str] = mapped_column(ForeignKey("savings_goals.id"), index=True)
    amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 6))
    source: Mapped[ContributionSource] = mapped_column(EnumString(ContributionSource, 16))
    # Auto-save rule, round-up or transfer that produced the money
    source_id: Mapped[Optional[str]] = mapped_column(String(64), default=None)
    description: Mapped[Optional[str]] = mapped_column(Text, default=None)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default_factory=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), init=False)
