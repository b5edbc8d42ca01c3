# models/auto_save_rule.py

from typing import Any, Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, DECIMAL, DateTime, String, Text, Boolean, Index, func
from datetime import datetime
from decimal import Decimal

from ..db.base import Base
from ..db.enums import TriggerType, DestinationType, EnumString
from ._ids import new_id


class AutoSaveRule(Base):
    __tablename__ = "auto_save_rules"

    user_id: Mapped[str] = mapped_column(String(64), index=True)

    # --- Rule Definition ---
    name: Mapped[str] = mapped_column(String(120))
    trigger_type: Mapped[TriggerType] = mapped_column(EnumString(TriggerType, 32))

    # Where the siphoned money goes: savings account id, vault id or stock symbol
    destination_type: Mapped[DestinationType] = mapped_column(EnumString(DestinationType, 32))
    destination_id: Mapped[str] = mapped_column(String(64))

    # Variant payload keyed by trigger_type (round_up_amount, percentage, fixed_amount,
    # minimum_transaction, max_daily_amount, spending_threshold, smart_save_enabled).
    # Decimals are stored as strings.
    trigger_settings: Mapped[dict[str, Any]] = mapped_column(default_factory=dict)

    description: Mapped[str] = mapped_column(Text, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Higher number = evaluated first. Ordering only; rules never exclude each other.
    priority: Mapped[int] = mapped_column(Integer, default=0)

    # --- Execution Stats (settled siphons only, incremented atomically) ---
    total_saved: Mapped[Decimal] = mapped_column(DECIMAL(18, 6), default=Decimal("0"))
    transaction_count: Mapped[int] = mapped_column(Integer, default=0)
    last_triggered: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default_factory=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), init=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), init=False
    )

    __table_args__ = (
        Index("ix_auto_save_rules_user_active", "user_id", "is_active"),
    )
