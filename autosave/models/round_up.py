# models/round_up.py

from typing import Any, Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DECIMAL, DateTime, ForeignKey, String, Index, func
from datetime import datetime
from decimal import Decimal

from ..db.base import Base
from ..db.enums import DestinationType, RoundUpStatus, EnumString
from ._ids import new_id


class RoundUpTransaction(Base):
    """
    One firing of one auto-save rule against one source transaction.
    Immutable apart from status/completed_at.
    """
    __tablename__ = "round_up_transactions"

    user_id: Mapped[str] = mapped_column(String(64))

    # --- Source Transaction ---
    original_transaction_id: Mapped[str] = mapped_column(String(64), index=True)
    original_amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 6))

    # --- Siphon ---
    round_up_amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 6))
    total_amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 6))
    auto_save_rule_id: Mapped[str] = mapped_column(ForeignKey("auto_save_rules.id"))
    destination_type: Mapped[DestinationType] = mapped_column(EnumString(DestinationType, 32))
    destination_id: Mapped[str] = mapped_column(String(64))

    # --- Status and Metadata ---
    status: Mapped[RoundUpStatus] = mapped_column(
        EnumString(RoundUpStatus, 16), default=RoundUpStatus.PENDING
    )
    # Column is named "metadata"; the attribute name is reserved by Declarative
    transaction_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", default_factory=dict)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default_factory=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), init=False)

    __table_args__ = (
        # Daily cap guard: one rule's firings since midnight
        Index("ix_round_ups_rule_created", "auto_save_rule_id", "created_at"),
        # Analytics: one user's completed firings in a window
        Index("ix_round_ups_user_status_created", "user_id", "status", "created_at"),
    )
