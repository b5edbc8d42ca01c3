# models/savings_account.py

from typing import Any, Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DECIMAL, DateTime, ForeignKey, String, Text, Boolean, func
from datetime import datetime
from decimal import Decimal

from ..db.base import Base
from ..db.enums import Currency, EnumString
from ._ids import new_id


class SavingsAccount(Base):
    __tablename__ = "savings_accounts"

    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str] = mapped_column(Text, default="")
    currency: Mapped[Currency] = mapped_column(EnumString(Currency, 3), default=Currency.GHS)

    balance: Mapped[Decimal] = mapped_column(DECIMAL(18, 6), default=Decimal("0"))
    # Annual interest rate, percent
    interest_rate: Mapped[Decimal] = mapped_column(DECIMAL(7, 4), default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    total_deposits: Mapped[Decimal] = mapped_column(DECIMAL(18, 6), default=Decimal("0"))
    total_withdrawals: Mapped[Decimal] = mapped_column(DECIMAL(18, 6), default=Decimal("0"))
    total_interest: Mapped[Decimal] = mapped_column(DECIMAL(18, 6), default=Decimal("0"))

    # {allow_withdrawals, minimum_balance, auto_compound, notifications}
    settings: Mapped[dict[str, Any]] = mapped_column(default_factory=dict)
    last_activity: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default_factory=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), init=False)


class SavingsAccountCredit(Base):
    """
    Audit row for every credit applied to a savings account. The unique
    reference (the round-up id) makes a repeated credit a no-op.
    """
    __tablename__ = "savings_account_credits"

    account_id: Mapped[str] = mapped_column(ForeignKey("savings_accounts.id"), index=True)
    amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 6))
    reference: Mapped[str] = mapped_column(String(64), unique=True)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default_factory=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), init=False)
