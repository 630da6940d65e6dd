"""
Credit Account Model

One row per registered user; the balance is the metered credit pool.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from c3talk.models.base import Base, CreatedAtMixin


class CreditAccount(Base, CreatedAtMixin):
    __tablename__ = "credit_accounts"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False)
    account_type: Mapped[str] = mapped_column(String(20), default="guest")  # guest, premium

    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Subscription window (audit only; monthly resets run elsewhere)
    has_active_subscription: Mapped[bool] = mapped_column(Boolean, default=False)
    subscription_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    subscription_start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    subscription_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_credit_reset: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
    )
