"""
Usage counter and usage event database models.
"""

from datetime import UTC, datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, Index, Integer, JSON, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class UsageStat(Base, TimestampMixin):
    """Counters for one account in one period window.

    A new row is started for every window, so counters reset exactly once
    per period boundary without a sweeper job.
    """

    __tablename__ = "usage_stats"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    period: Mapped[str] = mapped_column(String(16), nullable=False)
    """Values: 'daily', 'monthly'"""

    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    """Start of the window (UTC). Doubles as the counters' last reset time."""

    searches: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    vin_searches: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    exports: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    ai_analyses: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    __table_args__ = (
        UniqueConstraint("account_id", "period", "period_start", name="uq_usage_stats_window"),
        Index("ix_usage_stats_account_period", "account_id", "period"),
    )

    def __repr__(self) -> str:
        return (
            f"<UsageStat(account_id={self.account_id}, period={self.period}, "
            f"period_start={self.period_start})>"
        )


class UsageEvent(Base):
    """One successfully consumed unit of quota."""

    __tablename__ = "usage_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    account_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    event_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
