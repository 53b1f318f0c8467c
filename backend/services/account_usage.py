"""
Account usage service for tracking and enforcing usage quotas.

This is the authoritative enforcement point for quotas.  ``consume``
checks and increments a counter in one SQL statement, so two concurrent
requests cannot both take the last unit of quota.  The decision engine in
core.quota is only advisory.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Optional
from uuid import uuid4
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.usage import ActionCategory, CapabilityRecord, Decision, UsageCounters, UsagePeriod
from core.interfaces import UsageRepository
from core.limits import is_unlimited
from core.quota import limit_message, require_capability, rule_for
from infrastructure.config.settings import settings
from infrastructure.database.models.usage import UsageEvent, UsageStat
from services.usage_periods import period_start

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class AccountUsageService(UsageRepository):
    """
    Service for reading and incrementing per-account usage counters.

    One ``usage_stats`` row exists per account, period and window.  Reading a
    window with no row yields zero counters, which is how period resets
    happen.
    """

    def __init__(
        self,
        db: AsyncSession,
        reset_zone: Optional[ZoneInfo] = None,
        monthly_reset_day: Optional[int] = None,
    ):
        """
        Initialize account usage service.

        Args:
            db: Async database session
            reset_zone: Timezone for period boundaries (defaults to settings)
            monthly_reset_day: Day monthly windows start on (defaults to settings)
        """
        self.db = db
        self.reset_zone = reset_zone or settings.reset_zone
        self.monthly_reset_day = monthly_reset_day or settings.monthly_reset_day

    def window_start(self, period: UsagePeriod, now: datetime) -> datetime:
        """Start of the window containing *now*."""
        return period_start(period, now, self.reset_zone, self.monthly_reset_day)

    async def get_counters(
        self,
        account_id: str,
        period: UsagePeriod,
        now: Optional[datetime] = None,
    ) -> UsageCounters:
        """
        Get counters for the current window.

        Args:
            account_id: Account ID
            period: Daily or monthly
            now: Reference time (defaults to the current time)

        Returns:
            UsageCounters for the window, all zero if nothing was used yet
        """
        period = UsagePeriod(period)
        start = self.window_start(period, now or datetime.now(UTC))

        # Counters are bumped with Core upserts, so never trust the identity map
        result = await self.db.execute(
            select(UsageStat)
            .where(
                UsageStat.account_id == account_id,
                UsageStat.period == period.value,
                UsageStat.period_start == start,
            )
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()

        if row is None:
            return UsageCounters(period=period, last_reset=start, account_id=account_id)

        return UsageCounters(
            period=period,
            searches=row.searches,
            ai_analyses=row.ai_analyses,
            vin_searches=row.vin_searches,
            exports=row.exports,
            last_reset=_as_utc(row.period_start),
            account_id=account_id,
        )

    async def get_snapshot(
        self,
        account_id: str,
        now: Optional[datetime] = None,
    ) -> tuple[UsageCounters, UsageCounters]:
        """Get (daily, monthly) counters for the current windows."""
        now = now or datetime.now(UTC)
        daily = await self.get_counters(account_id, UsagePeriod.DAILY, now)
        monthly = await self.get_counters(account_id, UsagePeriod.MONTHLY, now)
        return daily, monthly

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise RuntimeError(f"Atomic usage increments are not supported on {dialect}")
        return insert

    async def _increment(
        self,
        account_id: str,
        period: UsagePeriod,
        counter_field: str,
        now: datetime,
        below: Optional[int] = None,
    ) -> Optional[int]:
        """
        Add one to a counter, creating the window's row if needed.

        When *below* is given the update only applies while the counter is
        less than it.  Returns the new counter value, or None if the
        condition failed.
        """
        column = getattr(UsageStat, counter_field)
        insert = self._insert()

        stmt = insert(UsageStat).values(
            id=str(uuid4()),
            account_id=account_id,
            period=period.value,
            period_start=self.window_start(period, now),
            **{counter_field: 1},
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id", "period", "period_start"],
            set_={counter_field: column + 1, "updated_at": func.now()},
            where=(column < below) if below is not None else None,
        ).returning(column)

        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def consume(
        self,
        account_id: str,
        capability: CapabilityRecord,
        action: ActionCategory,
        metadata: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Decision:
        """
        Atomically use one unit of quota for *action*.

        The counter is incremented only if it is below the tier's limit;
        unlimited tiers always increment.  A usage event is recorded on
        success.  Call this after the action itself succeeded so failed
        actions are not charged.

        Args:
            account_id: Account ID
            capability: The account's capability record
            action: Action being charged
            metadata: Optional event metadata
            now: Reference time (defaults to the current time)

        Returns:
            Decision; denied when the limit was already reached
        """
        require_capability(capability)
        action = ActionCategory(action)
        rule = rule_for(action)
        limit = capability.limit_for(rule.limit_field)
        now = now or datetime.now(UTC)

        below = None
        if not is_unlimited(limit):
            below = limit.value
            # A zero cap would otherwise be bypassed by the insert branch
            if below == 0:
                logger.info(
                    "Account %s has no %s quota on tier %s",
                    account_id, action.value, capability.tier.value,
                )
                return Decision(allowed=False, message=limit_message(action, limit))

        new_value = await self._increment(account_id, rule.period, rule.counter_field, now, below)
        if new_value is None:
            logger.warning(
                "Account %s has reached limit for %s: %s",
                account_id, action.value, limit,
            )
            return Decision(allowed=False, message=limit_message(action, limit))

        if action is ActionCategory.SEARCH:
            # Monthly search totals are kept for reporting only
            await self._increment(account_id, UsagePeriod.MONTHLY, "searches", now)

        self.db.add(
            UsageEvent(
                account_id=account_id,
                action=action.value,
                event_metadata=metadata,
                created_at=now,
            )
        )
        await self.db.flush()

        logger.info(
            "Consumed %s for account %s (%s/%s)",
            action.value, account_id, new_value, limit,
        )
        return Decision(allowed=True)

    async def list_events(self, account_id: str, limit: int = 50) -> list[UsageEvent]:
        """List the most recent usage events for an account, newest first."""
        result = await self.db.execute(
            select(UsageEvent)
            .where(UsageEvent.account_id == account_id)
            .order_by(UsageEvent.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
