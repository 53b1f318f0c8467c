"""Repository interfaces for data access."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from ..domain.usage import ActionCategory, CapabilityRecord, Decision, UsageCounters, UsagePeriod


class UsageRepository(ABC):
    """
    Abstract store for per-account usage counters.

    The decision engine in ``core.quota`` only advises. Implementations of
    ``consume`` are the authoritative enforcement point and must check and
    increment in a single atomic operation.
    """

    @abstractmethod
    async def get_counters(
        self,
        account_id: str,
        period: UsagePeriod,
        now: Optional[datetime] = None,
    ) -> UsageCounters:
        """Get counters for the period window containing *now*."""
        ...

    @abstractmethod
    async def consume(
        self,
        account_id: str,
        capability: CapabilityRecord,
        action: ActionCategory,
        metadata: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Decision:
        """Increment the action's counter only if it is still below the limit."""
        ...

    @abstractmethod
    async def list_events(self, account_id: str, limit: int = 50) -> list:
        """List the most recent usage events for an account."""
        ...
