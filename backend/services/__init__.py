"""
Service layer for business logic.
"""

from services.account_usage import AccountUsageService
from services.usage_periods import next_reset, period_start

__all__ = [
    "AccountUsageService",
    "next_reset",
    "period_start",
]
