"""
SQLAlchemy database models.
"""

from .base import Base, TimestampMixin
from .usage import UsageEvent, UsageStat

__all__ = [
    "Base",
    "TimestampMixin",
    "UsageStat",
    "UsageEvent",
]
