"""Usage and capability domain entities."""
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from core.limits import Finite, Limit, Unlimited


class Tier(str, Enum):
    """Subscription tiers."""
    FREEMIUM = "freemium"
    BASIC = "basic"
    GOLD = "gold"
    PLATINUM = "platinum"
    ADMIN = "admin"


class UsagePeriod(str, Enum):
    """Counter tracking periods."""
    DAILY = "daily"
    MONTHLY = "monthly"


class ActionCategory(str, Enum):
    """Metered actions."""
    SEARCH = "search"
    VIN = "vin"
    EXPORT = "export"
    AI = "ai"

    @classmethod
    def _missing_(cls, value):
        # Identifiers used by older API clients
        aliases = {
            "vin_lookup": cls.VIN,
            "vinAnalysis": cls.VIN,
            "ai_analysis": cls.AI,
            "aiAnalysis": cls.AI,
        }
        return aliases.get(value)


class Feature(str, Enum):
    """Tier-gated features."""
    BASIC_SEARCH = "basic_search"
    ADVANCED_FILTERS = "advanced_filters"
    PRICE_ALERTS = "price_alerts"
    BULK_EXPORT = "bulk_export"
    API_ACCESS = "api_access"
    PRIORITY_SUPPORT = "priority_support"
    CUSTOM_REPORTS = "custom_reports"
    CROSS_PLATFORM_ACCESS = "cross_platform_access"

    @property
    def display_name(self) -> str:
        if self is Feature.API_ACCESS:
            return "API Access"
        return self.value.replace("_", " ").title()


LIMIT_FIELDS = (
    "daily_searches",
    "monthly_searches",
    "monthly_vin_lookups",
    "monthly_exports",
    "monthly_ai_analyses",
)


@dataclass(frozen=True)
class CapabilityRecord:
    """Limits and feature flags granted by a tier.

    ``features`` holds the explicit flags only; a feature missing from it is
    disabled.
    """

    tier: Tier
    daily_searches: Limit
    monthly_searches: Limit
    monthly_vin_lookups: Limit
    monthly_exports: Limit
    monthly_ai_analyses: Limit
    features: Mapping[Feature, bool] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.tier, Tier):
            raise TypeError(f"tier must be a Tier, got {self.tier!r}")
        for name in LIMIT_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, (Finite, Unlimited)):
                raise TypeError(f"{name} must be a Limit, got {value!r}")
        for key, flag in self.features.items():
            if not isinstance(key, Feature) or not isinstance(flag, bool):
                raise TypeError(f"Invalid feature flag {key!r}: {flag!r}")
        # Freeze the flags so the shared table cannot be mutated through a record
        object.__setattr__(self, "features", MappingProxyType(dict(self.features)))

    def limit_for(self, field_name: str) -> Limit:
        if field_name not in LIMIT_FIELDS:
            raise ValueError(f"Unknown limit field: {field_name}")
        return getattr(self, field_name)


@dataclass(frozen=True)
class UsageCounters:
    """Usage performed so far in the current period for one account."""

    period: UsagePeriod
    searches: int = 0
    ai_analyses: int = 0
    vin_searches: int = 0
    exports: int = 0
    last_reset: Optional[datetime] = None
    account_id: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.period, str):
            object.__setattr__(self, "period", UsagePeriod(self.period))
        for f in fields(self):
            if f.name in ("searches", "ai_analyses", "vin_searches", "exports"):
                value = getattr(self, f.name)
                if isinstance(value, bool) or not isinstance(value, int):
                    raise TypeError(f"{f.name} must be an int, got {value!r}")
                if value < 0:
                    raise ValueError(f"{f.name} cannot be negative, got {value}")


@dataclass(frozen=True)
class Decision:
    """Outcome of a permission check. ``message`` is set only on denial."""

    allowed: bool
    message: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed
