"""
Plan configuration for subscription tiers.

This module is the single source of truth for tier limits and features.
It lives in core/ so both service and API layers can import from it
without creating circular dependencies.

The table is built once at import time and exposed read-only; there is
no runtime path for changing it.
"""

from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Union

from core.domain.usage import CapabilityRecord, Feature, Tier
from core.limits import UNLIMITED, Finite


class UnknownTierError(LookupError):
    """Raised when an account carries a tier with no configured capabilities."""

    def __init__(self, tier: object):
        self.tier = tier
        super().__init__(f"No capability record configured for tier {tier!r}")


# Purchasable upgrade ladder, lowest first. Admin is not a plan.
TIER_ORDER = (Tier.FREEMIUM, Tier.BASIC, Tier.GOLD, Tier.PLATINUM)

PLAN_NAMES = MappingProxyType({
    Tier.FREEMIUM: "Freemium",
    Tier.BASIC: "Basic",
    Tier.GOLD: "Gold",
    Tier.PLATINUM: "Platinum",
    Tier.ADMIN: "Admin",
})

_ALL_FEATURES = {feature: True for feature in Feature}

TIER_CAPABILITIES: Mapping[Tier, CapabilityRecord] = MappingProxyType({
    Tier.FREEMIUM: CapabilityRecord(
        tier=Tier.FREEMIUM,
        daily_searches=Finite(10),
        monthly_searches=Finite(100),
        monthly_vin_lookups=Finite(5),
        monthly_exports=Finite(10),
        monthly_ai_analyses=Finite(0),
        features={
            Feature.BASIC_SEARCH: True,
            Feature.ADVANCED_FILTERS: False,
            Feature.PRICE_ALERTS: False,
            Feature.CROSS_PLATFORM_ACCESS: False,
            Feature.PRIORITY_SUPPORT: False,
            Feature.BULK_EXPORT: False,
            Feature.CUSTOM_REPORTS: False,
            Feature.API_ACCESS: False,
        },
    ),
    Tier.BASIC: CapabilityRecord(
        tier=Tier.BASIC,
        daily_searches=Finite(50),
        monthly_searches=Finite(1000),
        monthly_vin_lookups=Finite(25),
        monthly_exports=Finite(100),
        monthly_ai_analyses=Finite(0),
        features={
            Feature.BASIC_SEARCH: True,
            Feature.ADVANCED_FILTERS: True,
            Feature.PRICE_ALERTS: True,
            Feature.CROSS_PLATFORM_ACCESS: False,
            Feature.PRIORITY_SUPPORT: False,
            Feature.BULK_EXPORT: False,
            Feature.CUSTOM_REPORTS: False,
            Feature.API_ACCESS: False,
        },
    ),
    Tier.GOLD: CapabilityRecord(
        tier=Tier.GOLD,
        daily_searches=Finite(200),
        monthly_searches=Finite(5000),
        monthly_vin_lookups=Finite(100),
        monthly_exports=Finite(500),
        monthly_ai_analyses=Finite(0),
        features={
            Feature.BASIC_SEARCH: True,
            Feature.ADVANCED_FILTERS: True,
            Feature.PRICE_ALERTS: True,
            Feature.CROSS_PLATFORM_ACCESS: True,
            Feature.PRIORITY_SUPPORT: True,
            Feature.BULK_EXPORT: True,
            Feature.CUSTOM_REPORTS: True,
            Feature.API_ACCESS: False,
        },
    ),
    Tier.PLATINUM: CapabilityRecord(
        tier=Tier.PLATINUM,
        daily_searches=UNLIMITED,
        monthly_searches=UNLIMITED,
        monthly_vin_lookups=UNLIMITED,
        monthly_exports=UNLIMITED,
        monthly_ai_analyses=UNLIMITED,
        features=_ALL_FEATURES,
    ),
    # Quota-identical to platinum; admin-only privileges live outside this table
    Tier.ADMIN: CapabilityRecord(
        tier=Tier.ADMIN,
        daily_searches=UNLIMITED,
        monthly_searches=UNLIMITED,
        monthly_vin_lookups=UNLIMITED,
        monthly_exports=UNLIMITED,
        monthly_ai_analyses=UNLIMITED,
        features=_ALL_FEATURES,
    ),
})


def lookup_capability(tier: Union[Tier, str]) -> CapabilityRecord:
    """
    Get the capability record for a tier.

    Args:
        tier: Tier enum member or its string value

    Returns:
        The tier's immutable CapabilityRecord

    Raises:
        UnknownTierError: If the tier has no configured record
    """
    try:
        key = Tier(tier)
    except ValueError:
        raise UnknownTierError(tier) from None

    record = TIER_CAPABILITIES.get(key)
    if record is None:
        raise UnknownTierError(tier)
    return record


def all_capabilities() -> Iterator[CapabilityRecord]:
    """Iterate capability records in upgrade order, admin last."""
    for tier in (*TIER_ORDER, Tier.ADMIN):
        yield TIER_CAPABILITIES[tier]


def minimum_tier_for(feature: Feature) -> Optional[Tier]:
    """Return the lowest purchasable tier that enables *feature*, if any."""
    feature = Feature(feature)
    for tier in TIER_ORDER:
        if TIER_CAPABILITIES[tier].features.get(feature, False):
            return tier
    return None
