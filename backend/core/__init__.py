"""
Usage quota and permission gating core.

Pure decision logic: the tier capability table and the usage decision
engine.  No I/O, no clock.
"""

from .domain.usage import (
    ActionCategory,
    CapabilityRecord,
    Decision,
    Feature,
    Tier,
    UsageCounters,
    UsagePeriod,
)
from .limits import UNLIMITED, Finite, Limit, Unlimited
from .plans import UnknownTierError, lookup_capability, minimum_tier_for
from .quota import (
    can_perform_action,
    check_feature,
    has_feature,
    remaining_for_action,
    remaining_quota,
    usage_summary,
)

__all__ = [
    "ActionCategory",
    "CapabilityRecord",
    "Decision",
    "Feature",
    "Tier",
    "UsageCounters",
    "UsagePeriod",
    "Finite",
    "Limit",
    "Unlimited",
    "UNLIMITED",
    "UnknownTierError",
    "lookup_capability",
    "minimum_tier_for",
    "can_perform_action",
    "check_feature",
    "has_feature",
    "remaining_for_action",
    "remaining_quota",
    "usage_summary",
]
