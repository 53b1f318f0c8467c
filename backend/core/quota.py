"""
Usage decision engine.

Pure functions deciding whether an account may perform a metered action or
use a gated feature, and how much quota it has left.  Nothing here reads the
clock, touches storage or increments counters.

``can_perform_action`` is advisory: it is cheap enough for UI gating and for
request middleware, but two concurrent requests can both pass it with one
unit of quota left.  The authoritative check is the persistence layer's
atomic increment-if-below-limit (see ``UsageRepository.consume``).
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Union

from core.domain.usage import (
    ActionCategory,
    CapabilityRecord,
    Decision,
    Feature,
    UsageCounters,
    UsagePeriod,
)
from core.limits import Limit, Unlimited, coerce_limit, is_unlimited
from core.plans import PLAN_NAMES, minimum_tier_for


@dataclass(frozen=True)
class ActionRule:
    """Which limit and counter govern an action."""

    limit_field: str
    counter_field: str
    period: UsagePeriod
    label: str


ACTION_RULES: Mapping[ActionCategory, ActionRule] = MappingProxyType({
    ActionCategory.SEARCH: ActionRule("daily_searches", "searches", UsagePeriod.DAILY, "Daily search"),
    ActionCategory.VIN: ActionRule("monthly_vin_lookups", "vin_searches", UsagePeriod.MONTHLY, "Monthly VIN lookup"),
    ActionCategory.EXPORT: ActionRule("monthly_exports", "exports", UsagePeriod.MONTHLY, "Monthly export"),
    ActionCategory.AI: ActionRule("monthly_ai_analyses", "ai_analyses", UsagePeriod.MONTHLY, "Monthly AI analysis"),
})


def require_capability(capability: CapabilityRecord) -> None:
    if not isinstance(capability, CapabilityRecord):
        raise TypeError(f"Expected a CapabilityRecord, got {type(capability).__name__}")


def rule_for(action: Union[ActionCategory, str]) -> ActionRule:
    """
    Get the rule for an action.

    Raises:
        ValueError: If the action is not a known category
    """
    return ACTION_RULES[ActionCategory(action)]


def current_usage(counters: Optional[UsageCounters], action: Union[ActionCategory, str]) -> int:
    """
    Counter value for *action*; missing counters mean nothing was used yet.

    Raises:
        ValueError: If *counters* belong to a different period than the one
            governing *action* (e.g. daily counters for a monthly action)
    """
    rule = rule_for(action)
    if counters is None:
        return 0
    if counters.period is not rule.period:
        raise ValueError(
            f"{ActionCategory(action).value} is metered {rule.period.value}, "
            f"got {counters.period.value} counters"
        )
    return getattr(counters, rule.counter_field)


def limit_message(action: Union[ActionCategory, str], limit: Limit) -> str:
    rule = rule_for(action)
    return f"{rule.label} limit reached ({limit}). Upgrade your plan for more access."


def can_perform_action(
    capability: CapabilityRecord,
    counters: Optional[UsageCounters],
    action: Union[ActionCategory, str],
) -> Decision:
    """
    Decide whether one more *action* is permitted in the current period.

    The limit is the maximum number of uses: with limit N the Nth use is
    allowed and the (N+1)th is not.  Unlimited limits never look at the
    counters.

    Raises:
        TypeError: If *capability* is not a CapabilityRecord
        ValueError: If *action* is not a known category, or *counters* are
            for a different period than the action is metered over
    """
    require_capability(capability)
    rule = rule_for(action)
    limit = capability.limit_for(rule.limit_field)

    if is_unlimited(limit):
        return Decision(allowed=True)

    if current_usage(counters, action) >= limit.value:
        return Decision(allowed=False, message=limit_message(action, limit))

    return Decision(allowed=True)


def has_feature(capability: CapabilityRecord, feature: Union[Feature, str]) -> bool:
    """
    Whether the tier enables *feature*.  Features without an explicit flag
    are disabled.

    Raises:
        ValueError: If *feature* is not a known feature
    """
    require_capability(capability)
    return capability.features.get(Feature(feature), False)


def check_feature(capability: CapabilityRecord, feature: Union[Feature, str]) -> Decision:
    """Like ``has_feature`` but with a message naming the plan that unlocks it."""
    feature = Feature(feature)
    if has_feature(capability, feature):
        return Decision(allowed=True)

    required = minimum_tier_for(feature)
    if required is None:
        message = f"{feature.display_name} is not available on any plan."
    else:
        message = (
            f"{feature.display_name} is available on the "
            f"{PLAN_NAMES[required]} plan and above."
        )
    return Decision(allowed=False, message=message)


def remaining_quota(used: int, limit: Union[Limit, int]) -> Union[int, Unlimited]:
    """
    Remaining uses in the period.

    Returns ``UNLIMITED`` for unlimited limits, otherwise ``max(0, limit - used)``.
    Never negative, even when a counter has overrun its limit.

    Raises:
        TypeError: If *used* is not an int
        ValueError: If *used* is negative
    """
    if isinstance(used, bool) or not isinstance(used, int):
        raise TypeError(f"used must be an int, got {type(used).__name__}")
    if used < 0:
        raise ValueError(f"used cannot be negative, got {used}")
    limit = coerce_limit(limit)
    if is_unlimited(limit):
        return limit
    return max(0, limit.value - used)


def remaining_for_action(
    capability: CapabilityRecord,
    counters: Optional[UsageCounters],
    action: Union[ActionCategory, str],
) -> Union[int, Unlimited]:
    """Remaining quota for one action given the period's counters."""
    require_capability(capability)
    rule = rule_for(action)
    return remaining_quota(
        current_usage(counters, action),
        capability.limit_for(rule.limit_field),
    )


def usage_summary(
    capability: CapabilityRecord,
    daily: Optional[UsageCounters],
    monthly: Optional[UsageCounters],
) -> dict[ActionCategory, dict]:
    """
    Per-action usage for display: ``{action: {used, limit, remaining, period}}``.

    Each action reads the counters of the period that governs it.
    """
    require_capability(capability)
    by_period = {UsagePeriod.DAILY: daily, UsagePeriod.MONTHLY: monthly}
    summary = {}
    for action, rule in ACTION_RULES.items():
        counters = by_period[rule.period]
        limit = capability.limit_for(rule.limit_field)
        used = current_usage(counters, action)
        summary[action] = {
            "period": rule.period,
            "used": used,
            "limit": limit,
            "remaining": remaining_quota(used, limit),
        }
    return summary
