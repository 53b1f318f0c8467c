# Domain Entities
# Pure business objects with no external dependencies
from .usage import (
    ActionCategory,
    CapabilityRecord,
    Decision,
    Feature,
    Tier,
    UsageCounters,
    UsagePeriod,
)

__all__ = [
    "Tier",
    "UsagePeriod",
    "ActionCategory",
    "Feature",
    "CapabilityRecord",
    "UsageCounters",
    "Decision",
]
