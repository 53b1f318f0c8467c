"""
API request and response schemas.
"""

from .usage import (
    ActionRequest,
    ActionUsage,
    CheckResponse,
    CountersResponse,
    FeatureResponse,
    PlanInfo,
    PlansResponse,
    TrackRequest,
    UsageEventListResponse,
    UsageEventResponse,
    UsageResponse,
)

__all__ = [
    "ActionRequest",
    "TrackRequest",
    "ActionUsage",
    "CheckResponse",
    "CountersResponse",
    "FeatureResponse",
    "PlanInfo",
    "PlansResponse",
    "UsageResponse",
    "UsageEventResponse",
    "UsageEventListResponse",
]
