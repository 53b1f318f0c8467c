"""
Usage and plan schemas.

Limits are serialised as an integer cap, or ``null`` with ``unlimited: true``
for tiers without a cap.  Unlimited tiers never expose a numeric limit.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from core.domain.usage import ActionCategory, Feature, UsagePeriod


class ActionRequest(BaseModel):
    """Request naming a metered action."""

    action: ActionCategory = Field(..., description="Action category: search, vin, export, ai")

    @field_validator("action", mode="before")
    @classmethod
    def resolve_legacy_action(cls, v):
        """Accept the identifiers older clients send (vin_lookup, aiAnalysis, ...)."""
        if isinstance(v, str):
            return ActionCategory(v)
        return v


class TrackRequest(ActionRequest):
    """Request to charge one unit of quota after an action completed."""

    metadata: Optional[dict[str, Any]] = Field(None, description="Optional event metadata")


class CountersResponse(BaseModel):
    """Raw counters for one period window."""

    period: UsagePeriod
    searches: int
    vin_searches: int
    exports: int
    ai_analyses: int
    last_reset: Optional[datetime] = Field(None, description="Start of the current window")
    next_reset: datetime = Field(..., description="When these counters reset")


class ActionUsage(BaseModel):
    """Usage of one action against its governing limit."""

    action: ActionCategory
    period: UsagePeriod
    used: int
    limit: Optional[int] = Field(None, description="Maximum uses per period (null = unlimited)")
    remaining: Optional[int] = Field(None, description="Uses left this period (null = unlimited)")
    unlimited: bool


class UsageResponse(BaseModel):
    """Current usage statistics for the authenticated account."""

    account_id: str
    tier: str
    daily: CountersResponse
    monthly: CountersResponse
    actions: list[ActionUsage]
    features: dict[str, bool]


class CheckResponse(BaseModel):
    """Advisory permission decision for one action."""

    action: ActionCategory
    allowed: bool
    message: Optional[str] = None
    used: int
    limit: Optional[int] = None
    remaining: Optional[int] = None
    unlimited: bool


class FeatureResponse(BaseModel):
    """Whether the account's tier enables a feature."""

    feature: Feature
    enabled: bool
    message: Optional[str] = None
    required_tier: Optional[str] = Field(None, description="Lowest plan that unlocks the feature")


class PlanInfo(BaseModel):
    """One tier's limits and features."""

    id: str
    name: str
    limits: dict[str, Optional[int]] = Field(..., description="Limit per field (null = unlimited)")
    features: dict[str, bool]


class PlansResponse(BaseModel):
    """All configured tiers."""

    plans: list[PlanInfo]


class UsageEventResponse(BaseModel):
    """A recorded usage event."""

    id: str
    action: str
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime


class UsageEventListResponse(BaseModel):
    """Recent usage events for the authenticated account."""

    items: list[UsageEventResponse]
    total: int
