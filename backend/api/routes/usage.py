"""
Usage API routes.

``/usage/check`` is the advisory check used for UI gating.  ``/usage/track``
is the authoritative one: it charges quota with an atomic
increment-if-below-limit and is called after the action succeeded.
"""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    CurrentAccount,
    get_capability,
    get_current_account,
    quota_exceeded,
    require_feature,
)
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.usage import (
    ActionRequest,
    ActionUsage,
    CheckResponse,
    CountersResponse,
    FeatureResponse,
    TrackRequest,
    UsageEventListResponse,
    UsageEventResponse,
    UsageResponse,
)
from core.domain.usage import CapabilityRecord, Feature, UsageCounters
from core.limits import is_unlimited, limit_to_json
from core.plans import PLAN_NAMES, minimum_tier_for
from core.quota import (
    can_perform_action,
    check_feature,
    current_usage,
    has_feature,
    remaining_quota,
    rule_for,
    usage_summary,
)
from infrastructure.database import get_db
from services.account_usage import AccountUsageService
from services.usage_periods import next_reset

router = APIRouter(prefix="/usage", tags=["Usage"])


def _counters_response(service: AccountUsageService, counters: UsageCounters, now: datetime) -> CountersResponse:
    return CountersResponse(
        period=counters.period,
        searches=counters.searches,
        vin_searches=counters.vin_searches,
        exports=counters.exports,
        ai_analyses=counters.ai_analyses,
        last_reset=counters.last_reset,
        next_reset=next_reset(counters.period, now, service.reset_zone, service.monthly_reset_day),
    )


def _remaining_to_json(remaining) -> int | None:
    return None if is_unlimited(remaining) else remaining


async def _build_usage_response(
    service: AccountUsageService,
    account: CurrentAccount,
    capability: CapabilityRecord,
) -> UsageResponse:
    now = datetime.now(UTC)
    daily, monthly = await service.get_snapshot(account.id, now)
    summary = usage_summary(capability, daily, monthly)

    return UsageResponse(
        account_id=account.id,
        tier=capability.tier.value,
        daily=_counters_response(service, daily, now),
        monthly=_counters_response(service, monthly, now),
        actions=[
            ActionUsage(
                action=action,
                period=row["period"],
                used=row["used"],
                limit=limit_to_json(row["limit"]),
                remaining=_remaining_to_json(row["remaining"]),
                unlimited=is_unlimited(row["limit"]),
            )
            for action, row in summary.items()
        ],
        features={feature.value: has_feature(capability, feature) for feature in Feature},
    )


@router.get("", response_model=UsageResponse)
async def get_usage(
    account: Annotated[CurrentAccount, Depends(get_current_account)],
    capability: Annotated[CapabilityRecord, Depends(get_capability)],
    db: AsyncSession = Depends(get_db),
):
    """Get current counters, limits and remaining quota for the account."""
    return await _build_usage_response(AccountUsageService(db), account, capability)


@router.post("/check", response_model=CheckResponse)
@limiter.limit(get_rate_limit("usage_check"))
async def check_usage(
    request: Request,
    body: ActionRequest,
    account: Annotated[CurrentAccount, Depends(get_current_account)],
    capability: Annotated[CapabilityRecord, Depends(get_capability)],
    db: AsyncSession = Depends(get_db),
):
    """
    Advisory check whether one more action is allowed.

    Does not charge quota.  A positive answer is not a reservation.
    """
    rule = rule_for(body.action)
    counters = await AccountUsageService(db).get_counters(account.id, rule.period)

    decision = can_perform_action(capability, counters, body.action)
    limit = capability.limit_for(rule.limit_field)
    used = current_usage(counters, body.action)

    return CheckResponse(
        action=body.action,
        allowed=decision.allowed,
        message=decision.message,
        used=used,
        limit=limit_to_json(limit),
        remaining=_remaining_to_json(remaining_quota(used, limit)),
        unlimited=is_unlimited(limit),
    )


@router.post("/track", response_model=UsageResponse)
@limiter.limit(get_rate_limit("usage_track"))
async def track_usage(
    request: Request,
    body: TrackRequest,
    account: Annotated[CurrentAccount, Depends(get_current_account)],
    capability: Annotated[CapabilityRecord, Depends(get_capability)],
    db: AsyncSession = Depends(get_db),
):
    """
    Charge one unit of quota for a completed action.

    Returns the updated usage, or 429 when the limit was already reached.
    """
    service = AccountUsageService(db)
    decision = await service.consume(account.id, capability, body.action, metadata=body.metadata)

    if not decision.allowed:
        rule = rule_for(body.action)
        counters = await service.get_counters(account.id, rule.period)
        raise quota_exceeded(
            account, capability, body.action, current_usage(counters, body.action), decision.message
        )

    await db.commit()
    return await _build_usage_response(service, account, capability)


@router.get("/features/{feature}", response_model=FeatureResponse)
async def get_feature(
    feature: Feature,
    capability: Annotated[CapabilityRecord, Depends(get_capability)],
):
    """Whether the account's tier enables a feature."""
    decision = check_feature(capability, feature)
    required = minimum_tier_for(feature)
    return FeatureResponse(
        feature=feature,
        enabled=decision.allowed,
        message=decision.message,
        required_tier=PLAN_NAMES[required] if required else None,
    )


@router.get("/events", response_model=UsageEventListResponse)
async def list_usage_events(
    account: Annotated[CurrentAccount, Depends(get_current_account)],
    _capability: Annotated[CapabilityRecord, Depends(require_feature(Feature.CUSTOM_REPORTS))],
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """List the account's recent usage events. Requires custom reports."""
    events = await AccountUsageService(db).list_events(account.id, limit=limit)
    items = [
        UsageEventResponse(
            id=event.id,
            action=event.action,
            metadata=event.event_metadata,
            created_at=event.created_at,
        )
        for event in events
    ]
    return UsageEventListResponse(items=items, total=len(items))
