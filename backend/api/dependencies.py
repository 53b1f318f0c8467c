"""
API dependencies for authentication and tier gating.

Identity is established upstream; these dependencies only verify the
access token and resolve the account's tier to its capability record.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.usage import ActionCategory, CapabilityRecord, Feature
from core.limits import limit_to_json
from core.plans import PLAN_NAMES, lookup_capability, minimum_tier_for
from core.quota import can_perform_action, check_feature, current_usage, rule_for
from core.security import TokenService
from infrastructure.config import get_settings
from infrastructure.database import get_db
from services.account_usage import AccountUsageService

logger = logging.getLogger(__name__)
settings = get_settings()

token_service = TokenService(
    secret_key=settings.jwt_secret_key,
    algorithm=settings.jwt_algorithm,
    access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
)


@dataclass(frozen=True)
class CurrentAccount:
    """The authenticated account as described by its access token."""

    id: str
    tier: str
    email: Optional[str] = None


async def get_current_account(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> CurrentAccount:
    """
    Dependency to get the current authenticated account.

    Raises:
        HTTPException: 401 if the token is missing, invalid, expired or
            carries no tier claim
    """
    token = None
    if authorization and authorization.startswith("Bearer "):
        parts = authorization.split(" ", 1)
        token = parts[1] if len(parts) > 1 and parts[1] else None

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = token_service.verify_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.tier:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token does not carry a subscription tier",
            headers={"WWW-Authenticate": "Bearer"},
        )

    request.state.account_id = payload.sub
    return CurrentAccount(id=payload.sub, tier=payload.tier, email=payload.email)


async def get_capability(
    account: Annotated[CurrentAccount, Depends(get_current_account)],
) -> CapabilityRecord:
    """
    Resolve the account's tier to its capability record.

    UnknownTierError propagates; main.py answers it with a 500 since an
    unconfigured tier is a server-side configuration fault.
    """
    return lookup_capability(account.tier)


def require_feature(feature: Feature):
    """
    Build a dependency that rejects accounts whose tier lacks *feature*.

    Returns:
        Dependency returning the account's CapabilityRecord

    Raises (from the dependency):
        HTTPException: 403 with the plan that unlocks the feature
    """
    feature = Feature(feature)

    async def dependency(
        account: Annotated[CurrentAccount, Depends(get_current_account)],
        capability: Annotated[CapabilityRecord, Depends(get_capability)],
    ) -> CapabilityRecord:
        decision = check_feature(capability, feature)
        if not decision.allowed:
            required = minimum_tier_for(feature)
            logger.info(
                "Feature %s denied for account %s on tier %s",
                feature.value, account.id, account.tier,
                extra={"account_id": account.id, "tier": account.tier},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "message": decision.message,
                    "feature": feature.value,
                    "tier": account.tier,
                    "required_tier": PLAN_NAMES[required] if required else None,
                    "upgrade": True,
                },
            )
        return capability

    return dependency


def require_quota(action: ActionCategory):
    """
    Build a dependency that rejects requests once *action*'s quota is used up.

    This is the advisory half of quota enforcement: it reads the current
    counters and stops requests that are certain to fail.  The route must
    still call ``AccountUsageService.consume`` after the action succeeds.

    Raises (from the dependency):
        HTTPException: 429 with the limit that was hit
    """
    action = ActionCategory(action)
    rule = rule_for(action)

    async def dependency(
        account: Annotated[CurrentAccount, Depends(get_current_account)],
        capability: Annotated[CapabilityRecord, Depends(get_capability)],
        db: AsyncSession = Depends(get_db),
    ) -> CapabilityRecord:
        counters = await AccountUsageService(db).get_counters(account.id, rule.period)
        decision = can_perform_action(capability, counters, action)
        if not decision.allowed:
            raise quota_exceeded(account, capability, action, current_usage(counters, action), decision.message)
        return capability

    return dependency


def quota_exceeded(
    account: CurrentAccount,
    capability: CapabilityRecord,
    action: ActionCategory,
    current: int,
    message: Optional[str],
) -> HTTPException:
    """Build the 429 raised when an action's quota is exhausted."""
    limit = capability.limit_for(rule_for(action).limit_field)
    logger.info(
        "Usage limit hit for account %s: %s",
        account.id, message,
        extra={"account_id": account.id, "tier": account.tier, "action": action.value},
    )
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "message": message,
            "usage": {
                "action": action.value,
                "current": current,
                "limit": limit_to_json(limit),
                "tier": account.tier,
            },
            "upgrade": True,
        },
    )
