"""
Plan catalogue routes.
"""

from fastapi import APIRouter

from api.schemas.usage import PlanInfo, PlansResponse
from core.domain.usage import LIMIT_FIELDS, Feature
from core.limits import limit_to_json
from core.plans import PLAN_NAMES, all_capabilities
from core.quota import has_feature

router = APIRouter(prefix="/plans", tags=["Plans"])


@router.get("", response_model=PlansResponse)
async def list_plans():
    """
    Get limits and features for every tier.

    Public endpoint; unlimited limits are returned as null.
    """
    plans = [
        PlanInfo(
            id=capability.tier.value,
            name=PLAN_NAMES[capability.tier],
            limits={name: limit_to_json(capability.limit_for(name)) for name in LIMIT_FIELDS},
            features={feature.value: has_feature(capability, feature) for feature in Feature},
        )
        for capability in all_capabilities()
    ]
    return PlansResponse(plans=plans)
