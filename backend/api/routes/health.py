"""
Health endpoints.

``/health`` also reports the loaded tier table and the usage window
settings.  ``/health/db`` checks that the usage tables answer.
"""

import asyncio
import logging
from datetime import UTC, datetime
from zoneinfo import ZoneInfoNotFoundError

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.plans import TIER_CAPABILITIES
from infrastructure.config import get_settings
from infrastructure.database import get_db
from infrastructure.database.models import UsageStat

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


def _usage_config() -> dict:
    try:
        zone = settings.reset_zone.key
    except (ZoneInfoNotFoundError, ValueError):
        logger.error("Unresolvable USAGE_RESET_TIMEZONE %r", settings.usage_reset_timezone)
        zone = None
    return {
        "tiers": sorted(tier.value for tier in TIER_CAPABILITIES),
        "reset_timezone": zone,
        "monthly_reset_day": settings.monthly_reset_day,
    }


async def _usage_store_status(db: AsyncSession) -> str:
    try:
        await asyncio.wait_for(
            db.execute(select(func.count()).select_from(UsageStat).limit(1)),
            timeout=5.0,
        )
        return "connected"
    except TimeoutError:
        logger.error("Usage store health check timed out")
        return "error: database timeout"
    except Exception as e:
        logger.error("Usage store health check failed: %s", str(e))
        return "error: usage tables unavailable"


@router.get("/health")
async def health_check():
    """Liveness plus the quota configuration this process is enforcing."""
    usage = _usage_config()
    return {
        "status": "healthy" if usage["reset_timezone"] and usage["tiers"] else "degraded",
        "app": settings.app_name,
        "version": settings.app_version,
        "usage": usage,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    """Whether the usage counter tables are reachable."""
    database = await _usage_store_status(db)
    return {
        "status": "healthy" if database == "connected" else "degraded",
        "app": settings.app_name,
        "version": settings.app_version,
        "database": database,
        "timestamp": datetime.now(UTC).isoformat(),
    }
