"""
Integration tests for usage, plans and health endpoints.
"""

from typing import Annotated

import pytest
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api.dependencies import require_quota
from core.domain.usage import ActionCategory, CapabilityRecord
from infrastructure.database import get_db

pytestmark = pytest.mark.asyncio


async def _track(client: AsyncClient, headers: dict, action: str, **body):
    return await client.post("/api/v1/usage/track", json={"action": action, **body}, headers=headers)


class TestHealth:
    """Tests for health endpoints."""

    async def test_health(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_health_reports_usage_config(self, async_client: AsyncClient):
        data = (await async_client.get("/api/v1/health")).json()

        assert data["app"] == "Auction Usage Gate"
        assert data["usage"]["tiers"] == ["admin", "basic", "freemium", "gold", "platinum"]
        assert data["usage"]["reset_timezone"] == "UTC"
        assert data["usage"]["monthly_reset_day"] == 1

    async def test_health_db(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health/db")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    async def test_health_db_degraded_without_tables(self, async_client: AsyncClient):
        from main import app

        engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

        async def empty_db():
            async with session_maker() as session:
                yield session

        app.dependency_overrides[get_db] = empty_db
        try:
            response = await async_client.get("/api/v1/health/db")
        finally:
            await engine.dispose()

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["database"].startswith("error")

    async def test_request_id_header(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health")
        assert "X-Request-ID" in response.headers
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestPlans:
    """Tests for the public plan catalogue."""

    async def test_list_plans(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/plans")

        assert response.status_code == 200
        plans = {plan["id"]: plan for plan in response.json()["plans"]}
        assert list(plans) == ["freemium", "basic", "gold", "platinum", "admin"]

        assert plans["freemium"]["name"] == "Freemium"
        assert plans["freemium"]["limits"]["daily_searches"] == 10
        assert plans["gold"]["limits"]["monthly_exports"] == 500
        assert plans["gold"]["features"]["api_access"] is False
        assert plans["platinum"]["limits"]["monthly_vin_lookups"] is None


class TestAuthentication:
    """Usage endpoints require a valid token with a tier claim."""

    async def test_missing_token(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/usage")
        assert response.status_code == 401

    async def test_invalid_token(self, async_client: AsyncClient):
        response = await async_client.get(
            "/api/v1/usage", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    async def test_token_without_tier(self, async_client: AsyncClient, account_id: str, make_auth_headers):
        response = await async_client.get("/api/v1/usage", headers=make_auth_headers(account_id, None))
        assert response.status_code == 401

    async def test_unknown_tier_is_server_error(
        self, async_client: AsyncClient, account_id: str, make_auth_headers
    ):
        response = await async_client.get("/api/v1/usage", headers=make_auth_headers(account_id, "enterprise"))

        assert response.status_code == 500
        assert response.json() == {"detail": "Invalid subscription tier configuration"}


class TestGetUsage:
    """Tests for GET /usage."""

    async def test_fresh_account(self, async_client: AsyncClient, auth_headers: dict, account_id: str):
        response = await async_client.get("/api/v1/usage", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["account_id"] == account_id
        assert data["tier"] == "freemium"
        assert data["daily"]["searches"] == 0
        assert data["daily"]["next_reset"] is not None

        actions = {row["action"]: row for row in data["actions"]}
        assert actions["search"] == {
            "action": "search",
            "period": "daily",
            "used": 0,
            "limit": 10,
            "remaining": 10,
            "unlimited": False,
        }
        assert actions["ai"]["remaining"] == 0
        assert data["features"]["basic_search"] is True
        assert data["features"]["bulk_export"] is False

    async def test_unlimited_tier(self, async_client: AsyncClient, account_id: str, make_auth_headers):
        response = await async_client.get("/api/v1/usage", headers=make_auth_headers(account_id, "platinum"))

        actions = {row["action"]: row for row in response.json()["actions"]}
        assert actions["vin"]["limit"] is None
        assert actions["vin"]["remaining"] is None
        assert actions["vin"]["unlimited"] is True


class TestCheckUsage:
    """Tests for POST /usage/check."""

    async def test_allowed(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post("/api/v1/usage/check", json={"action": "vin"}, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["allowed"] is True
        assert data["message"] is None
        assert data["limit"] == 5
        assert data["remaining"] == 5

    async def test_zero_limit_denied(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post("/api/v1/usage/check", json={"action": "ai"}, headers=auth_headers)

        data = response.json()
        assert data["allowed"] is False
        assert "(0)" in data["message"]

    async def test_check_does_not_consume(self, async_client: AsyncClient, auth_headers: dict):
        for _ in range(3):
            await async_client.post("/api/v1/usage/check", json={"action": "export"}, headers=auth_headers)

        response = await async_client.get("/api/v1/usage", headers=auth_headers)
        assert response.json()["monthly"]["exports"] == 0

    async def test_legacy_action_name(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/usage/check", json={"action": "vinAnalysis"}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "vin"
        assert data["limit"] == 5

    async def test_unknown_action(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post("/api/v1/usage/check", json={"action": "teleport"}, headers=auth_headers)
        assert response.status_code == 422


class TestTrackUsage:
    """Tests for POST /usage/track."""

    async def test_track_increments(self, async_client: AsyncClient, auth_headers: dict):
        response = await _track(async_client, auth_headers, "search")

        assert response.status_code == 200
        actions = {row["action"]: row for row in response.json()["actions"]}
        assert actions["search"]["used"] == 1
        assert actions["search"]["remaining"] == 9

    async def test_limit_reached(self, async_client: AsyncClient, auth_headers: dict):
        for _ in range(5):
            response = await _track(async_client, auth_headers, "vin", metadata={"vin": "1HGCM82633A004352"})
            assert response.status_code == 200

        response = await _track(async_client, auth_headers, "vin")

        assert response.status_code == 429
        detail = response.json()["detail"]
        assert detail["upgrade"] is True
        assert detail["usage"] == {"action": "vin", "current": 5, "limit": 5, "tier": "freemium"}
        assert "5" in detail["message"]

    async def test_zero_limit(self, async_client: AsyncClient, auth_headers: dict):
        response = await _track(async_client, auth_headers, "ai")

        assert response.status_code == 429
        assert response.json()["detail"]["usage"]["limit"] == 0

    async def test_legacy_action_is_charged_to_canonical_counter(
        self, async_client: AsyncClient, auth_headers: dict
    ):
        response = await _track(async_client, auth_headers, "vin_lookup")

        assert response.status_code == 200
        assert response.json()["monthly"]["vin_searches"] == 1

        response = await _track(async_client, auth_headers, "ai_analysis")
        assert response.status_code == 429
        assert response.json()["detail"]["usage"]["action"] == "ai"

    async def test_unlimited(self, async_client: AsyncClient, account_id: str, make_auth_headers):
        headers = make_auth_headers(account_id, "admin")
        for _ in range(3):
            response = await _track(async_client, headers, "ai")
            assert response.status_code == 200

        actions = {row["action"]: row for row in response.json()["actions"]}
        assert actions["ai"]["used"] == 3
        assert actions["ai"]["unlimited"] is True


class TestFeatures:
    """Tests for GET /usage/features/{feature}."""

    async def test_enabled(self, async_client: AsyncClient, account_id: str, make_auth_headers):
        response = await async_client.get(
            "/api/v1/usage/features/bulk_export", headers=make_auth_headers(account_id, "gold")
        )

        assert response.status_code == 200
        assert response.json()["enabled"] is True

    async def test_disabled_names_plan(self, async_client: AsyncClient, account_id: str, make_auth_headers):
        response = await async_client.get(
            "/api/v1/usage/features/api_access", headers=make_auth_headers(account_id, "gold")
        )

        data = response.json()
        assert data["enabled"] is False
        assert data["required_tier"] == "Platinum"
        assert "Platinum" in data["message"]

    async def test_unknown_feature(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.get("/api/v1/usage/features/time_travel", headers=auth_headers)
        assert response.status_code == 422


class TestUsageEvents:
    """Tests for GET /usage/events."""

    async def test_requires_custom_reports(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.get("/api/v1/usage/events", headers=auth_headers)

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["feature"] == "custom_reports"
        assert detail["required_tier"] == "Gold"

    async def test_lists_tracked_events(self, async_client: AsyncClient, account_id: str, make_auth_headers):
        headers = make_auth_headers(account_id, "gold")
        await _track(async_client, headers, "export", metadata={"format": "csv"})

        response = await async_client.get("/api/v1/usage/events", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["action"] == "export"
        assert data["items"][0]["metadata"] == {"format": "csv"}


class TestRequireQuota:
    """Tests for the require_quota route dependency."""

    @pytest.fixture
    async def quota_client(self, db_session: AsyncSession):
        app = FastAPI()

        @app.get("/vin-report")
        async def vin_report(
            capability: Annotated[CapabilityRecord, Depends(require_quota(ActionCategory.VIN))],
        ):
            return {"tier": capability.tier.value}

        async def override_get_db():
            yield db_session

        app.dependency_overrides[get_db] = override_get_db

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client

    async def test_allows_under_quota(self, quota_client: AsyncClient, auth_headers: dict):
        response = await quota_client.get("/vin-report", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"tier": "freemium"}

    async def test_blocks_when_exhausted(
        self, quota_client: AsyncClient, async_client: AsyncClient, auth_headers: dict
    ):
        for _ in range(5):
            await _track(async_client, auth_headers, "vin")

        response = await quota_client.get("/vin-report", headers=auth_headers)

        assert response.status_code == 429
        assert response.json()["detail"]["usage"]["current"] == 5
