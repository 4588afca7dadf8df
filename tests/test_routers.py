"""HTTP tests of the FastAPI app with the database and provider clients overridden.

Redis-backed OAuth state is replaced with an in-memory dict.
"""

import uuid
from decimal import Decimal

import httpx
import pytest

from garden_sync.dependencies.db import get_session_dep
from garden_sync.dependencies.sync import get_google_client, get_orchestrator, get_stripe_client
from garden_sync.main import app
from garden_sync.models.integration import PROVIDER_ANALYTICS, PROVIDER_PAYMENTS
from garden_sync.routers import cron_router, integrations_router
from garden_sync.schemas.sync_schema import SyncRead
from garden_sync.services.garden_service import WELCOME_SEEDS
from garden_sync.services.sync_service import DailyMetrics, SyncOrchestrator, UserSyncResult
from tests.helpers import (
    FIXED_NOW,
    GA_PROPERTY_ID,
    add_integration,
    charge,
    google_client,
    provider_handler,
    stripe_client,
)

CRON_SECRET = "cron-secret"


@pytest.fixture
def provider_calls():
    return []


@pytest.fixture
async def client(session_factory, provider_calls, monkeypatch):
    handler = provider_handler(sessions=300, charges=[charge(5000)], calls=provider_calls)

    async def override_session():
        async with session_factory() as session:
            yield session

    def override_orchestrator():
        return SyncOrchestrator(
            session_factory=session_factory,
            google_client=google_client(handler),
            stripe_client=stripe_client(handler),
            concurrency=1,
            now=lambda: FIXED_NOW,
        )

    states = {}

    async def create_state(user_id, provider):
        state = f"state-{len(states)}"
        states[state] = {"user_id": str(user_id), "provider": provider}
        return state

    async def pop_state(state):
        return states.pop(state, None)

    monkeypatch.setattr(integrations_router, "create_oauth_state", create_state)
    monkeypatch.setattr(integrations_router, "pop_oauth_state", pop_state)
    monkeypatch.setattr(cron_router, "CRON_SECRET", CRON_SECRET)
    app.dependency_overrides[get_session_dep] = override_session
    app.dependency_overrides[get_orchestrator] = override_orchestrator
    app.dependency_overrides[get_google_client] = lambda: google_client(handler)
    app.dependency_overrides[get_stripe_client] = lambda: stripe_client(handler)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


async def _signup(client, username: str = "gardener", password: str = "s3cret!") -> dict:
    """Register and log in; returns the auth header plus the new user's id."""
    res = await client.post("/auth/register", json={"email": f"{username}@example.com", "username": username, "password": password})
    assert res.status_code == 201, res.text
    user_id = uuid.UUID(res.json()["id"])
    res = await client.post("/auth/login", json={"email": f"{username}@example.com", "password": password})
    assert res.status_code == 200, res.text
    return {"headers": {"Authorization": f"Bearer {res.json()['access_token']}"}, "user_id": user_id}


# =============================================================================
# Auth
# =============================================================================


class TestAuth:
    async def test_register_provisions_garden_and_welcome_seeds(self, client) -> None:
        user = await _signup(client)

        res = await client.get("/garden/state", headers=user["headers"])

        assert res.status_code == 200
        body = res.json()
        assert body["seeds"] == WELCOME_SEEDS
        assert body["plants"] == []
        assert body["garden"]["grid_size"] == 10
        assert body["garden"]["is_public"] is True
        assert body["garden"]["total_growth_points"] == 0

    async def test_me(self, client) -> None:
        user = await _signup(client)
        res = await client.get("/users/me", headers=user["headers"])
        assert res.status_code == 200
        body = res.json()
        assert body["username"] == "gardener"
        assert body["last_login"] is not None
        assert body["seeds"] == WELCOME_SEEDS
        assert "garden_rank" in body

    async def test_duplicate_email(self, client) -> None:
        await _signup(client)
        res = await client.post("/auth/register", json={"email": "gardener@example.com", "username": "other", "password": "s3cret!"})
        assert res.status_code == 400

    async def test_weak_password(self, client) -> None:
        res = await client.post("/auth/register", json={"email": "a@example.com", "username": "shorty", "password": "123"})
        assert res.status_code == 400

    async def test_wrong_password(self, client) -> None:
        await _signup(client)
        res = await client.post("/auth/login", json={"email": "gardener@example.com", "password": "wrong-one"})
        assert res.status_code == 401

    async def test_requires_token(self, client) -> None:
        assert (await client.get("/garden/state")).status_code == 401
        assert (await client.get("/garden/state", headers={"Authorization": "Bearer nope"})).status_code == 401


# =============================================================================
# Garden and currency
# =============================================================================


class TestGarden:
    async def test_planting_spends_a_seed(self, client) -> None:
        user = await _signup(client)

        res = await client.post("/garden/plants", json={"position_x": 1, "position_y": 2}, headers=user["headers"])

        assert res.status_code == 201
        assert res.json()["seeds"] == WELCOME_SEEDS - 1
        assert res.json()["plant"]["growth_stage"] == 0
        balance = (await client.get("/currency/balance", headers=user["headers"])).json()
        assert balance == {"seeds": WELCOME_SEEDS - 1, "lifetime_seeds": WELCOME_SEEDS}

    async def test_occupied_and_out_of_grid_positions(self, client) -> None:
        user = await _signup(client)
        await client.post("/garden/plants", json={"position_x": 0, "position_y": 0}, headers=user["headers"])

        occupied = await client.post("/garden/plants", json={"position_x": 0, "position_y": 0}, headers=user["headers"])
        outside = await client.post("/garden/plants", json={"position_x": 10, "position_y": 0}, headers=user["headers"])

        assert occupied.status_code == 400
        assert outside.status_code == 400
        state = (await client.get("/garden/state", headers=user["headers"])).json()
        assert len(state["plants"]) == 1
        assert state["seeds"] == WELCOME_SEEDS - 1


# =============================================================================
# Metrics sync
# =============================================================================


class TestMetricsSync:
    async def test_sync_returns_camel_case_summary(self, client, session_factory) -> None:
        user = await _signup(client)
        await client.post("/garden/plants", json={"position_x": 0, "position_y": 0}, headers=user["headers"])
        async with session_factory() as session:
            await add_integration(session, user["user_id"], PROVIDER_ANALYTICS)
            await add_integration(session, user["user_id"], PROVIDER_PAYMENTS)

        res = await client.post("/metrics/sync", headers=user["headers"])

        assert res.status_code == 200, res.text
        assert res.json() == {
            "metrics": {"sessions": 300, "revenue": "50.00", "payments": 1},
            "rewards": {"growthPointsEarned": 800, "seedsEarned": 50, "newBalance": WELCOME_SEEDS - 1 + 50},
            "garden": {"plantsGrown": 1, "plantsUpgraded": 1, "newRank": 1},
        }

    async def test_sync_without_integrations(self, client) -> None:
        user = await _signup(client)
        res = await client.post("/metrics/sync", headers=user["headers"])
        assert res.status_code == 400

    async def test_sync_requires_login(self, client) -> None:
        assert (await client.post("/metrics/sync")).status_code == 401

    def test_revenue_keeps_exact_cents(self) -> None:
        result = UserSyncResult(
            user_id=uuid.uuid4(),
            day=FIXED_NOW.date(),
            metrics=DailyMetrics(sessions=0, revenue=Decimal("0.1") + Decimal("0.2"), payments=2),
        )

        payload = SyncRead.from_result(result).model_dump(mode="json", by_alias=True)

        assert payload["metrics"]["revenue"] == "0.30"


class TestCron:
    async def test_rejects_missing_or_wrong_secret(self, client) -> None:
        assert (await client.get("/cron/daily-metrics")).status_code == 401
        wrong = await client.get("/cron/daily-metrics", headers={"Authorization": "Bearer guess"})
        assert wrong.status_code == 401

    async def test_runs_the_batch(self, client, session_factory) -> None:
        user = await _signup(client)
        async with session_factory() as session:
            await add_integration(session, user["user_id"], PROVIDER_PAYMENTS)

        res = await client.get("/cron/daily-metrics", headers={"Authorization": f"Bearer {CRON_SECRET}"})

        assert res.status_code == 200
        body = res.json()
        assert (body["processed"], body["successful"], body["failed"], body["errors"]) == (1, 1, 0, [])
        assert body["timestamp"].startswith("2024-01-16T10:00:00")

    async def test_enumeration_failure_is_a_server_error(self, client) -> None:
        class BrokenOrchestrator:
            async def run_daily(self):
                raise RuntimeError("database unavailable")

        app.dependency_overrides[get_orchestrator] = BrokenOrchestrator
        res = await client.get("/cron/daily-metrics", headers={"Authorization": f"Bearer {CRON_SECRET}"})
        assert res.status_code == 500


# =============================================================================
# Integrations
# =============================================================================


class TestIntegrations:
    async def test_status_starts_disconnected(self, client) -> None:
        user = await _signup(client)
        res = await client.get("/integrations/status", headers=user["headers"])
        assert res.json() == {
            "google_analytics": {"connected": False, "property_configured": False, "property_id": None},
            "stripe": {"connected": False, "account_id": None},
        }

    async def test_google_analytics_connect_and_pick_property(self, client) -> None:
        user = await _signup(client)

        res = await client.get("/integrations/google-analytics/connect", headers=user["headers"])
        auth_url = httpx.URL(res.json()["auth_url"])
        assert auth_url.host == "accounts.google.com"
        assert auth_url.params["access_type"] == "offline"

        res = await client.get(
            "/integrations/google-analytics/callback",
            params={"code": "auth-code", "state": auth_url.params["state"]},
        )
        assert res.status_code == 200, res.text
        assert res.json()["next_step"] == "select_property"

        status = (await client.get("/integrations/status", headers=user["headers"])).json()
        assert status["google_analytics"] == {"connected": True, "property_configured": False, "property_id": None}

        properties = (await client.get("/integrations/google-analytics/properties", headers=user["headers"])).json()
        assert properties == {"properties": [{"id": GA_PROPERTY_ID, "display_name": "Shop", "website_url": "https://shop.example.com"}]}

        res = await client.post("/integrations/google-analytics/properties", json={"property_id": GA_PROPERTY_ID}, headers=user["headers"])
        assert res.status_code == 200
        status = (await client.get("/integrations/status", headers=user["headers"])).json()
        assert status["google_analytics"]["property_id"] == GA_PROPERTY_ID

    async def test_callback_with_unknown_state(self, client) -> None:
        res = await client.get("/integrations/google-analytics/callback", params={"code": "c", "state": "forged"})
        assert res.status_code == 400

    async def test_callback_with_state_for_other_provider(self, client) -> None:
        user = await _signup(client)
        res = await client.get("/integrations/stripe/connect", headers=user["headers"])
        state = httpx.URL(res.json()["auth_url"]).params["state"]

        res = await client.get("/integrations/google-analytics/callback", params={"code": "c", "state": state})
        assert res.status_code == 400

    async def test_stripe_connect_and_disconnect(self, client, provider_calls) -> None:
        user = await _signup(client)
        res = await client.get("/integrations/stripe/connect", headers=user["headers"])
        state = httpx.URL(res.json()["auth_url"]).params["state"]

        res = await client.get("/integrations/stripe/callback", params={"code": "ac_123", "state": state})
        assert res.status_code == 200, res.text
        status = (await client.get("/integrations/status", headers=user["headers"])).json()
        assert status["stripe"] == {"connected": True, "account_id": "acct_1"}

        res = await client.delete(f"/integrations/{PROVIDER_PAYMENTS}", headers=user["headers"])
        assert res.status_code == 200
        assert any(c.url.path == "/oauth/deauthorize" for c in provider_calls)
        status = (await client.get("/integrations/status", headers=user["headers"])).json()
        assert status["stripe"]["connected"] is False

    async def test_disconnect_errors(self, client) -> None:
        user = await _signup(client)
        assert (await client.delete("/integrations/myspace", headers=user["headers"])).status_code == 400
        assert (await client.delete(f"/integrations/{PROVIDER_ANALYTICS}", headers=user["headers"])).status_code == 404
