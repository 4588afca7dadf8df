"""Builders and provider fakes shared by the test modules."""

import json
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional

import httpx

from garden_sync.infrastructure.game_state_repo import GameStateRepository
from garden_sync.infrastructure.google_analytics_client import GoogleAnalyticsClient
from garden_sync.infrastructure.http_client import ExternalAPIClient
from garden_sync.infrastructure.stripe_client import StripeClient
from garden_sync.models.garden import Garden, Plant
from garden_sync.models.integration import PROVIDER_ANALYTICS, Integration
from garden_sync.services.garden_service import provision_game_state
from garden_sync.services.token_manager import Credential
from garden_sync.UAA.models import User
from garden_sync.UAA.utils import encrypt_token

# 2024-01-16 10:00 UTC, so "yesterday" is 2024-01-15
FIXED_NOW = datetime(2024, 1, 16, 10, 0, 0)

GA_PROPERTY_ID = "123456"

Handler = Callable[[httpx.Request], httpx.Response]


# =============================================================================
# Database builders
# =============================================================================


async def create_user(session, username: str = "gardener", provision: bool = True, seeds: Optional[int] = None) -> User:
    """User with (by default) a provisioned garden and currency account, committed."""
    user = User(email=f"{username}@example.com", username=username, hashed_password="not-a-real-hash")
    session.add(user)
    await session.flush()
    if provision:
        repo = GameStateRepository(session)
        await provision_game_state(repo, user.id, username)
        if seeds is not None:
            account = await repo.get_currency(user.id)
            account.seeds = seeds
            account.lifetime_seeds = seeds
            session.add(account)
    await session.commit()
    return user


async def add_plants(session, garden: Garden, count: int, stage: int = 0, points: int = 0) -> List[Plant]:
    plants = [
        Plant(garden_id=garden.id, position_x=i, position_y=0, growth_stage=stage, growth_points=points)
        for i in range(count)
    ]
    session.add_all(plants)
    await session.commit()
    return plants


async def set_garden_total(session, garden: Garden, total: int, is_public: bool = True) -> Garden:
    garden.total_growth_points = total
    garden.is_public = is_public
    session.add(garden)
    await session.commit()
    return garden


async def add_integration(
    session,
    user_id: uuid.UUID,
    provider: str,
    access_token: str = "access-token",
    refresh_token: Optional[str] = None,
    expires_at: Optional[datetime] = None,
    meta: Optional[dict] = None,
    is_active: bool = True,
) -> Integration:
    if meta is None:
        meta = {"property_id": GA_PROPERTY_ID} if provider == PROVIDER_ANALYTICS else {"account_id": "acct_1"}
    integration = Integration(
        user_id=user_id,
        provider=provider,
        access_token_enc=encrypt_token(access_token),
        refresh_token_enc=encrypt_token(refresh_token),
        token_expires_at=expires_at,
        meta=meta,
        is_active=is_active,
    )
    session.add(integration)
    await session.commit()
    return integration


# =============================================================================
# Provider fakes
# =============================================================================


def json_response(status_code: int, payload) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode(), headers={"content-type": "application/json"})


def sessions_report(sessions: int) -> dict:
    return {"rows": [{"metricValues": [{"value": str(sessions)}]}]}


def charge(amount: int, status: str = "succeeded", refunded: bool = False, charge_id: Optional[str] = None) -> dict:
    return {"id": charge_id or f"ch_{uuid.uuid4().hex[:8]}", "amount": amount, "status": status, "refunded": refunded}


def charges_page(charges: List[dict], has_more: bool = False) -> dict:
    return {"object": "list", "data": charges, "has_more": has_more}


def provider_handler(
    sessions: Optional[int] = None,
    charges: Optional[List[dict]] = None,
    analytics_status: int = 200,
    stripe_status: int = 200,
    token_response: Optional[dict] = None,
    calls: Optional[List[httpx.Request]] = None,
) -> Handler:
    """
    One MockTransport handler for both providers.
    Non-200 statuses make the matching endpoint fail with an error body.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        host, path = request.url.host, request.url.path
        if host == "analyticsdata.googleapis.com" and path.endswith(":runReport"):
            if analytics_status != 200:
                return json_response(analytics_status, {"error": {"message": "backend error"}})
            return json_response(200, sessions_report(sessions or 0))
        if host == "oauth2.googleapis.com":
            return json_response(200, token_response or {"access_token": "refreshed", "expires_in": 3600})
        if host == "api.stripe.com" and path == "/v1/charges":
            if stripe_status != 200:
                return json_response(stripe_status, {"error": {"message": "api error"}})
            return json_response(200, charges_page(charges or []))
        if host == "analyticsadmin.googleapis.com" and path == "/v1beta/accounts":
            return json_response(200, {"accounts": [{"name": "accounts/1"}]})
        if host == "analyticsadmin.googleapis.com" and path == "/v1beta/properties":
            return json_response(200, {"properties": [
                {"name": f"properties/{GA_PROPERTY_ID}", "displayName": "Shop", "websiteUrl": "https://shop.example.com"},
            ]})
        if host == "connect.stripe.com" and path == "/oauth/token":
            return json_response(200, {"access_token": "sk_connected", "stripe_user_id": "acct_1", "scope": "read_only"})
        if host == "connect.stripe.com" and path == "/oauth/deauthorize":
            return json_response(200, {"stripe_user_id": "acct_1"})
        return json_response(404, {"error": f"unexpected {request.method} {request.url}"})

    return handler


def mock_http(handler: Handler) -> ExternalAPIClient:
    return ExternalAPIClient(timeout=5, transport=httpx.MockTransport(handler))


def google_client(handler: Handler) -> GoogleAnalyticsClient:
    return GoogleAnalyticsClient(
        client_id="ga-client",
        client_secret="ga-secret",
        redirect_uri="http://testserver/integrations/google-analytics/callback",
        http=mock_http(handler),
    )


def stripe_client(handler: Handler, max_pages: Optional[int] = None) -> StripeClient:
    return StripeClient(
        client_id="ca_test",
        secret_key="sk_test",
        redirect_uri="http://testserver/integrations/stripe/callback",
        max_pages=max_pages,
        http=mock_http(handler),
    )


class StaticTokens:
    """Stands in for TokenLifecycleManager when a test only exercises an adapter."""

    def __init__(self, meta: Optional[Dict] = None, access_token: str = "access-token"):
        self.meta = meta or {}
        self.access_token = access_token

    async def get_valid_credential(self, user_id, provider: str) -> Credential:
        return Credential(user_id=user_id, provider=provider, access_token=self.access_token, meta=dict(self.meta))
