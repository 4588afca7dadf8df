# garden_sync/routers/integrations_router.py
import uuid
from typing import Optional

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from garden_sync.dependencies.auth import get_current_user
from garden_sync.dependencies.db import get_session_dep
from garden_sync.dependencies.sync import get_google_client, get_stripe_client
from garden_sync.infrastructure.google_analytics_client import GoogleAnalyticsClient, GoogleAnalyticsNotConfigured
from garden_sync.infrastructure.http_client import ExternalAPIError
from garden_sync.infrastructure.integrations_repo import IntegrationRepository
from garden_sync.infrastructure.stripe_client import StripeClient, StripeNotConfigured
from garden_sync.infrastructure.redis_cache import create_oauth_state, pop_oauth_state
from garden_sync.models.integration import PROVIDER_ANALYTICS, PROVIDER_PAYMENTS, SUPPORTED_PROVIDERS
from garden_sync.routers.error_mapping import to_http_exception
from garden_sync.schemas.integration_schema import (
    AnalyticsMetadata,
    AnalyticsPropertyList,
    AnalyticsStatus,
    AuthUrl,
    ConnectResult,
    IntegrationStatus,
    PaymentsMetadata,
    PaymentsStatus,
    PropertySelect,
)
from garden_sync.services.errors import GardenSyncError
from garden_sync.services.token_manager import TokenLifecycleManager
from garden_sync.UAA.utils import encrypt_token

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/integrations", tags=["integrations"])

# provider calls made on behalf of the user during setup
PROVIDER_ERRORS = (ExternalAPIError, httpx.HTTPError, ValueError)


async def _consume_state(state: Optional[str], provider: str) -> uuid.UUID:
    payload = await pop_oauth_state(state) if state else None
    if not payload:
        raise HTTPException(status_code=400, detail="Invalid or expired state")
    if payload.get("provider") != provider:
        raise HTTPException(status_code=400, detail="State provider mismatch")
    return uuid.UUID(payload["user_id"])


@router.get("/status", response_model=IntegrationStatus)
async def integrations_status(session: AsyncSession = Depends(get_session_dep), current_user = Depends(get_current_user)):
    analytics, payments = AnalyticsStatus(), PaymentsStatus()
    for integration in await IntegrationRepository(session).list_active_by_user(current_user.id):
        if integration.provider == PROVIDER_ANALYTICS:
            meta = AnalyticsMetadata.from_meta(integration.meta)
            analytics = AnalyticsStatus(connected=True, property_configured=bool(meta.property_id), property_id=meta.property_id)
        elif integration.provider == PROVIDER_PAYMENTS:
            payments = PaymentsStatus(connected=True, account_id=PaymentsMetadata.from_meta(integration.meta).account_id)
    return IntegrationStatus(google_analytics=analytics, stripe=payments)


# --- Google Analytics ---
@router.get("/google-analytics/connect", response_model=AuthUrl)
async def google_analytics_connect(
    current_user = Depends(get_current_user),
    google: GoogleAnalyticsClient = Depends(get_google_client),
):
    try:
        state = await create_oauth_state(str(current_user.id), PROVIDER_ANALYTICS)
        return {"auth_url": google.authorization_url(state)}
    except GoogleAnalyticsNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/google-analytics/callback", response_model=ConnectResult)
async def google_analytics_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    session: AsyncSession = Depends(get_session_dep),
    google: GoogleAnalyticsClient = Depends(get_google_client),
):
    if error:
        raise HTTPException(status_code=400, detail=f"Authorization denied: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing code or state")
    user_id = await _consume_state(state, PROVIDER_ANALYTICS)

    try:
        grant = await google.exchange_code(code)
    except GoogleAnalyticsNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except PROVIDER_ERRORS as e:
        logger.warning("ga_token_exchange_failed", user_id=str(user_id), error=str(e))
        raise HTTPException(status_code=502, detail="Token exchange failed")

    # a new connection starts without a property; the user picks one next
    integration = await IntegrationRepository(session).upsert(
        user_id,
        PROVIDER_ANALYTICS,
        access_token_enc=encrypt_token(grant.access_token),
        refresh_token_enc=encrypt_token(grant.refresh_token),
        expires_at=grant.expires_at(),
        scope=grant.scope,
        meta={},
    )
    logger.info("integration_connected", user_id=str(user_id), provider=PROVIDER_ANALYTICS)
    return ConnectResult(status="connected", provider=PROVIDER_ANALYTICS, connected_id=str(integration.id), next_step="select_property")


@router.get("/google-analytics/properties", response_model=AnalyticsPropertyList)
async def google_analytics_properties(
    session: AsyncSession = Depends(get_session_dep),
    current_user = Depends(get_current_user),
    google: GoogleAnalyticsClient = Depends(get_google_client),
):
    repo = IntegrationRepository(session)
    if not await repo.get_active(current_user.id, PROVIDER_ANALYTICS):
        raise HTTPException(status_code=404, detail="Google Analytics not connected")

    tokens = TokenLifecycleManager(repo, refreshers={PROVIDER_ANALYTICS: google.refresh_access_token})
    try:
        credential = await tokens.get_valid_credential(current_user.id, PROVIDER_ANALYTICS)
        properties = await google.list_properties(credential.access_token)
    except GardenSyncError as exc:
        raise to_http_exception(exc)
    except PROVIDER_ERRORS as e:
        logger.warning("ga_list_properties_failed", user_id=str(current_user.id), error=str(e))
        raise HTTPException(status_code=502, detail="Failed to list properties")
    return {"properties": properties}


@router.post("/google-analytics/properties", response_model=dict)
async def google_analytics_select_property(
    payload: PropertySelect,
    session: AsyncSession = Depends(get_session_dep),
    current_user = Depends(get_current_user),
):
    if not payload.property_id.strip():
        raise HTTPException(status_code=400, detail="Property ID is required")
    repo = IntegrationRepository(session)
    integration = await repo.get_active(current_user.id, PROVIDER_ANALYTICS)
    if not integration:
        raise HTTPException(status_code=404, detail="Google Analytics not connected")

    meta = AnalyticsMetadata(property_id=payload.property_id.strip())
    await repo.update_meta(integration, meta.model_dump())
    logger.info("ga_property_selected", user_id=str(current_user.id), property_id=meta.property_id)
    return {"success": True, "property_id": meta.property_id}


# --- Stripe ---
@router.get("/stripe/connect", response_model=AuthUrl)
async def stripe_connect(
    current_user = Depends(get_current_user),
    stripe: StripeClient = Depends(get_stripe_client),
):
    try:
        state = await create_oauth_state(str(current_user.id), PROVIDER_PAYMENTS)
        return {"auth_url": stripe.authorization_url(state)}
    except StripeNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/stripe/callback", response_model=ConnectResult)
async def stripe_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    session: AsyncSession = Depends(get_session_dep),
    stripe: StripeClient = Depends(get_stripe_client),
):
    if error:
        raise HTTPException(status_code=400, detail=f"Authorization denied: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing code or state")
    user_id = await _consume_state(state, PROVIDER_PAYMENTS)

    try:
        grant = await stripe.exchange_code(code)
    except StripeNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except PROVIDER_ERRORS as e:
        logger.warning("stripe_token_exchange_failed", user_id=str(user_id), error=str(e))
        raise HTTPException(status_code=502, detail="Token exchange failed")

    # Connect tokens do not expire
    integration = await IntegrationRepository(session).upsert(
        user_id,
        PROVIDER_PAYMENTS,
        access_token_enc=encrypt_token(grant.access_token),
        refresh_token_enc=None,
        expires_at=None,
        scope=grant.scope,
        meta=PaymentsMetadata(account_id=grant.stripe_user_id).model_dump(),
    )
    logger.info("integration_connected", user_id=str(user_id), provider=PROVIDER_PAYMENTS, account_id=grant.stripe_user_id)
    return ConnectResult(status="connected", provider=PROVIDER_PAYMENTS, connected_id=str(integration.id))


# --- disconnect ---
@router.delete("/{provider}", response_model=dict)
async def disconnect(
    provider: str,
    session: AsyncSession = Depends(get_session_dep),
    current_user = Depends(get_current_user),
    stripe: StripeClient = Depends(get_stripe_client),
):
    if provider not in SUPPORTED_PROVIDERS:
        raise HTTPException(status_code=400, detail=f"Unknown provider {provider}")
    repo = IntegrationRepository(session)
    integration = await repo.get_active(current_user.id, provider)
    if not integration:
        raise HTTPException(status_code=404, detail=f"{provider} not connected")

    if provider == PROVIDER_PAYMENTS:
        account_id = PaymentsMetadata.from_meta(integration.meta).account_id
        if account_id:
            try:
                await stripe.deauthorize(account_id)
            except StripeNotConfigured as e:
                raise HTTPException(status_code=500, detail=str(e))
            except PROVIDER_ERRORS as e:
                logger.warning("stripe_deauthorize_failed", user_id=str(current_user.id), error=str(e))
                raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Stripe deauthorization failed")

    await repo.deactivate(integration)
    logger.info("integration_disconnected", user_id=str(current_user.id), provider=provider)
    return {"success": True}
