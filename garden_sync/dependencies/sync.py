# garden_sync/dependencies/sync.py
from fastapi import Depends

from garden_sync.infrastructure.google_analytics_client import GoogleAnalyticsClient
from garden_sync.infrastructure.stripe_client import StripeClient
from garden_sync.services.sync_service import SyncOrchestrator

def get_google_client() -> GoogleAnalyticsClient:
    return GoogleAnalyticsClient()

def get_stripe_client() -> StripeClient:
    return StripeClient()

def get_orchestrator(
    google_client: GoogleAnalyticsClient = Depends(get_google_client),
    stripe_client: StripeClient = Depends(get_stripe_client),
) -> SyncOrchestrator:
    return SyncOrchestrator(google_client=google_client, stripe_client=stripe_client)
