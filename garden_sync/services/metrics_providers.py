# garden_sync/services/metrics_providers.py
"""
Metric adapters over the external providers.

Every adapter answers the same three questions for one user and one UTC day; a provider that
does not track a metric reports 0 for it. Failures come out as ProviderFetchError so the
orchestrator can count that provider as zero.
"""
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import List, Tuple

import httpx
import structlog

from garden_sync.infrastructure.google_analytics_client import GoogleAnalyticsClient
from garden_sync.infrastructure.http_client import ExternalAPIError
from garden_sync.infrastructure.stripe_client import StripeClient
from garden_sync.models.integration import PROVIDER_ANALYTICS, PROVIDER_PAYMENTS
from garden_sync.schemas.integration_schema import AnalyticsMetadata
from garden_sync.services.errors import PropertyNotConfigured, ProviderAPIError
from garden_sync.services.token_manager import TokenLifecycleManager

logger = structlog.get_logger(__name__)

CHARGE_SUCCEEDED = "succeeded"
MINOR_UNITS_PER_MAJOR = Decimal(100)

# transport and payload problems the adapters translate into ProviderAPIError
_FETCH_ERRORS = (ExternalAPIError, httpx.HTTPError, KeyError, IndexError, TypeError, ValueError)


@dataclass
class ProviderMetrics:
    sessions: int = 0
    revenue: Decimal = Decimal("0")
    payments: int = 0


def utc_day_bounds(day: date) -> Tuple[int, int]:
    """Unix seconds of 00:00:00 and 23:59:59.999 (truncated) UTC of `day`."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return int(start.timestamp()), int(end.timestamp())


class MetricsProvider:
    name = ""

    def __init__(self, tokens: TokenLifecycleManager):
        self.tokens = tokens

    async def fetch_daily_sessions(self, user_id: uuid.UUID, day: date) -> int:
        return 0

    async def fetch_daily_revenue(self, user_id: uuid.UUID, day: date) -> Decimal:
        return Decimal("0")

    async def fetch_daily_payments(self, user_id: uuid.UUID, day: date) -> int:
        return 0

    async def fetch_daily_metrics(self, user_id: uuid.UUID, day: date) -> ProviderMetrics:
        return ProviderMetrics(
            sessions=await self.fetch_daily_sessions(user_id, day),
            revenue=await self.fetch_daily_revenue(user_id, day),
            payments=await self.fetch_daily_payments(user_id, day),
        )


class AnalyticsMetricsProvider(MetricsProvider):
    name = PROVIDER_ANALYTICS

    def __init__(self, tokens: TokenLifecycleManager, client: GoogleAnalyticsClient):
        super().__init__(tokens)
        self.client = client

    async def fetch_daily_sessions(self, user_id: uuid.UUID, day: date) -> int:
        credential = await self.tokens.get_valid_credential(user_id, self.name)
        metadata = AnalyticsMetadata.from_meta(credential.meta)
        if not metadata.property_id:
            raise PropertyNotConfigured(self.name)

        try:
            return await self.client.run_sessions_report(credential.access_token, metadata.property_id, day)
        except _FETCH_ERRORS as e:
            raise ProviderAPIError(self.name, f"sessions report failed: {e}") from e


class PaymentsMetricsProvider(MetricsProvider):
    """Revenue and payment count from charges in a terminal-success state."""

    name = PROVIDER_PAYMENTS

    def __init__(self, tokens: TokenLifecycleManager, client: StripeClient):
        super().__init__(tokens)
        self.client = client

    async def _succeeded_charges(self, user_id: uuid.UUID, day: date) -> List[dict]:
        credential = await self.tokens.get_valid_credential(user_id, self.name)
        start, end = utc_day_bounds(day)
        try:
            charges = await self.client.list_charges(credential.access_token, start, end)
        except _FETCH_ERRORS as e:
            raise ProviderAPIError(self.name, f"charge listing failed: {e}") from e
        logger.debug("stripe_charges_listed", user_id=str(user_id), day=day.isoformat(), charges=len(charges))
        # refunded charges keep status "succeeded" and only carry the flag
        return [c for c in charges if c.get("status") == CHARGE_SUCCEEDED and not c.get("refunded")]

    @staticmethod
    def _revenue(charges: List[dict]) -> Decimal:
        try:
            minor = sum(int(c["amount"]) for c in charges)
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderAPIError(PROVIDER_PAYMENTS, f"malformed charge amount: {e}") from e
        return Decimal(minor) / MINOR_UNITS_PER_MAJOR

    async def fetch_daily_revenue(self, user_id: uuid.UUID, day: date) -> Decimal:
        return self._revenue(await self._succeeded_charges(user_id, day))

    async def fetch_daily_payments(self, user_id: uuid.UUID, day: date) -> int:
        return len(await self._succeeded_charges(user_id, day))

    async def fetch_daily_metrics(self, user_id: uuid.UUID, day: date) -> ProviderMetrics:
        charges = await self._succeeded_charges(user_id, day)
        return ProviderMetrics(revenue=self._revenue(charges), payments=len(charges))
