# garden_sync/services/sync_service.py
"""
Daily metrics sync.

For every user with an active integration: fetch yesterday's metrics, turn them into growth
points and seeds, store the day's snapshot and apply the rewards to the garden and the seed
balance. Each user runs in its own session and transaction, so one user's failure rolls back
only that user's changes.
"""
import asyncio
import os
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Set

import structlog

from garden_sync.infrastructure.database import get_session
from garden_sync.infrastructure.game_state_repo import GameStateRepository
from garden_sync.infrastructure.google_analytics_client import GoogleAnalyticsClient
from garden_sync.infrastructure.integrations_repo import IntegrationRepository
from garden_sync.infrastructure.stripe_client import StripeClient
from garden_sync.models.integration import PROVIDER_ANALYTICS, PROVIDER_PAYMENTS
from garden_sync.services.currency_service import CurrencyLedger
from garden_sync.services.errors import NoActiveIntegrations, ProviderFetchError
from garden_sync.services.garden_service import GardenGrowthApplier, GrowthResult, RankCalculator
from garden_sync.services.growth_engine import compute_growth_points, compute_seeds_earned, whole_points
from garden_sync.services.metrics_providers import (
    AnalyticsMetricsProvider,
    MetricsProvider,
    PaymentsMetricsProvider,
    ProviderMetrics,
)
from garden_sync.services.token_manager import TokenLifecycleManager

logger = structlog.get_logger(__name__)

SYNC_CONCURRENCY = int(os.getenv("SYNC_CONCURRENCY", "4"))
MAX_REPORTED_ERRORS = 10


@dataclass
class DailyMetrics:
    sessions: int = 0
    revenue: Decimal = Decimal("0")
    payments: int = 0

    @property
    def users(self) -> int:
        # the analytics report only asks for sessions; they stand in for users
        return self.sessions

    def add(self, other: ProviderMetrics) -> None:
        self.sessions += other.sessions
        self.revenue += other.revenue
        self.payments += other.payments


@dataclass
class UserSyncResult:
    user_id: uuid.UUID
    day: date
    metrics: DailyMetrics
    growth_points_earned: int = 0
    seeds_earned: int = 0
    new_balance: int = 0
    plants_grown: int = 0
    plants_upgraded: int = 0
    new_rank: int = 0


@dataclass
class BatchSyncResult:
    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.utcnow)


def yesterday_utc(now: datetime) -> date:
    return (now - timedelta(days=1)).date()


class SyncOrchestrator:
    def __init__(
        self,
        session_factory=get_session,
        google_client: Optional[GoogleAnalyticsClient] = None,
        stripe_client: Optional[StripeClient] = None,
        concurrency: Optional[int] = None,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory
        self.google_client = google_client or GoogleAnalyticsClient()
        self.stripe_client = stripe_client or StripeClient()
        self.concurrency = max(1, concurrency or SYNC_CONCURRENCY)
        self.now = now

    def token_manager(self, repo: IntegrationRepository) -> TokenLifecycleManager:
        # Stripe Connect tokens do not expire, only Google needs a refresher
        return TokenLifecycleManager(
            repo,
            refreshers={PROVIDER_ANALYTICS: self.google_client.refresh_access_token},
            now=self.now,
        )

    def build_providers(self, tokens: TokenLifecycleManager) -> Dict[str, MetricsProvider]:
        return {
            PROVIDER_ANALYTICS: AnalyticsMetricsProvider(tokens, self.google_client),
            PROVIDER_PAYMENTS: PaymentsMetricsProvider(tokens, self.stripe_client),
        }

    async def eligible_users(self) -> Dict[uuid.UUID, Set[str]]:
        async with self.session_factory() as session:
            return await IntegrationRepository(session).active_providers_by_user()

    # --- single user ---
    async def sync_user(
        self,
        user_id: uuid.UUID,
        providers: Optional[Iterable[str]] = None,
        day: Optional[date] = None,
    ) -> UserSyncResult:
        """
        Run the whole pipeline for one user inside one transaction.

        AuthError from the credential step is raised. ProviderFetchError counts that provider
        as zero. Anything raised after the metrics are in rolls the user's changes back.
        """
        day = day or yesterday_utc(self.now())
        log = logger.bind(user_id=str(user_id), day=day.isoformat())

        async with self.session_factory() as session:
            integrations = IntegrationRepository(session)
            if providers is None:
                providers = {i.provider for i in await integrations.list_active_by_user(user_id)}
            providers = sorted(set(providers))
            if not providers:
                raise NoActiveIntegrations(user_id)

            tokens = self.token_manager(integrations)
            usable = await self._fetch_credentials(tokens, user_id, providers, log)
            metrics = await self._fetch_metrics(self.build_providers(tokens), user_id, usable, day, log)

            repo = GameStateRepository(session)
            result = await self._apply(repo, user_id, day, metrics)
            await repo.commit()

        log.info(
            "user_sync_completed",
            sessions=metrics.sessions,
            revenue=str(metrics.revenue),
            payments=metrics.payments,
            growth_points=result.growth_points_earned,
            seeds=result.seeds_earned,
            rank=result.new_rank,
        )
        return result

    async def _fetch_credentials(self, tokens, user_id, providers: List[str], log) -> List[str]:
        usable = []
        for provider in providers:
            try:
                await tokens.get_valid_credential(user_id, provider)
            except ProviderFetchError as e:
                log.warning("provider_fetch_failed", provider=provider, stage="credentials", error=str(e))
                continue
            usable.append(provider)
        return usable

    async def _fetch_metrics(self, adapters, user_id, providers: List[str], day: date, log) -> DailyMetrics:
        metrics = DailyMetrics()
        for provider in providers:
            adapter = adapters.get(provider)
            if adapter is None:
                log.warning("provider_unknown", provider=provider)
                continue
            try:
                metrics.add(await adapter.fetch_daily_metrics(user_id, day))
            except ProviderFetchError as e:
                log.warning("provider_fetch_failed", provider=provider, stage="metrics", error=str(e))
        return metrics

    async def _apply(self, repo: GameStateRepository, user_id: uuid.UUID, day: date, metrics: DailyMetrics) -> UserSyncResult:
        points = whole_points(compute_growth_points(metrics.sessions, metrics.revenue))
        seeds = compute_seeds_earned(metrics.sessions, metrics.revenue)

        # a rerun for the same day only pays the part not already paid; a degraded rerun
        # lowers the metrics but never the paid-out counters
        previous = await repo.get_snapshot(user_id, day)
        points_paid = previous.growth_points_applied if previous else 0
        seeds_paid = previous.seeds_applied if previous else 0
        points_due = max(0, points - points_paid)
        seeds_due = max(0, seeds - seeds_paid)

        await repo.upsert_snapshot(user_id, day, {
            "sessions": metrics.sessions,
            "users": metrics.users,
            "revenue": metrics.revenue,
            "payments": metrics.payments,
            "growth_points_earned": points,
            "seeds_earned": seeds,
            "growth_points_applied": points_paid + points_due,
            "seeds_applied": seeds_paid + seeds_due,
        })

        growth = GrowthResult()
        if points_due:
            growth = await GardenGrowthApplier(repo).apply_growth(user_id, points_due)

        ledger = CurrencyLedger(repo)
        if seeds_due:
            balance = await ledger.add_seeds(user_id, seeds_due)
        else:
            balance = await ledger.get_balance(user_id)

        rank = await RankCalculator(repo).recompute_rank(user_id)

        return UserSyncResult(
            user_id=user_id,
            day=day,
            metrics=metrics,
            growth_points_earned=points,
            seeds_earned=seeds,
            new_balance=balance,
            plants_grown=growth.plants_grown,
            plants_upgraded=growth.plants_upgraded,
            new_rank=rank,
        )

    # --- batch ---
    async def run_daily(self, day: Optional[date] = None) -> BatchSyncResult:
        """
        Sync every eligible user for `day` (yesterday, UTC, by default).

        Only a failure to enumerate the users escapes; per-user failures are counted and
        the first MAX_REPORTED_ERRORS messages are kept.
        """
        day = day or yesterday_utc(self.now())
        eligible = await self.eligible_users()
        logger.info("daily_sync_started", day=day.isoformat(), users=len(eligible), concurrency=self.concurrency)

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(user_id: uuid.UUID, providers: Set[str]) -> Optional[str]:
            async with semaphore:
                try:
                    await self.sync_user(user_id, providers, day)
                except Exception as e:
                    logger.exception("user_sync_failed", user_id=str(user_id), day=day.isoformat(), error=str(e))
                    return f"User {user_id}: {e}"
                return None

        outcomes = await asyncio.gather(*(run_one(u, p) for u, p in eligible.items()))
        errors = [o for o in outcomes if o is not None]

        result = BatchSyncResult(
            processed=len(outcomes),
            successful=len(outcomes) - len(errors),
            failed=len(errors),
            errors=errors[:MAX_REPORTED_ERRORS],
            timestamp=self.now(),
        )
        logger.info(
            "daily_sync_finished",
            day=day.isoformat(),
            processed=result.processed,
            successful=result.successful,
            failed=result.failed,
        )
        return result
