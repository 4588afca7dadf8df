# garden_sync/services/token_manager.py
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional, Tuple

import httpx
import structlog

from garden_sync.infrastructure.http_client import ExternalAPIError, TokenGrant
from garden_sync.infrastructure.integrations_repo import IntegrationRepository
from garden_sync.models.integration import Integration
from garden_sync.services.errors import CredentialNotFound, InvalidCredential, ProviderAPIError, RefreshFailed
from garden_sync.UAA.utils import decrypt_token, encrypt_token

logger = structlog.get_logger(__name__)

REFRESH_MARGIN = timedelta(minutes=5)

TokenRefresher = Callable[[str], Awaitable[TokenGrant]]


@dataclass
class Credential:
    user_id: uuid.UUID
    provider: str
    access_token: str
    expires_at: Optional[datetime] = None
    meta: dict = field(default_factory=dict)


class TokenLifecycleManager:
    """
    Hands out usable access tokens per (user, provider).

    Static-key providers (no expiry) get the stored token back unchanged. OAuth providers are
    refreshed once the token is within REFRESH_MARGIN of expiring; the new token is persisted
    before it is returned. Refresh failures are raised, never retried here.
    """

    def __init__(
        self,
        repo: IntegrationRepository,
        refreshers: Optional[Dict[str, TokenRefresher]] = None,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.repo = repo
        self.refreshers = refreshers or {}
        self.now = now
        self._credentials: Dict[Tuple[str, str], Credential] = {}

    def _needs_refresh(self, expires_at: Optional[datetime]) -> bool:
        return expires_at is not None and expires_at <= self.now() + REFRESH_MARGIN

    async def get_valid_credential(self, user_id: uuid.UUID, provider: str) -> Credential:
        key = (str(user_id), provider)
        cached = self._credentials.get(key)
        if cached and not self._needs_refresh(cached.expires_at):
            return cached

        integration = await self.repo.get_active(user_id, provider)
        if not integration:
            raise CredentialNotFound(user_id, provider)

        if self._needs_refresh(integration.token_expires_at):
            credential = await self._refresh(integration)
        else:
            access_token = decrypt_token(integration.access_token_enc)
            if not access_token:
                raise InvalidCredential(f"stored {provider} token for user {user_id} cannot be decrypted")
            credential = Credential(
                user_id=user_id,
                provider=provider,
                access_token=access_token,
                expires_at=integration.token_expires_at,
                meta=dict(integration.meta or {}),
            )

        self._credentials[key] = credential
        return credential

    async def _refresh(self, integration: Integration) -> Credential:
        provider = integration.provider
        refresher = self.refreshers.get(provider)
        refresh_token = decrypt_token(integration.refresh_token_enc)
        if refresher is None or not refresh_token:
            raise RefreshFailed(f"{provider} token expired and no refresh token is available")

        try:
            grant = await refresher(refresh_token)
        except ExternalAPIError as e:
            if e.is_rejection:
                logger.warning("token_refresh_rejected", user_id=str(integration.user_id), provider=provider, status=e.status_code)
                raise RefreshFailed(f"{provider} rejected the token refresh ({e.status_code})") from e
            raise ProviderAPIError(provider, f"token refresh unavailable: {e}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderAPIError(provider, f"token refresh unavailable: {e}") from e

        expires_at = grant.expires_at(self.now())
        await self.repo.update_tokens(
            integration,
            access_token_enc=encrypt_token(grant.access_token),
            expires_at=expires_at,
            refresh_token_enc=encrypt_token(grant.refresh_token) if grant.refresh_token else None,
        )
        logger.info("token_refreshed", user_id=str(integration.user_id), provider=provider, expires_at=str(expires_at))
        return Credential(
            user_id=integration.user_id,
            provider=provider,
            access_token=grant.access_token,
            expires_at=expires_at,
            meta=dict(integration.meta or {}),
        )
