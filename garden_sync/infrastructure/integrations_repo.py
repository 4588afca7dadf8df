# garden_sync/infrastructure/integrations_repo.py
from typing import Dict, List, Optional, Set
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from garden_sync.models.integration import Integration
import uuid
from datetime import datetime

class IntegrationRepository:
    """
    Repository for Integration entity (the credential store).
    All methods are async and expect an AsyncSession to be injected from the outside.
    Token writes commit immediately so a refreshed token survives a later failure in the same sync.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: uuid.UUID, provider: str) -> Optional[Integration]:
        q = select(Integration).where(
            Integration.user_id == user_id,
            Integration.provider == provider
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_active(self, user_id: uuid.UUID, provider: str) -> Optional[Integration]:
        q = select(Integration).where(
            Integration.user_id == user_id,
            Integration.provider == provider,
            Integration.is_active.is_(True)
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_active_by_user(self, user_id: uuid.UUID) -> List[Integration]:
        q = select(Integration).where(Integration.user_id == user_id, Integration.is_active.is_(True))
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def active_providers_by_user(self) -> Dict[uuid.UUID, Set[str]]:
        """
        Every user with at least one active integration, mapped to the providers that are active.
        """
        q = select(Integration.user_id, Integration.provider).where(Integration.is_active.is_(True))
        res = await self.session.execute(q)
        grouped: Dict[uuid.UUID, Set[str]] = {}
        for user_id, provider in res.all():
            grouped.setdefault(user_id, set()).add(provider)
        return grouped

    async def upsert(
        self,
        user_id: uuid.UUID,
        provider: str,
        access_token_enc: str,
        refresh_token_enc: Optional[str],
        expires_at: Optional[datetime],
        scope: Optional[str] = None,
        meta: Optional[dict] = None
    ) -> Integration:
        """
        Create the integration on first authorization, or overwrite and reactivate it on re-authorization.
        """
        existing = await self.get(user_id, provider)
        if existing is None:
            existing = Integration(user_id=user_id, provider=provider, access_token_enc=access_token_enc)
        existing.access_token_enc = access_token_enc
        existing.refresh_token_enc = refresh_token_enc
        existing.token_expires_at = expires_at
        existing.scope = scope
        existing.meta = meta or {}
        existing.is_active = True
        existing.updated_at = datetime.utcnow()
        self.session.add(existing)
        await self.session.commit()
        await self.session.refresh(existing)
        return existing

    async def update_tokens(
        self,
        integration: Integration,
        access_token_enc: str,
        expires_at: Optional[datetime],
        refresh_token_enc: Optional[str] = None
    ) -> Integration:
        """
        Store a refreshed access token. The refresh token is only replaced when the provider rotated it.
        """
        integration.access_token_enc = access_token_enc
        integration.token_expires_at = expires_at
        if refresh_token_enc is not None:
            integration.refresh_token_enc = refresh_token_enc
        integration.updated_at = datetime.utcnow()
        self.session.add(integration)
        await self.session.commit()
        await self.session.refresh(integration)
        return integration

    async def update_meta(self, integration: Integration, meta: dict) -> Integration:
        integration.meta = meta
        integration.updated_at = datetime.utcnow()
        self.session.add(integration)
        await self.session.commit()
        await self.session.refresh(integration)
        return integration

    async def deactivate(self, integration: Integration) -> Integration:
        integration.is_active = False
        integration.updated_at = datetime.utcnow()
        self.session.add(integration)
        await self.session.commit()
        await self.session.refresh(integration)
        return integration
