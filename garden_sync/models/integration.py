# garden_sync/models/integration.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
import uuid
from sqlalchemy import String, JSON, UniqueConstraint

PROVIDER_ANALYTICS = "google_analytics"
PROVIDER_PAYMENTS = "stripe"
SUPPORTED_PROVIDERS = (PROVIDER_ANALYTICS, PROVIDER_PAYMENTS)

class Integration(SQLModel, table=True):
    """
    Credentials for one external metrics provider of one user.
    Tokens are stored Fernet-encrypted; disconnecting only clears is_active.
    """

    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_integration_user_provider"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    provider: str = Field(sa_column=Column(String, index=True, nullable=False))
    access_token_enc: str
    refresh_token_enc: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    scope: Optional[str] = None
    meta: Optional[dict] = Field(sa_column=Column(JSON), default_factory=dict)  # property id, account id
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
