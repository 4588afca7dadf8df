# garden_sync/schemas/integration_schema.py
from pydantic import BaseModel
from typing import List, Optional

class AnalyticsMetadata(BaseModel):
    property_id: Optional[str] = None

    @classmethod
    def from_meta(cls, meta: Optional[dict]) -> "AnalyticsMetadata":
        return cls(property_id=(meta or {}).get("property_id"))

class PaymentsMetadata(BaseModel):
    account_id: Optional[str] = None

    @classmethod
    def from_meta(cls, meta: Optional[dict]) -> "PaymentsMetadata":
        return cls(account_id=(meta or {}).get("account_id"))

class PropertySelect(BaseModel):
    property_id: str

class AnalyticsProperty(BaseModel):
    id: str
    display_name: str
    website_url: str

class AnalyticsPropertyList(BaseModel):
    properties: List[AnalyticsProperty]

class AnalyticsStatus(BaseModel):
    connected: bool = False
    property_configured: bool = False
    property_id: Optional[str] = None

class PaymentsStatus(BaseModel):
    connected: bool = False
    account_id: Optional[str] = None

class IntegrationStatus(BaseModel):
    google_analytics: AnalyticsStatus
    stripe: PaymentsStatus

class AuthUrl(BaseModel):
    auth_url: str

class ConnectResult(BaseModel):
    status: str
    provider: str
    connected_id: str
    next_step: Optional[str] = None
