# garden_sync/infrastructure/http_client.py
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import httpx

PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))


class ExternalAPIError(Exception):
    def __init__(self, status_code: int, body: str, url: str):
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(f"External API error ({status_code}) from {url}: {body}")

    @property
    def is_rejection(self) -> bool:
        """4xx: the provider understood the call and refused it."""
        return 400 <= self.status_code < 500


@dataclass
class TokenGrant:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None

    @classmethod
    def from_token_response(cls, data: dict, default_expires_in: int = 3600) -> "TokenGrant":
        access_token = data.get("access_token")
        if not access_token:
            raise ValueError("token response carries no access_token")
        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in") or default_expires_in),
            scope=data.get("scope"),
        )

    def expires_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Absolute expiry; `now` is the moment the grant was received."""
        if self.expires_in is None:
            return None
        return (now or datetime.utcnow()) + timedelta(seconds=self.expires_in)


class ExternalAPIClient:
    """
    Thin JSON-over-HTTP client shared by the provider clients.
    Every call is bounded by `timeout`; a transport can be injected (httpx.MockTransport in tests).
    """

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout if timeout is not None else PROVIDER_TIMEOUT_SECONDS
        self.transport = transport

    async def post(self, url, headers=None, json=None, data=None, params=None):
        return await self._request("POST", url, headers=headers, json=json, data=data, params=params)

    async def get(self, url, headers=None, params=None):
        return await self._request("GET", url, headers=headers, params=params)

    async def _request(self, method: str, url: str, **kwargs):
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            r = await client.request(method, url, **kwargs)

        if r.status_code >= 400:
            raise ExternalAPIError(r.status_code, r.text, url)
        return r.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
