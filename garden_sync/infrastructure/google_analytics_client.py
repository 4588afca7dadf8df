# garden_sync/infrastructure/google_analytics_client.py
import os
from datetime import date
from typing import List, Optional

import httpx
import structlog

from garden_sync.infrastructure.http_client import ExternalAPIClient, ExternalAPIError, TokenGrant, bearer

logger = structlog.get_logger(__name__)

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
ANALYTICS_DATA_URL = "https://analyticsdata.googleapis.com/v1beta"
ANALYTICS_ADMIN_URL = "https://analyticsadmin.googleapis.com/v1beta"
ANALYTICS_SCOPE = "https://www.googleapis.com/auth/analytics.readonly"


class GoogleAnalyticsNotConfigured(Exception):
    pass


class GoogleAnalyticsClient:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        http: Optional[ExternalAPIClient] = None,
    ):
        self.client_id = client_id or GOOGLE_CLIENT_ID
        self.client_secret = client_secret or GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or GOOGLE_REDIRECT_URI
        self.http = http or ExternalAPIClient()

    def _require_oauth_config(self) -> None:
        if not all([self.client_id, self.client_secret, self.redirect_uri]):
            raise GoogleAnalyticsNotConfigured("Google OAuth not configured")

    def authorization_url(self, state: str) -> str:
        self._require_oauth_config()
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": ANALYTICS_SCOPE,
            "access_type": "offline",
            "prompt": "consent",  # forces a refresh token on every consent
            "state": state,
        }
        return str(httpx.URL(GOOGLE_AUTH_URL, params=params))

    async def exchange_code(self, code: str) -> TokenGrant:
        self._require_oauth_config()
        data = await self.http.post(
            GOOGLE_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
            },
        )
        return TokenGrant.from_token_response(data)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        self._require_oauth_config()
        data = await self.http.post(
            GOOGLE_TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        return TokenGrant.from_token_response(data)

    async def run_sessions_report(self, access_token: str, property_id: str, day: date) -> int:
        """Sessions of one property for one day, 0 when the report has no rows."""
        day_str = day.isoformat()
        body = {
            "dateRanges": [{"startDate": day_str, "endDate": day_str}],
            "metrics": [{"name": "sessions"}],
        }
        data = await self.http.post(
            f"{ANALYTICS_DATA_URL}/properties/{property_id}:runReport",
            headers=bearer(access_token),
            json=body,
        )
        rows = data.get("rows") or []
        if not rows:
            return 0
        value = rows[0]["metricValues"][0]["value"]
        return int(value) if value else 0

    async def list_properties(self, access_token: str) -> List[dict]:
        accounts = await self.http.get(f"{ANALYTICS_ADMIN_URL}/accounts", headers=bearer(access_token))

        properties = []
        for account in accounts.get("accounts") or []:
            name = account.get("name")
            try:
                res = await self.http.get(
                    f"{ANALYTICS_ADMIN_URL}/properties",
                    headers=bearer(access_token),
                    params={"filter": f"parent:{name}"},
                )
            except (ExternalAPIError, httpx.HTTPError) as e:
                # one broken account must not hide the others
                logger.warning("ga_list_properties_account_failed", account=name, error=str(e))
                continue
            properties.extend(res.get("properties") or [])

        return [
            {
                "id": (p.get("name") or "").split("/")[-1],
                "display_name": p.get("displayName") or "",
                "website_url": p.get("websiteUrl") or "",
            }
            for p in properties
        ]
