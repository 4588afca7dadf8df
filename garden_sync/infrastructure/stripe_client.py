# garden_sync/infrastructure/stripe_client.py
import os
from dataclasses import dataclass
from typing import List, Optional

import httpx
import structlog

from garden_sync.infrastructure.http_client import ExternalAPIClient, bearer

logger = structlog.get_logger(__name__)

STRIPE_CLIENT_ID = os.getenv("STRIPE_CLIENT_ID")
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_REDIRECT_URI = os.getenv("STRIPE_REDIRECT_URI")
STRIPE_MAX_PAGES = int(os.getenv("STRIPE_MAX_PAGES", "10"))

STRIPE_AUTHORIZE_URL = "https://connect.stripe.com/oauth/authorize"
STRIPE_TOKEN_URL = "https://connect.stripe.com/oauth/token"
STRIPE_DEAUTHORIZE_URL = "https://connect.stripe.com/oauth/deauthorize"
STRIPE_API_URL = "https://api.stripe.com/v1"
STRIPE_SCOPE = "read_only"
CHARGES_PAGE_SIZE = 100


class StripeNotConfigured(Exception):
    pass


@dataclass
class StripeGrant:
    access_token: str
    stripe_user_id: str
    scope: Optional[str] = None


class StripeClient:
    def __init__(
        self,
        client_id: Optional[str] = None,
        secret_key: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        max_pages: Optional[int] = None,
        http: Optional[ExternalAPIClient] = None,
    ):
        self.client_id = client_id or STRIPE_CLIENT_ID
        self.secret_key = secret_key or STRIPE_SECRET_KEY
        self.redirect_uri = redirect_uri or STRIPE_REDIRECT_URI
        self.max_pages = max_pages or STRIPE_MAX_PAGES
        self.http = http or ExternalAPIClient()

    def _require_connect_config(self) -> None:
        if not all([self.client_id, self.secret_key, self.redirect_uri]):
            raise StripeNotConfigured("Stripe Connect not configured")

    def authorization_url(self, state: str) -> str:
        self._require_connect_config()
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": STRIPE_SCOPE,
            "redirect_uri": self.redirect_uri,
            "state": state,
        }
        return str(httpx.URL(STRIPE_AUTHORIZE_URL, params=params))

    async def exchange_code(self, code: str) -> StripeGrant:
        self._require_connect_config()
        data = await self.http.post(
            STRIPE_TOKEN_URL,
            data={"grant_type": "authorization_code", "code": code, "client_secret": self.secret_key},
        )
        if not data.get("access_token") or not data.get("stripe_user_id"):
            raise ValueError("Stripe token response is missing access_token or stripe_user_id")
        return StripeGrant(
            access_token=data["access_token"],
            stripe_user_id=data["stripe_user_id"],
            scope=data.get("scope"),
        )

    async def deauthorize(self, stripe_user_id: str) -> None:
        self._require_connect_config()
        await self.http.post(
            STRIPE_DEAUTHORIZE_URL,
            headers=bearer(self.secret_key),
            data={"client_id": self.client_id, "stripe_user_id": stripe_user_id},
        )

    async def list_charges(self, access_token: str, created_gte: int, created_lte: int) -> List[dict]:
        """
        Charges created inside [created_gte, created_lte] (unix seconds, inclusive).
        Follows `has_more` pagination for at most `max_pages` pages of 100.
        """
        charges: List[dict] = []
        params = {
            "created[gte]": created_gte,
            "created[lte]": created_lte,
            "limit": CHARGES_PAGE_SIZE,
        }
        for page in range(self.max_pages):
            data = await self.http.get(f"{STRIPE_API_URL}/charges", headers=bearer(access_token), params=params)
            batch = data.get("data") or []
            charges.extend(batch)
            if not data.get("has_more") or not batch:
                break
            params = {**params, "starting_after": batch[-1]["id"]}
        else:
            logger.warning("stripe_charges_page_cap_reached", pages=self.max_pages, charges=len(charges))
        return charges
