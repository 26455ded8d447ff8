"""WINQER — Meta Graph API Client.

Handles token auth, retry logic, rate limiting, and pagination for the
ad account, campaign, ad and insight reads the dashboard needs.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx

from winqer.config import settings
from winqer.connectors.meta.transformer import (
    transform_ad,
    transform_daily_rows,
    transform_region_rows,
)
from winqer.core.errors import WinqerError
from winqer.core.logging import get_logger
from winqer.models.metrics_models import Ad, DailyAdInsight, RegionInsight

logger = get_logger("meta.client")

META_BASE = f"{settings.meta_base_url}/{settings.meta_api_version}"
MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds

ACCOUNT_FIELDS = "id,name,currency,account_status"
CAMPAIGN_FIELDS = "id,name,objective,status,created_time"
AD_FIELDS = (
    "id,name,status,campaign{id,name,objective},"
    "creative{id,title,body,image_url,thumbnail_url},"
    "insights.date_preset(last_90d){impressions,clicks,spend,cpc,cpm,ctr,"
    "frequency,cost_per_action_type,actions}"
)
INSIGHT_FIELDS = "spend,clicks,impressions,actions"


class MetaAPIError(WinqerError):
    """Raised when the Graph API returns an error."""

    http_status = 400

    def __init__(self, message: str, status_code: int = 0, error_code: int = 0):
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


def normalize_account_id(account_id: str) -> str:
    """Return the id with the `act_` prefix Graph expects."""
    return account_id if account_id.startswith("act_") else f"act_{account_id}"


def select_ad_account(
    accounts: List[Dict[str, Any]], preferred_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Pick the store's account, then the configured default, then the first."""
    if not accounts:
        return None
    for candidate in (preferred_id, settings.meta_default_ad_account_id):
        if not candidate:
            continue
        wanted = normalize_account_id(candidate)
        for account in accounts:
            if normalize_account_id(str(account.get("id", ""))) == wanted:
                return account
    return accounts[0]


class MetaClient:
    """Async HTTP client for the Meta Graph API."""

    retry_base_delay: float = RETRY_BASE_DELAY

    def __init__(
        self,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30.0, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "MetaClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Make a request with retry + rate-limit handling."""
        params = dict(params or {})
        params["access_token"] = self.access_token

        client = await self._get_client()

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                resp = await client.request(method, url, params=params)

                if resp.status_code == 429 and attempt < MAX_RETRIES:
                    wait = self.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"Rate limited (429). Retrying in {wait}s (attempt {attempt}/{MAX_RETRIES})"
                    )
                    await asyncio.sleep(wait)
                    continue

                resp.raise_for_status()
                body = resp.json()
                # Graph sometimes reports errors with a 200
                if isinstance(body, dict) and body.get("error"):
                    err = body["error"]
                    raise MetaAPIError(
                        err.get("message", "Meta API error"),
                        resp.status_code,
                        err.get("code", 0),
                    )
                return body

            except httpx.HTTPStatusError as e:
                body = (
                    e.response.json()
                    if e.response.headers.get("content-type", "").startswith(
                        "application/json"
                    )
                    else {}
                )
                error_msg = body.get("error", {}).get("message", str(e))
                error_code = body.get("error", {}).get("code", 0)

                if attempt < MAX_RETRIES and e.response.status_code >= 500:
                    wait = self.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"Server error {e.response.status_code}. Retrying in {wait}s"
                    )
                    await asyncio.sleep(wait)
                    continue

                raise MetaAPIError(error_msg, e.response.status_code, error_code) from e

            except httpx.RequestError as e:
                if attempt < MAX_RETRIES:
                    wait = self.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(f"Request error: {e}. Retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise MetaAPIError(
                    f"Connection failed after {MAX_RETRIES} retries: {e}"
                ) from e

        raise MetaAPIError("Max retries exhausted")

    # ── Pagination ──

    async def _paginated_get(
        self,
        url: str,
        params: Dict[str, Any] | None = None,
        max_pages: int = 50,
    ) -> List[Dict[str, Any]]:
        """Fetch all pages of a paginated endpoint."""
        all_data: List[Dict[str, Any]] = []
        params = params or {}
        current_url = url

        for page in range(max_pages):
            # `next` links already carry the query string
            result = await self._request(
                "GET", current_url, params if page == 0 else None
            )
            all_data.extend(result.get("data", []))

            next_url = result.get("paging", {}).get("next")
            if not next_url:
                break
            current_url = next_url

        logger.info(f"Fetched {len(all_data)} records from {url}")
        return all_data

    # ── Token Validation ──

    async def validate_token(self) -> Dict[str, Any]:
        """Check if the access token is valid and return metadata."""
        url = f"{META_BASE}/debug_token"
        params = {"input_token": self.access_token}
        result = await self._request("GET", url, params)
        token_data = result.get("data", {})
        return {
            "valid": token_data.get("is_valid", False),
            "expires_at": token_data.get("expires_at", 0),
            "scopes": token_data.get("scopes", []),
            "app_id": token_data.get("app_id", ""),
        }

    # ── Accounts & Campaigns ──

    async def get_ad_accounts(self) -> List[Dict[str, Any]]:
        return await self._paginated_get(
            f"{META_BASE}/me/adaccounts", {"fields": ACCOUNT_FIELDS}
        )

    async def get_campaigns(self, ad_account_id: str) -> List[Dict[str, Any]]:
        logger.info(f"Fetching campaigns for account: {ad_account_id}")
        return await self._paginated_get(
            f"{META_BASE}/{normalize_account_id(ad_account_id)}/campaigns",
            {"fields": CAMPAIGN_FIELDS},
        )

    async def get_ads(self, ad_account_id: str) -> List[Ad]:
        """Ads with campaign, creative and last-90-day insights."""
        raw = await self._paginated_get(
            f"{META_BASE}/{normalize_account_id(ad_account_id)}/ads",
            {"fields": AD_FIELDS},
        )
        return [transform_ad(row) for row in raw]

    # ── Insights ──

    def _insights_request(
        self,
        ad_account_id: str,
        start_date: str,
        end_date: str,
        campaign_id: Optional[str],
    ) -> tuple[str, Dict[str, Any]]:
        params: Dict[str, Any] = {
            "fields": INSIGHT_FIELDS,
            "time_range": json.dumps({"since": start_date, "until": end_date}),
        }
        if campaign_id and campaign_id != "none":
            return f"{META_BASE}/{campaign_id}/insights", params
        params["level"] = "account"
        return f"{META_BASE}/{normalize_account_id(ad_account_id)}/insights", params

    async def get_daily_ads_insights(
        self,
        ad_account_id: str,
        start_date: str,
        end_date: str,
        campaign_id: Optional[str] = None,
    ) -> List[DailyAdInsight]:
        """Per-day delivery for the account, or for one campaign."""
        url, params = self._insights_request(
            ad_account_id, start_date, end_date, campaign_id
        )
        params["time_increment"] = "1"
        rows = await self._paginated_get(url, params)
        return transform_daily_rows(rows)

    async def get_region_insights(
        self,
        ad_account_id: str,
        start_date: str,
        end_date: str,
        campaign_id: Optional[str] = None,
    ) -> List[RegionInsight]:
        """Period totals broken down by region."""
        url, params = self._insights_request(
            ad_account_id, start_date, end_date, campaign_id
        )
        params["breakdowns"] = "region"
        rows = await self._paginated_get(url, params)
        return transform_region_rows(rows)
