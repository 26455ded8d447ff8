"""WINQER — Google REST Client.

Business Profile (accounts, locations, performance, reviews) and GA4
(Admin account summaries, Data API runReport) over bearer-token httpx calls,
plus the OAuth refresh-token exchange.
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from winqer.config import settings
from winqer.core.errors import ConfigurationError, WinqerError
from winqer.core.logging import get_logger
from winqer.models.metrics_models import (
    DailyEventCount,
    Ga4Property,
    Ga4Report,
    GbpInsights,
)

logger = get_logger("google.client")

ACCOUNT_API = "https://mybusinessaccountmanagement.googleapis.com/v1"
BUSINESS_INFO_API = "https://mybusinessbusinessinformation.googleapis.com/v1"
REVIEWS_API = "https://mybusiness.googleapis.com/v4"
PERFORMANCE_API = "https://businessprofileperformance.googleapis.com/v1"
GA4_ADMIN_API = "https://analyticsadmin.googleapis.com/v1beta"
GA4_DATA_API = "https://analyticsdata.googleapis.com/v1beta"
TOKEN_URL = "https://oauth2.googleapis.com/token"

LOCATION_READ_MASK = "name,title,storeCode,phoneNumbers,categories,metadata"

GA4_REPORT_METRICS = [
    "sessions",
    "activeUsers",
    "conversions",
    "engagementRate",
    "averageSessionDuration",
    "screenPageViews",
    "bounceRate",
]

# GBP daily metric -> GbpInsights field
GBP_DAILY_METRICS = {
    "CALL_CLICKS": "calls",
    "BUSINESS_DIRECTION_REQUESTS": "directions",
    "WEBSITE_CLICKS": "websiteClicks",
    "BUSINESS_IMPRESSIONS_DESKTOP_MAPS": "views",
    "BUSINESS_IMPRESSIONS_DESKTOP_SEARCH": "views",
    "BUSINESS_IMPRESSIONS_MOBILE_MAPS": "views",
    "BUSINESS_IMPRESSIONS_MOBILE_SEARCH": "views",
}

STAR_RATINGS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}

MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds


class GoogleAPIError(WinqerError):
    """Raised when a Google API returns an error."""

    http_status = 400

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


def clean_property_id(property_id: str) -> str:
    """Accept `properties/123` or `123`."""
    return property_id.replace("properties/", "")


def format_ga4_date(value: str) -> str:
    """YYYYMMDD -> YYYY-MM-DD."""
    return f"{value[0:4]}-{value[4:6]}-{value[6:8]}"


def _int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message", f"HTTP {resp.status_code}")
    if isinstance(body, dict) and body.get("error_description"):
        return body["error_description"]
    return str(error or f"HTTP {resp.status_code}")


class GoogleApiClient:
    """Async client for the Business Profile and GA4 REST APIs."""

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
            self._client = httpx.AsyncClient(
                timeout=30.0,
                transport=self._transport,
                headers={"Authorization": f"Bearer {self.access_token}"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "GoogleApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, Any] | None = None,
        json_body: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Make a request with retry on 429 / 5xx / transport errors."""
        client = await self._get_client()

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                resp = await client.request(method, url, params=params, json=json_body)
            except httpx.RequestError as e:
                if attempt < MAX_RETRIES:
                    wait = self.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(f"Request error: {e}. Retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise GoogleAPIError(
                    f"Connection failed after {MAX_RETRIES} retries: {e}"
                ) from e

            retryable = resp.status_code == 429 or resp.status_code >= 500
            if retryable and attempt < MAX_RETRIES:
                wait = self.retry_base_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Google API {resp.status_code}. Retrying in {wait}s (attempt {attempt}/{MAX_RETRIES})"
                )
                await asyncio.sleep(wait)
                continue

            if resp.is_error:
                message = _error_message(resp)
                logger.error(
                    f"Google API error {resp.status_code} on {url}: {message}",
                    extra={"status_code": resp.status_code, "platform": "google"},
                )
                raise GoogleAPIError(message, resp.status_code)

            return resp.json() if resp.content else {}

        raise GoogleAPIError("Max retries exhausted")

    # ── Business Profile ──

    async def get_accounts(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"{ACCOUNT_API}/accounts")
        return data.get("accounts", [])

    async def get_locations(self, account_name: Optional[str] = None) -> List[Dict[str, Any]]:
        """Locations of the given account, or of the first account."""
        if account_name is None:
            accounts = await self.get_accounts()
            if not accounts:
                logger.warning("Google API: no Business Profile accounts found")
                return []
            account_name = accounts[0]["name"]
            logger.info(f"Google API: using account {account_name}")

        data = await self._request(
            "GET",
            f"{BUSINESS_INFO_API}/{account_name}/locations",
            params={"readMask": LOCATION_READ_MASK},
        )
        return data.get("locations", [])

    async def get_reviews(self, location_name: str) -> Dict[str, Any]:
        """Reviews for `accounts/{a}/locations/{l}` with rating summary."""
        data = await self._request("GET", f"{REVIEWS_API}/{location_name}/reviews")
        reviews = data.get("reviews", [])
        average = data.get("averageRating")
        if average is None and reviews:
            stars = [STAR_RATINGS.get(r.get("starRating", ""), 0) for r in reviews]
            average = sum(stars) / len(stars)
        return {
            "reviews": reviews,
            "averageRating": round(_float(average), 1),
            "totalReviewCount": _int(data.get("totalReviewCount", len(reviews))),
        }

    async def reply_to_review(self, review_name: str, reply_text: str) -> Dict[str, Any]:
        return await self._request(
            "PUT", f"{REVIEWS_API}/{review_name}/reply", json_body={"comment": reply_text}
        )

    async def get_insights(
        self, location_name: str, start_date: date, end_date: date
    ) -> GbpInsights:
        """Summed performance metrics plus the review summary."""
        location_id = "locations/" + location_name.rsplit("locations/", 1)[-1]
        params: List[tuple[str, str]] = [
            ("dailyMetrics", metric) for metric in GBP_DAILY_METRICS
        ]
        params += [
            ("dailyRange.start_date.year", str(start_date.year)),
            ("dailyRange.start_date.month", str(start_date.month)),
            ("dailyRange.start_date.day", str(start_date.day)),
            ("dailyRange.end_date.year", str(end_date.year)),
            ("dailyRange.end_date.month", str(end_date.month)),
            ("dailyRange.end_date.day", str(end_date.day)),
        ]
        data = await self._request(
            "GET",
            f"{PERFORMANCE_API}/{location_id}:fetchMultiDailyMetricsTimeSeries",
            params=params,
        )

        totals: Dict[str, int] = {"calls": 0, "directions": 0, "websiteClicks": 0, "views": 0}
        for multi in data.get("multiDailyMetricTimeSeries", []):
            for series in multi.get("dailyMetricTimeSeries", []):
                field = GBP_DAILY_METRICS.get(series.get("dailyMetric", ""))
                if field is None:
                    continue
                for point in series.get("timeSeries", {}).get("datedValues", []):
                    totals[field] += _int(point.get("value"))

        insights = GbpInsights(**totals)
        # Review summaries need the account-scoped name
        if location_name.startswith("accounts/"):
            try:
                summary = await self.get_reviews(location_name)
            except GoogleAPIError as e:
                logger.warning(f"Review summary unavailable for {location_name}: {e}")
            else:
                insights.rating = summary["averageRating"]
                insights.reviewCount = summary["totalReviewCount"]
        return insights

    # ── GA4 ──

    async def get_ga4_properties(self) -> List[Ga4Property]:
        data = await self._request("GET", f"{GA4_ADMIN_API}/accountSummaries")
        properties: List[Ga4Property] = []
        for account in data.get("accountSummaries", []):
            for prop in account.get("propertySummaries", []):
                properties.append(
                    Ga4Property(
                        name=prop.get("property", ""),
                        displayName=prop.get("displayName", ""),
                        account=account.get("displayName", ""),
                    )
                )
        return properties

    async def _run_report(self, property_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{GA4_DATA_API}/properties/{clean_property_id(property_id)}:runReport"
        return await self._request("POST", url, json_body=body)

    async def get_ga4_report(
        self, property_id: str, start_date: str, end_date: str
    ) -> Ga4Report:
        data = await self._run_report(
            property_id,
            {
                "dateRanges": [{"startDate": start_date, "endDate": end_date}],
                "metrics": [{"name": name} for name in GA4_REPORT_METRICS],
            },
        )
        rows = data.get("rows") or []
        if not rows:
            return Ga4Report()

        values = [v.get("value") for v in rows[0].get("metricValues", [])]
        values += [None] * (len(GA4_REPORT_METRICS) - len(values))
        return Ga4Report(
            sessions=_int(values[0]),
            activeUsers=_int(values[1]),
            conversions=_int(values[2]),
            engagementRate=_float(values[3]),
            averageSessionDuration=_float(values[4]),
            screenPageViews=_int(values[5]),
            bounceRate=_float(values[6]),
        )

    def _event_body(
        self,
        event: str,
        match_type: str,
        start_date: str,
        end_date: str,
        daily: bool,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "dateRanges": [{"startDate": start_date, "endDate": end_date}],
            "metrics": [{"name": "eventCount"}],
            "dimensionFilter": {
                "filter": {
                    "fieldName": "eventName",
                    "stringFilter": {"value": event, "matchType": match_type},
                }
            },
        }
        if daily:
            body["dimensions"] = [{"name": "date"}]
            body["orderBys"] = [{"dimension": {"dimensionName": "date"}}]
        elif match_type == "EXACT":
            body["dimensions"] = [{"name": "eventName"}]
        return body

    async def _event_total(
        self, property_id: str, event: str, match_type: str, start_date: str, end_date: str
    ) -> int:
        logger.info(f"GA4 event count ({match_type}) for: {event}")
        data = await self._run_report(
            property_id, self._event_body(event, match_type, start_date, end_date, False)
        )
        rows = data.get("rows") or []
        if not rows:
            return 0
        return _int(rows[0]["metricValues"][0].get("value"))

    async def _event_daily(
        self, property_id: str, event: str, match_type: str, start_date: str, end_date: str
    ) -> List[DailyEventCount]:
        data = await self._run_report(
            property_id, self._event_body(event, match_type, start_date, end_date, True)
        )
        return [
            DailyEventCount(
                date=format_ga4_date(row["dimensionValues"][0]["value"]),
                count=_int(row["metricValues"][0].get("value")),
            )
            for row in data.get("rows") or []
        ]

    async def get_ga4_event_count(
        self, property_id: str, event_name: str, start_date: str, end_date: str
    ) -> int:
        return await self._event_total(property_id, event_name, "EXACT", start_date, end_date)

    async def get_ga4_events_containing(
        self, property_id: str, search: str, start_date: str, end_date: str
    ) -> int:
        return await self._event_total(property_id, search, "CONTAINS", start_date, end_date)

    async def get_daily_ga4_event_count(
        self, property_id: str, event_name: str, start_date: str, end_date: str
    ) -> List[DailyEventCount]:
        return await self._event_daily(property_id, event_name, "EXACT", start_date, end_date)

    async def get_daily_ga4_events_containing(
        self, property_id: str, search: str, start_date: str, end_date: str
    ) -> List[DailyEventCount]:
        return await self._event_daily(property_id, search, "CONTAINS", start_date, end_date)


async def refresh_google_access_token(
    refresh_token: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """Exchange a refresh token for a fresh access token.

    Returns `access_token`, `expires_in` and, when Google rotates it,
    `refresh_token`.
    """
    if not settings.google_client_id or not settings.google_client_secret:
        raise ConfigurationError("Missing Google Client ID or Secret")

    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        try:
            resp = await client.post(
                TOKEN_URL,
                data={
                    "client_id": settings.google_client_id,
                    "client_secret": settings.google_client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.RequestError as e:
            raise GoogleAPIError(f"Failed to refresh token: {e}") from e

    if resp.is_error:
        message = _error_message(resp)
        logger.error(f"Google token refresh failed: {message}")
        raise GoogleAPIError(f"Failed to refresh token: {message}", resp.status_code)

    data = resp.json()
    return {
        "access_token": data.get("access_token"),
        "expires_in": data.get("expires_in"),
        "refresh_token": data.get("refresh_token"),
    }
