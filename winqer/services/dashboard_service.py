"""WINQER — Store Dashboard Data.

Fetches Meta and Google data for one store and shapes it for the dashboard.
A failing source is logged and contributes zeros; only a missing Meta token
fails the whole request.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from sqlmodel import Session

from winqer.analyzer.ad_scoring import analyze_ad_performance
from winqer.analyzer.chart_data import build_chart_data, resolve_chart_periods
from winqer.analyzer.store_metrics import (
    RESERVATION_EVENT_SEARCH,
    compute_store_metrics,
    merge_daily,
    resolve_date_range,
    sum_daily,
)
from winqer.config import settings
from winqer.connectors.google.client import (
    GoogleAPIError,
    GoogleApiClient,
    refresh_google_access_token,
)
from winqer.connectors.meta.client import MetaAPIError, MetaClient, select_ad_account
from winqer.core.errors import ValidationError
from winqer.core.logging import get_logger
from winqer.models.cache_models import CachePlatform
from winqer.models.metrics_models import (
    Ad,
    ChartData,
    DailyAdInsight,
    DailyEventCount,
    DateRange,
    Ga4Report,
    ScoredAd,
)
from winqer.models.store_models import Store
from winqer.services.analytics_cache import read_through
from winqer.services.api_keys import resolve_meta_token

logger = get_logger("services.dashboard")

T = TypeVar("T")

META_TOKEN_MISSING = "Meta Token not found"
STORE_META_TOKEN_MISSING = "Meta Access Token not found for this store"


class DashboardService:
    """Per-request dashboard reads. Client classes are injectable for tests."""

    def __init__(
        self,
        session: Session,
        meta_client_cls: Callable[[str], MetaClient] = MetaClient,
        google_client_cls: Callable[[str], GoogleApiClient] = GoogleApiClient,
    ):
        self.session = session
        self.meta_client_cls = meta_client_cls
        self.google_client_cls = google_client_cls

    # ── Helpers ──

    async def _soft(self, label: str, coro: Awaitable[T], default: T, store: Store) -> T:
        """Await a source call; upstream errors are logged and replaced."""
        try:
            return await coro
        except (MetaAPIError, GoogleAPIError) as e:
            logger.error(
                f"{label} failed: {e.message}",
                extra={"store_id": store.id, "status_code": getattr(e, "status_code", 0)},
            )
            return default

    def _meta_client(self, user_id: str, store: Store) -> MetaClient:
        token = resolve_meta_token(self.session, user_id, store)
        if not token:
            logger.warning("No Meta token", extra={"store_id": store.id, "user_id": user_id})
            raise ValidationError(META_TOKEN_MISSING)
        return self.meta_client_cls(token)

    async def _resolve_account(self, meta: MetaClient, store: Store) -> Optional[str]:
        if store.meta_ad_account_id:
            return store.meta_ad_account_id
        accounts = await meta.get_ad_accounts()
        account = select_ad_account(accounts)
        return account["id"] if account else None

    async def _meta_daily(
        self, meta: MetaClient, store: Store, account_id: str, start: str, end: str
    ) -> List[DailyAdInsight]:
        campaign_id = store.meta_campaign_id

        async def fetch() -> List[Dict[str, Any]]:
            rows = await meta.get_daily_ads_insights(account_id, start, end, campaign_id)
            return [r.model_dump() for r in rows]

        rows = await read_through(
            self.session,
            store.id,
            CachePlatform.META,
            start,
            end,
            fetch,
            scope=f"{account_id}:{campaign_id or 'none'}",
        )
        return [DailyAdInsight(**r) for r in rows]

    async def _ga4_daily(
        self, google: GoogleApiClient, store: Store, event: str, start: str, end: str
    ) -> List[DailyEventCount]:
        async def fetch() -> List[Dict[str, Any]]:
            rows = await google.get_daily_ga4_event_count(
                store.ga4_property_id, event, start, end
            )
            return [r.model_dump() for r in rows]

        rows = await read_through(
            self.session,
            store.id,
            CachePlatform.GA4,
            start,
            end,
            fetch,
            scope=f"{store.ga4_property_id}:{event}",
        )
        return [DailyEventCount(**r) for r in rows]

    # ── Headline metrics ──

    async def get_store_metrics(
        self,
        user_id: str,
        store: Store,
        google_token: Optional[str],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        start, end = resolve_date_range(start_date, end_date)
        meta = self._meta_client(user_id, store)

        meta_daily: List[DailyAdInsight] = []
        try:
            account_id = await self._soft("Meta ad accounts", self._resolve_account(meta, store), None, store)
            if account_id:
                meta_daily = await self._soft(
                    "Meta daily insights",
                    self._meta_daily(meta, store, account_id, start, end),
                    [],
                    store,
                )
        finally:
            await meta.close()

        cv_count = 0
        ga4_daily: List[DailyEventCount] = []
        if google_token and store.ga4_property_id:
            async with self.google_client_cls(google_token) as google:
                cv_count, ga4_daily = await asyncio.gather(
                    self._soft(
                        "GA4 reservation events",
                        google.get_ga4_events_containing(
                            store.ga4_property_id, RESERVATION_EVENT_SEARCH, start, end
                        ),
                        0,
                        store,
                    ),
                    self._soft(
                        "GA4 daily reservation events",
                        google.get_daily_ga4_events_containing(
                            store.ga4_property_id, RESERVATION_EVENT_SEARCH, start, end
                        ),
                        [],
                        store,
                    ),
                )

        metrics = compute_store_metrics(sum_daily(meta_daily), cv_count)
        logger.info(
            f"Store metrics {start}..{end}: spend={metrics.spend} cv={metrics.cvCount}",
            extra={"store_id": store.id, "user_id": user_id},
        )
        return {
            "metrics": metrics.model_dump(),
            "daily": [d.model_dump() for d in merge_daily(meta_daily, ga4_daily)],
            "dateRange": DateRange(start_date=start, end_date=end).model_dump(by_alias=True),
        }

    # ── Charts ──

    async def get_store_chart_data(
        self,
        user_id: str,
        store: Store,
        google_token: Optional[str],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> ChartData:
        (cur_start, cur_end), (prev_start, prev_end) = resolve_chart_periods(start_date, end_date)
        campaign_id = store.meta_campaign_id

        meta_daily: List[DailyAdInsight] = []
        prev_meta_daily: List[DailyAdInsight] = []
        regions = []
        ads: List[Ad] = []
        token = resolve_meta_token(self.session, user_id, store)
        if not token:
            # GA4 series are still charted with Meta at zero
            logger.warning("No Meta token, charting GA4 only", extra={"store_id": store.id, "user_id": user_id})
        else:
            meta = self.meta_client_cls(token)
            try:
                account_id = await self._soft("Meta ad accounts", self._resolve_account(meta, store), None, store)
                if account_id:
                    meta_daily, regions, ads, prev_meta_daily = await asyncio.gather(
                        self._soft("Meta daily insights", self._meta_daily(meta, store, account_id, cur_start, cur_end), [], store),
                        self._soft("Meta region insights", meta.get_region_insights(account_id, cur_start, cur_end, campaign_id), [], store),
                        self._soft("Meta ads", meta.get_ads(account_id), [], store),
                        self._soft("Meta previous daily insights", self._meta_daily(meta, store, account_id, prev_start, prev_end), [], store),
                    )
            finally:
                await meta.close()

        if campaign_id and campaign_id != "none":
            ads = [ad for ad in ads if ad.campaign_id == campaign_id]

        ga4_daily: List[DailyEventCount] = []
        prev_ga4_daily: List[DailyEventCount] = []
        report = Ga4Report()
        if google_token and store.ga4_property_id:
            event = store.cv_event_name or settings.default_cv_event_name
            async with self.google_client_cls(google_token) as google:
                ga4_daily, prev_ga4_daily, report = await asyncio.gather(
                    self._soft("GA4 daily events", self._ga4_daily(google, store, event, cur_start, cur_end), [], store),
                    self._soft("GA4 previous daily events", self._ga4_daily(google, store, event, prev_start, prev_end), [], store),
                    self._soft("GA4 report", google.get_ga4_report(store.ga4_property_id, cur_start, cur_end), Ga4Report(), store),
                )

        return build_chart_data(
            meta_daily,
            prev_meta_daily,
            ga4_daily,
            prev_ga4_daily,
            regions,
            ads,
            sessions=report.sessions,
        )

    # ── Integrations ──

    async def get_store_google_data(self, store: Store) -> Dict[str, Any]:
        """GBP locations and GA4 properties reachable with the store's token."""
        if not store.google_refresh_token:
            raise ValidationError("No Google Refresh Token found for this store")

        tokens = await refresh_google_access_token(store.google_refresh_token)
        if not tokens.get("access_token"):
            raise ValidationError("Failed to refresh Google Access Token")

        async with self.google_client_cls(tokens["access_token"]) as google:
            locations, properties = await asyncio.gather(
                google.get_locations(), google.get_ga4_properties()
            )
        return {
            "locations": locations,
            "properties": [p.model_dump() for p in properties],
        }

    def _store_meta_client(self, store: Store) -> MetaClient:
        if not store.meta_access_token:
            raise ValidationError(STORE_META_TOKEN_MISSING)
        return self.meta_client_cls(store.meta_access_token)

    async def get_store_meta_ad_accounts(self, store: Store) -> List[Dict[str, Any]]:
        async with self._store_meta_client(store) as meta:
            return await meta.get_ad_accounts()

    async def get_store_meta_campaigns(self, store: Store, ad_account_id: str) -> List[Dict[str, Any]]:
        async with self._store_meta_client(store) as meta:
            return await meta.get_campaigns(ad_account_id)

    async def score_store_ads(self, user_id: str, store: Store) -> List[ScoredAd]:
        """Ads of the store's account (campaign-filtered) with winner scoring."""
        meta = self._meta_client(user_id, store)
        async with meta:
            account_id = await self._resolve_account(meta, store)
            if not account_id:
                return []
            ads = await meta.get_ads(account_id)

        campaign_id = store.meta_campaign_id
        if campaign_id and campaign_id != "none":
            ads = [ad for ad in ads if ad.campaign_id == campaign_id]
        return [
            ScoredAd(**ad.model_dump(), analysis=analyze_ad_performance(ad))
            for ad in ads
        ]
