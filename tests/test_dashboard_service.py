"""Tests for DashboardService and AnalysisService with fake platform clients."""

import pytest

from conftest import OWNER_ID
from winqer.ai.base_provider import AIProvider
from winqer.connectors.meta.client import MetaAPIError
from winqer.core.errors import ValidationError
from winqer.models.metrics_models import (
    Ad,
    AdInsights,
    DailyAdInsight,
    DailyEventCount,
    Ga4Report,
)
from winqer.models.store_models import Store
from winqer.services import analysis_service
from winqer.services.analysis_service import (
    AnalysisContext,
    AnalysisService,
    derive_analysis_metrics,
    sum_ads,
)
from winqer.services.dashboard_service import DashboardService

ADS = [
    Ad(
        id="a1",
        name="winner",
        campaign_id="cmp-1",
        insights=AdInsights(spend=3000, impressions=10000, clicks=250, ctr=2.5, cpc=12, lp_views=20, cost_per_lp_view=150),
    ),
    Ad(
        id="a2",
        name="other campaign",
        campaign_id="cmp-2",
        insights=AdInsights(spend=999, impressions=1, clicks=1),
    ),
]


class FakeMeta:
    """Async stand-in for MetaClient; records the token it was built with."""

    tokens = []
    fail = False

    def __init__(self, token):
        FakeMeta.tokens.append(token)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    async def close(self):
        return None

    async def get_ad_accounts(self):
        return [{"id": "act_999"}]

    async def get_daily_ads_insights(self, account_id, start, end, campaign_id=None):
        if FakeMeta.fail:
            raise MetaAPIError("Meta is down", 500)
        return [
            DailyAdInsight(date=start, spend=1000, clicks=40, impressions=2000, conversions=2),
            DailyAdInsight(date=end, spend=500, clicks=10, impressions=1000),
        ]

    async def get_region_insights(self, account_id, start, end, campaign_id=None):
        return []

    async def get_ads(self, account_id):
        return list(ADS)


class FakeGoogle:
    def __init__(self, token):
        self.token = token

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    async def get_ga4_events_containing(self, property_id, search, start, end):
        return 6

    async def get_daily_ga4_events_containing(self, property_id, search, start, end):
        return [DailyEventCount(date=start, count=6)]

    async def get_ga4_report(self, property_id, start, end):
        return Ga4Report(sessions=400, activeUsers=300, screenPageViews=900, engagementRate=0.5)

    async def get_ga4_event_count(self, property_id, event, start, end):
        return 8

    async def get_daily_ga4_event_count(self, property_id, event, start, end):
        return [DailyEventCount(date=start, count=6)]


@pytest.fixture(autouse=True)
def reset_fake_meta():
    FakeMeta.tokens = []
    FakeMeta.fail = False


class TestStoreMetrics:
    @pytest.mark.anyio
    async def test_meta_only(self, session, store):
        service = DashboardService(session, FakeMeta, FakeGoogle)
        result = await service.get_store_metrics(
            OWNER_ID, store, None, "2024-03-01", "2024-03-02"
        )
        assert FakeMeta.tokens == ["store-meta-token"]
        assert result["metrics"]["spend"] == 1500
        assert result["metrics"]["cvCount"] == 0
        assert result["dateRange"] == {"from": "2024-03-01", "to": "2024-03-02"}
        assert [d["date"] for d in result["daily"]] == ["2024-03-01", "2024-03-02"]

    @pytest.mark.anyio
    async def test_with_ga4(self, session, store):
        store.ga4_property_id = "properties/1"
        service = DashboardService(session, FakeMeta, FakeGoogle)
        result = await service.get_store_metrics(
            OWNER_ID, store, "google-token", "2024-03-01", "2024-03-02"
        )
        assert result["metrics"]["cvCount"] == 6
        assert result["metrics"]["cpa"] == 250
        assert result["daily"][0]["cv"] == 6

    @pytest.mark.anyio
    async def test_meta_failure_leaves_zeros(self, session, store):
        FakeMeta.fail = True
        service = DashboardService(session, FakeMeta, FakeGoogle)
        result = await service.get_store_metrics(
            OWNER_ID, store, None, "2024-03-01", "2024-03-02"
        )
        assert result["metrics"]["spend"] == 0
        assert result["daily"] == []

    @pytest.mark.anyio
    async def test_missing_meta_token(self, session, profiles):
        store = Store(name="tokenless", user_id=OWNER_ID)
        session.add(store)
        session.commit()
        service = DashboardService(session, FakeMeta, FakeGoogle)
        with pytest.raises(ValidationError):
            await service.get_store_metrics(OWNER_ID, store, None)


class TestChartsAndAds:
    @pytest.mark.anyio
    async def test_chart_data_filters_ads_to_campaign(self, session, store):
        service = DashboardService(session, FakeMeta, FakeGoogle)
        data = await service.get_store_chart_data(
            OWNER_ID, store, None, "2024-03-01", "2024-03-02"
        )
        assert [r.name for r in data.creativeRanking] == ["winner"]
        assert data.kpiMoM[0].current == 1500

    @pytest.mark.anyio
    async def test_chart_data_without_meta_token_keeps_ga4(self, session, profiles):
        store = Store(name="tokenless", user_id=OWNER_ID, ga4_property_id="properties/1")
        session.add(store)
        session.commit()
        service = DashboardService(session, FakeMeta, FakeGoogle)

        data = await service.get_store_chart_data(
            OWNER_ID, store, "google-token", "2024-03-01", "2024-03-02"
        )

        assert FakeMeta.tokens == []
        assert data.kpiMoM[0].current == 0
        assert data.kpiMoM[1].current == 6
        assert {f.label: f.value for f in data.funnel}["Sessions"] == 400

    @pytest.mark.anyio
    async def test_scored_ads(self, session, store):
        service = DashboardService(session, FakeMeta, FakeGoogle)
        ads = await service.score_store_ads(OWNER_ID, store)
        assert len(ads) == 1
        assert ads[0].analysis.is_winner is True
        assert ads[0].analysis.score == 90


class FakeProvider(AIProvider):
    def __init__(self, reply=None):
        self.reply = reply
        self.prompts = []

    async def generate_text(self, prompt, system=None):
        self.prompts.append(prompt)
        return "分析結果"

    async def generate_json(self, prompt, system=None, image_url=None):
        self.prompts.append(prompt)
        return self.reply

    def is_available(self):
        return True


class TestAnalysis:
    def test_sum_ads_counts_lp_views(self):
        assert sum_ads(ADS[:1]) == {
            "spend": 3000,
            "impressions": 10000,
            "clicks": 250,
            "conversions": 20,
        }

    def test_derived_figures(self):
        figures = derive_analysis_metrics(
            sum_ads(ADS[:1]), Ga4Report(sessions=400, bounceRate=0.25), 8, "予約"
        )
        assert figures["headline"].cpa == 375
        assert figures["headline"].cvEventName == "予約"
        assert figures["meta"]["cpc"] == 12
        assert figures["meta"]["meta_cpa"] == 150
        assert figures["meta"]["spend"] == 3000
        assert figures["ga4"]["ga_cvr"] == "2.00"

    @pytest.mark.anyio
    async def test_analyze_store(self, monkeypatch, session, store):
        provider = FakeProvider()
        monkeypatch.setattr(
            analysis_service, "select_provider", lambda name, key: (name, provider)
        )
        store.ga4_property_id = "properties/1"
        service = AnalysisService(session, FakeMeta, FakeGoogle)

        result = await service.analyze_store(
            OWNER_ID, store, "google-token", AnalysisContext(industry="美容室", cv_label="予約")
        )

        assert result["success"] is True
        assert result["analysis"] == "分析結果"
        assert result["metrics"]["spend"] == 3000
        assert result["metrics"]["cvCount"] == 8
        assert "美容室" in provider.prompts[0]
        assert "未指定" in provider.prompts[0]

    @pytest.mark.anyio
    async def test_analyze_campaign_normalizes_priority(self, monkeypatch):
        provider = FakeProvider(
            {
                "summary": "好調です",
                "suggestions": [
                    {"title": "予算増", "description": "...", "priority": "High"},
                    {"title": "改善", "priority": "Urgent"},
                    "not a suggestion",
                ],
            }
        )
        monkeypatch.setattr(
            analysis_service, "select_provider", lambda name, key: (name, provider)
        )
        result = await analysis_service.analyze_campaign("Spring", "OUTCOME_TRAFFIC", ADS[:1])

        assert result["summary"] == "好調です"
        assert [s["priority"] for s in result["suggestions"]] == ["High", "Medium"]
        assert "Traffic & Store Visits" in provider.prompts[0]

    @pytest.mark.anyio
    async def test_review_campaign_uses_store_campaign(self, monkeypatch, session, store):
        provider = FakeProvider({"summary": "ok", "suggestions": []})
        seen = {}

        def select(name, key):
            seen["key"] = key
            return name, provider

        monkeypatch.setattr(analysis_service, "select_provider", select)
        service = AnalysisService(session, FakeMeta, FakeGoogle)
        result = await service.review_campaign(OWNER_ID, store, "OUTCOME_SALES")

        assert result == {"summary": "ok", "suggestions": []}
        assert seen["key"] == "sk-store-key"
        assert '"name": "winner"' in provider.prompts[0]
        assert "other campaign" not in provider.prompts[0]
