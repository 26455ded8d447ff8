"""Tests for AI reply parsing, prompt building, provider selection and generation."""

import json
from types import SimpleNamespace

import httpx
import pytest

from winqer.ai.gemini_provider import GeminiProvider
from winqer.ai.openai_provider import OpenAIProvider
from winqer.ai.parsing import parse_json_response, strip_code_fences
from winqer.ai.prompts import (
    REFERENCE_STYLE_SUFFIX,
    build_caption_system_prompt,
    build_caption_user_content,
    build_strategy_prompt,
    objective_focus,
    OBJECTIVE_FOCUS,
)
from winqer.ai.providers import select_provider
from winqer.config import settings
from winqer.core.errors import (
    AIGenerationError,
    ConfigurationError,
    ValidationError,
)
from winqer.services import creative_service
from winqer.services.creative_service import (
    extract_captions,
    extract_store_info,
    parse_store_page,
)


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeImages:
    async def generate(self, **kwargs):
        return SimpleNamespace(data=[SimpleNamespace(url="https://img.test/banner.png")])


def openai_with_reply(content) -> OpenAIProvider:
    provider = OpenAIProvider("sk-test")
    completions = FakeCompletions(content)
    provider.client = SimpleNamespace(
        chat=SimpleNamespace(completions=completions), images=FakeImages()
    )
    return provider


@pytest.fixture
def no_ai_keys(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "gemini_api_key", None)


class TestParsing:
    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences("  plain  ") == "plain"

    def test_plain_json(self):
        assert parse_json_response('{"headline": "春"}') == {"headline": "春"}

    def test_object_inside_prose(self):
        text = 'Here you go:\n{"prompt_for_image_model": "a cafe"}\nEnjoy!'
        assert parse_json_response(text) == {"prompt_for_image_model": "a cafe"}

    def test_unparsable(self):
        assert parse_json_response("no json here") is None
        assert parse_json_response("") is None
        assert parse_json_response("[1, 2]") is None


class TestPrompts:
    def test_objective_focus(self):
        assert objective_focus("OUTCOME_TRAFFIC") == OBJECTIVE_FOCUS["traffic"]
        assert objective_focus("LINK_CLICKS") == OBJECTIVE_FOCUS["traffic"]
        assert objective_focus("OUTCOME_AWARENESS") == OBJECTIVE_FOCUS["awareness"]
        assert objective_focus("OUTCOME_SALES") == OBJECTIVE_FOCUS["conversions"]
        assert objective_focus("") == OBJECTIVE_FOCUS["general"]

    def test_strategy_prompt_sections(self):
        prompt = build_strategy_prompt(
            {
                "goal": {"main_objective": "新規集客", "monthly_new_customers": "20"},
                "constraints": {"ng_conditions": ["当日予約", "深夜"]},
                "comparison": {"competitors": ["A店", "B店"]},
            }
        )
        assert prompt.startswith("# Hearing Information")
        assert "- Main Objective: 新規集客" in prompt
        assert "- NG Conditions: 当日予約, 深夜" in prompt
        assert "- Competitors: A店, B店" in prompt
        assert "## 7. Brand Policy" in prompt

    def test_caption_prompt_uses_strategy(self):
        prompt = build_caption_system_prompt(
            "渋谷店",
            "美容室",
            None,
            {"brand": {"desired_image": "上品"}},
            {"swot": {"strengths": ["技術力", "駅近"]}},
        )
        assert "渋谷店" in prompt
        assert "技術力, 駅近" in prompt
        assert "上品" in prompt
        assert "未設定" in prompt

    def test_caption_user_content_with_image(self):
        content = build_caption_user_content("新メニュー", None, "data:image/png;base64,AAAA")
        assert content[0]["text"] == "トピック: 新メニュー\n指定トーン: 店舗の雰囲気に合わせる"
        assert content[1]["image_url"]["url"] == "data:image/png;base64,AAAA"
        assert len(content) == 3


class TestProviderSelection:
    def test_nothing_configured(self, no_ai_keys):
        with pytest.raises(ConfigurationError):
            select_provider("auto")

    def test_unknown_provider(self):
        with pytest.raises(ValidationError):
            select_provider("claude", "key")

    def test_named_provider_without_key(self, no_ai_keys):
        with pytest.raises(ConfigurationError):
            select_provider("gemini")

    def test_explicit_key(self, no_ai_keys):
        name, provider = select_provider("openai", "sk-request")
        assert name == "openai"
        assert provider.api_key == "sk-request"

    def test_auto_falls_through_to_configured(self, monkeypatch, no_ai_keys):
        monkeypatch.setattr(settings, "default_ai_provider", "openai")
        monkeypatch.setattr(settings, "gemini_api_key", "gm-settings")
        name, provider = select_provider("auto")
        assert name == "gemini"
        assert isinstance(provider, GeminiProvider)

    def test_blank_key_reads_as_missing(self, no_ai_keys):
        assert OpenAIProvider("   ").is_available() is False


class TestOpenAIProvider:
    @pytest.mark.anyio
    async def test_json_mode(self):
        provider = openai_with_reply('{"summary": "ok"}')
        result = await provider.generate_json("prompt", system="sys", image_url="https://img.test/a.png")

        assert result == {"summary": "ok"}
        call = provider.client.chat.completions.calls[0]
        assert call["response_format"] == {"type": "json_object"}
        assert call["messages"][0] == {"role": "system", "content": "sys"}
        assert call["messages"][1]["content"][1]["image_url"]["url"] == "https://img.test/a.png"

    @pytest.mark.anyio
    async def test_invalid_json(self):
        with pytest.raises(AIGenerationError):
            await openai_with_reply("not json").generate_json("prompt")

    @pytest.mark.anyio
    async def test_empty_reply(self):
        with pytest.raises(AIGenerationError):
            await openai_with_reply(None).generate_json("prompt")

    @pytest.mark.anyio
    async def test_text_fallback(self):
        assert await openai_with_reply(None).generate_text("prompt") == "No analysis generated."


class TestStorePage:
    html = """
    <html><head><title> 渋谷ヘアサロン | 公式 </title>
    <meta name="description" content="駅徒歩3分の美容室"></head>
    <body><h1>髪質<b>改善</b>専門</h1>
    <h2>メニュー</h2><h2>スタッフ</h2><h2>アクセス</h2><h2>ブログ</h2></body></html>
    """

    def test_parse_store_page(self):
        assert parse_store_page(self.html).split("\n") == [
            "タイトル: 渋谷ヘアサロン | 公式",
            "説明: 駅徒歩3分の美容室",
            "メイン見出し: 髪質改善専門",
            "サブ見出し: メニュー, スタッフ, アクセス",
        ]

    @pytest.mark.anyio
    async def test_extract_store_info(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=self.html))
        info = await extract_store_info("https://salon.test", transport=transport)
        assert info.startswith("タイトル: 渋谷ヘアサロン")

    @pytest.mark.anyio
    async def test_unreachable_page(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        info = await extract_store_info("https://salon.test", transport=transport)
        assert info == "[URL: https://salon.test] (could not fetch)"


class TestCaptions:
    def test_extract_captions_shapes(self):
        captions = [{"type": "共感型"}]
        assert extract_captions({"captions": captions}) == captions
        assert extract_captions(captions) == captions
        assert extract_captions({"posts": captions, "note": "x"}) == captions
        assert extract_captions({"note": "x"}) == []

    @pytest.mark.anyio
    async def test_instagram_post(self, monkeypatch, session, store):
        reply = {"captions": [{"type": "A", "text": "..."}, {"type": "B"}, {"type": "C"}]}
        provider = openai_with_reply(json.dumps(reply))
        monkeypatch.setattr(creative_service, "OpenAIProvider", lambda key: provider)

        captions = await creative_service.generate_instagram_post(session, store, "新メニュー")

        assert len(captions) == 3
        system = provider.client.chat.completions.calls[0]["messages"][0]["content"]
        assert "渋谷店" in system

    @pytest.mark.anyio
    async def test_instagram_post_without_captions(self, monkeypatch, session, store):
        provider = openai_with_reply('{"note": "sorry"}')
        monkeypatch.setattr(creative_service, "OpenAIProvider", lambda key: provider)
        with pytest.raises(AIGenerationError):
            await creative_service.generate_instagram_post(session, store, "新メニュー")


class TestCreative:
    @pytest.mark.anyio
    async def test_requires_analysis(self):
        with pytest.raises(ValidationError):
            await creative_service.generate_creative("")

    @pytest.mark.anyio
    async def test_reference_image_style(self, monkeypatch):
        provider = openai_with_reply(
            json.dumps({"headline": "春の新色", "primary_text": "本文", "image_prompt": "a salon"})
        )
        monkeypatch.setattr(creative_service, "OpenAIProvider", lambda key: provider)

        creative = await creative_service.generate_creative(
            "CTRが低い", reference_image="data:image/png;base64,AAAA"
        )

        assert creative["title"] == "春の新色"
        assert creative["image_prompt"] == "a salon" + REFERENCE_STYLE_SUFFIX
        assert creative["image_url"] == "https://img.test/banner.png"

    @pytest.mark.anyio
    async def test_banner_prompt_pretty_prints(self, monkeypatch):
        class FakeGemini:
            def __init__(self, key):
                pass

            def is_available(self):
                return True

            async def generate_text(self, prompt, system=None):
                return '```json\n{"headline": "春"}\n```'

        monkeypatch.setattr(creative_service, "GeminiProvider", FakeGemini)
        result = await creative_service.generate_banner_prompt("分析")
        assert result["prompt"] == '{\n  "headline": "春"\n}'
        assert result["note"].startswith("このプロンプト")
