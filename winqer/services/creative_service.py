"""WINQER — Ad Creative, Banner Prompt and Caption Generation."""

import json
import re
from typing import Any, Dict, List, Optional

import httpx
from sqlmodel import Session

from winqer.ai.gemini_provider import GeminiProvider
from winqer.ai.openai_provider import OpenAIProvider
from winqer.ai.parsing import parse_json_response
from winqer.ai.prompts import (
    BANNER_NOTE,
    CREATIVE_SYSTEM_PROMPT,
    CREATIVE_SYSTEM_PROMPT_WITH_REFERENCE,
    REFERENCE_DESCRIPTION,
    REFERENCE_STYLE_SUFFIX,
    build_banner_prompt,
    build_caption_system_prompt,
    build_caption_user_content,
    build_creative_prompt,
)
from winqer.core.errors import AIGenerationError, ConfigurationError, ValidationError
from winqer.core.logging import get_logger
from winqer.models.store_models import Store
from winqer.services.strategy_service import load_strategy

logger = get_logger("services.creative")

USER_AGENT = "Mozilla/5.0 (compatible; BannerGenerator/1.0)"

_TITLE = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_DESCRIPTION = re.compile(
    r"<meta\s+name=[\"']description[\"']\s+content=[\"'](.*?)[\"']", re.IGNORECASE
)
_H1 = re.compile(r"<h1[^>]*>(.*?)</h1>", re.IGNORECASE | re.DOTALL)
_H2 = re.compile(r"<h2[^>]*>(.*?)</h2>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]+>")


def _text(html: str) -> str:
    return _TAG.sub("", html).strip()


def parse_store_page(html: str) -> str:
    """Title, description and headings of a store page, one per line."""
    lines = []
    title = _TITLE.search(html)
    if title:
        lines.append(f"タイトル: {_text(title.group(1))}")
    description = _DESCRIPTION.search(html)
    if description:
        lines.append(f"説明: {description.group(1).strip()}")
    h1 = _H1.search(html)
    if h1:
        lines.append(f"メイン見出し: {_text(h1.group(1))}")
    h2s = [_text(h) for h in _H2.findall(html)[:3]]
    if h2s:
        lines.append(f"サブ見出し: {', '.join(h2s)}")
    return "\n".join(lines)


async def extract_store_info(
    url: str, transport: Optional[httpx.AsyncBaseTransport] = None
) -> str:
    """Fetch the store URL and summarise it; failures yield a marker line."""
    unreachable = f"[URL: {url}] (could not fetch)"
    try:
        async with httpx.AsyncClient(
            timeout=15.0, follow_redirects=True, transport=transport
        ) as client:
            resp = await client.get(url, headers={"User-Agent": USER_AGENT})
    except httpx.HTTPError as e:
        logger.warning(f"Store info extraction error: {e}")
        return unreachable
    if resp.is_error:
        return unreachable
    return parse_store_page(resp.text)


# ── OpenAI creative ──


async def generate_creative(
    analysis: str,
    store_url: Optional[str] = None,
    reference_image: Optional[str] = None,
    api_key: Optional[str] = None,
) -> Dict[str, str]:
    """New ad concept from an analysis: copy, image prompt and a DALL-E image."""
    if not analysis:
        raise ValidationError("Analysis result is missing")

    ai = OpenAIProvider(api_key)
    if not ai.is_available():
        raise ConfigurationError("OpenAI API Key is not configured.")

    store_info = await extract_store_info(store_url) if store_url else ""
    has_reference = bool(reference_image)
    content = await ai.generate_json(
        build_creative_prompt(analysis, store_url, store_info, has_reference),
        system=CREATIVE_SYSTEM_PROMPT_WITH_REFERENCE if has_reference else CREATIVE_SYSTEM_PROMPT,
        image_url=reference_image,
    )

    title = content.get("headline") or "New Optimized Headline"
    body = content.get("primary_text") or "New Optimized Body Text"
    image_prompt = (
        content.get("image_prompt") or f"A professional advertising banner for: {title}"
    )
    if has_reference:
        image_prompt += REFERENCE_STYLE_SUFFIX

    image_url = await ai.generate_image(image_prompt)
    logger.info("Creative generated")
    return {
        "title": title,
        "body": body,
        "image_prompt": image_prompt,
        "image_url": image_url,
    }


# ── Gemini banner prompt ──


async def generate_banner_prompt(
    analysis: str,
    store_url: Optional[str] = None,
    reference_image: Optional[str] = None,
    api_key: Optional[str] = None,
) -> Dict[str, str]:
    """Image-model prompt plus banner copy, pretty-printed when it parses."""
    if not analysis:
        raise ValidationError("Analysis text is missing")

    ai = GeminiProvider(api_key)
    if not ai.is_available():
        raise ConfigurationError(
            "GEMINI_API_KEY is not configured. Please add it to your .env file."
        )

    store_info = await extract_store_info(store_url) if store_url else ""
    reference = REFERENCE_DESCRIPTION if reference_image else ""
    text = await ai.generate_text(build_banner_prompt(analysis, store_info, reference))

    parsed = parse_json_response(text)
    prompt = json.dumps(parsed, indent=2, ensure_ascii=False) if parsed is not None else text
    return {"prompt": prompt, "note": BANNER_NOTE}


# ── Instagram captions ──


def extract_captions(parsed: Any) -> List[Dict[str, Any]]:
    """Captions from a `captions` key, a bare list, or the first list value."""
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        if isinstance(parsed.get("captions"), list):
            return parsed["captions"]
        for value in parsed.values():
            if isinstance(value, list):
                return value
    return []


async def generate_instagram_post(
    session: Session,
    store: Store,
    topic: str,
    tone: Optional[str] = None,
    image: Optional[str] = None,
    api_key: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Three caption variants for a post, grounded in the store's strategy."""
    key = (api_key or "").strip() or store.openai_api_key
    ai = OpenAIProvider(key)
    if not ai.is_available():
        raise ConfigurationError("OpenAI API Key is not configured.")

    strategy = load_strategy(session, store.id)
    input_data = strategy.input_data if strategy else {}
    output_data = strategy.output_data if strategy else {}

    system = build_caption_system_prompt(
        store.name, store.industry, store.address, input_data or {}, output_data or {}
    )
    parsed = await ai.chat_json(
        [
            {"role": "system", "content": system},
            {"role": "user", "content": build_caption_user_content(topic, tone, image)},
        ]
    )
    captions = extract_captions(parsed)
    if not captions:
        raise AIGenerationError("Failed to parse AI response")
    logger.info(f"Generated {len(captions)} caption(s)", extra={"store_id": store.id})
    return captions
