"""WINQER — Google Gemini Provider."""

import base64
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import errors, types

from winqer.ai.base_provider import AIProvider
from winqer.ai.parsing import parse_json_response
from winqer.config import settings
from winqer.core.errors import AIGenerationError, ConfigurationError
from winqer.core.logging import get_logger

logger = get_logger("ai.gemini")


def _image_part(image_url: str) -> types.Part:
    """Inline data URLs as bytes; anything else is passed by URI."""
    if image_url.startswith("data:"):
        header, _, data = image_url.partition(",")
        mime_type = header[5:].split(";", 1)[0] or "image/png"
        return types.Part.from_bytes(data=base64.b64decode(data), mime_type=mime_type)
    return types.Part.from_uri(file_uri=image_url, mime_type="image/jpeg")


class GeminiProvider(AIProvider):
    """Gemini provider over the google-genai async client."""

    def __init__(self, api_key: Optional[str] = None):
        key = (api_key or settings.gemini_api_key or "").strip()
        self.api_key = key or None
        self.client = genai.Client(api_key=key) if key else None

    def is_available(self) -> bool:
        return self.client is not None

    async def _generate(
        self,
        contents: List[Any],
        system: Optional[str],
        json_mode: bool,
    ) -> str:
        if not self.is_available():
            raise ConfigurationError(
                "GEMINI_API_KEY is not configured. Please add it to your .env file."
            )
        config = types.GenerateContentConfig(
            system_instruction=system,
            response_mime_type="application/json" if json_mode else None,
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=settings.gemini_model,
                contents=contents,
                config=config,
            )
        except errors.APIError as e:
            logger.error(f"Gemini generation failed: {e}")
            raise AIGenerationError(f"Gemini generation failed: {e}") from e
        return response.text or ""

    async def generate_text(self, prompt: str, system: Optional[str] = None) -> str:
        return await self._generate([prompt], system, json_mode=False)

    async def generate_json(
        self,
        prompt: str,
        system: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        contents: List[Any] = [prompt]
        if image_url:
            contents.append(_image_part(image_url))
        text = await self._generate(contents, system, json_mode=True)
        parsed = parse_json_response(text)
        if parsed is None:
            logger.warning(f"Failed to parse AI JSON. Raw: {text[:300]}")
            raise AIGenerationError("Failed to parse AI response")
        return parsed
