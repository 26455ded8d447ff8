"""WINQER — OpenAI Provider (chat completions + DALL-E)."""

import json
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from winqer.ai.base_provider import AIProvider
from winqer.config import settings
from winqer.core.errors import AIGenerationError, ConfigurationError
from winqer.core.logging import get_logger

logger = get_logger("ai.openai")


class OpenAIProvider(AIProvider):
    """OpenAI provider. An explicit key wins over OPENAI_API_KEY."""

    def __init__(self, api_key: Optional[str] = None):
        key = (api_key or settings.openai_api_key or "").strip()
        self.api_key = key or None
        self.client = AsyncOpenAI(api_key=key) if key else None

    def is_available(self) -> bool:
        return self.client is not None

    def _require_client(self) -> AsyncOpenAI:
        if not self.is_available():
            raise ConfigurationError("OpenAI API Key is not configured.")
        return self.client

    @staticmethod
    def _messages(
        prompt: str, system: Optional[str], image_url: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        if image_url:
            messages.append(
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
                    ],
                }
            )
        else:
            messages.append({"role": "user", "content": prompt})
        return messages

    async def generate_text(self, prompt: str, system: Optional[str] = None) -> str:
        client = self._require_client()
        try:
            response = await client.chat.completions.create(
                model=settings.openai_model,
                messages=self._messages(prompt, system),
            )
        except OpenAIError as e:
            logger.error(f"OpenAI generation failed: {e}")
            raise AIGenerationError(f"OpenAI generation failed: {e}") from e
        return response.choices[0].message.content or "No analysis generated."

    async def generate_json(
        self,
        prompt: str,
        system: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.chat_json(self._messages(prompt, system, image_url))

    async def chat_json(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Run a prepared message list in JSON mode and parse the reply."""
        client = self._require_client()
        try:
            response = await client.chat.completions.create(
                model=settings.openai_model,
                messages=messages,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.error(f"OpenAI generation failed: {e}")
            raise AIGenerationError(f"OpenAI generation failed: {e}") from e

        content = response.choices[0].message.content
        if not content:
            raise AIGenerationError("No content generated")
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse AI JSON: {e}. Raw: {content[:300]}")
            raise AIGenerationError("Failed to parse AI response") from e

    async def generate_image(self, prompt: str, size: str = "1024x1024") -> str:
        """Generate one image and return its URL (empty when none came back)."""
        client = self._require_client()
        try:
            response = await client.images.generate(
                model=settings.openai_image_model,
                prompt=prompt,
                n=1,
                size=size,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI image generation failed: {e}")
            raise AIGenerationError(f"Image generation failed: {e}") from e
        if not response.data:
            return ""
        return response.data[0].url or ""
