"""WINQER — AI Provider Selection."""

from typing import Dict, Optional, Tuple, Type

from winqer.ai.base_provider import AIProvider
from winqer.ai.gemini_provider import GeminiProvider
from winqer.ai.openai_provider import OpenAIProvider
from winqer.config import settings
from winqer.core.errors import ConfigurationError, ValidationError

PROVIDERS: Dict[str, Type[AIProvider]] = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def select_provider(
    provider_name: str = "auto", api_key: Optional[str] = None
) -> Tuple[str, AIProvider]:
    """Select and return an available AI provider.

    When provider_name is 'auto', tries DEFAULT_AI_PROVIDER first,
    then falls through remaining providers. `api_key` goes to the
    default (or named) provider; the others use their settings key.
    """
    if provider_name == "auto":
        default = settings.default_ai_provider
        if default in PROVIDERS:
            p = PROVIDERS[default](api_key)
            if p.is_available():
                return default, p
        for name, cls in PROVIDERS.items():
            if name == default:
                continue
            provider = cls()
            if provider.is_available():
                return name, provider
        raise ConfigurationError(
            "No AI provider configured. Set OPENAI_API_KEY or GEMINI_API_KEY in .env."
        )

    if provider_name not in PROVIDERS:
        raise ValidationError(f"Unknown provider: {provider_name}.")
    provider = PROVIDERS[provider_name](api_key)
    if not provider.is_available():
        raise ConfigurationError(f"{provider_name} provider not configured.")
    return provider_name, provider
