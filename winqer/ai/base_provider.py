"""WINQER — Abstract AI Provider."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class AIProvider(ABC):
    """Abstract base for text generation backends.

    Providers take a prompt (and optionally a system prompt) and return
    either free text or a parsed JSON object. Credentials come from the
    caller (store or user key) and fall back to settings.
    """

    @abstractmethod
    async def generate_text(self, prompt: str, system: Optional[str] = None) -> str:
        """Generate free-form text for the prompt."""
        ...

    @abstractmethod
    async def generate_json(
        self,
        prompt: str,
        system: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Generate a JSON object for the prompt.

        Args:
            prompt: The user message.
            system: Optional system message.
            image_url: Optional image (URL or data URL) the model should look at.

        Returns:
            The parsed JSON object.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is configured and ready."""
        ...
