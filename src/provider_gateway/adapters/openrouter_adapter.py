"""
OpenRouter adapter.

OpenRouter fronts many upstream vendors behind one OpenAI-compatible
API; model names carry the vendor prefix (``anthropic/...``,
``openai/...``).
"""

from typing import Dict, Set

from ..core.interface import ProviderCapability
from .base import HttpProviderAdapter
from .openai_adapter import OpenAIAdapter


class OpenRouterAdapter(OpenAIAdapter):
    """
    OpenRouter adapter (chat, embeddings, vision, tools).

    Optional attribution is read from the provider config extras:
    ``site_url`` is sent as HTTP-Referer and ``app_name`` as X-Title.
    """

    PROVIDER_TYPE = "openrouter"
    PROVIDER_NAME = "OpenRouter"
    DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
    DEFAULT_MODEL = "anthropic/claude-sonnet-4-5"
    DEFAULT_EMBEDDING_MODEL = "openai/text-embedding-3-small"

    @property
    def capabilities(self) -> Set[ProviderCapability]:
        return {
            ProviderCapability.CHAT_COMPLETION,
            ProviderCapability.EMBEDDINGS,
            ProviderCapability.VISION,
            ProviderCapability.STREAMING,
            ProviderCapability.TOOLS,
            ProviderCapability.JSON_MODE,
        }

    def _build_headers(self) -> Dict[str, str]:
        headers = HttpProviderAdapter._build_headers(self)
        extra = self._config.extra if self._config is not None else {}
        if extra.get("site_url"):
            headers["HTTP-Referer"] = str(extra["site_url"])
        if extra.get("app_name"):
            headers["X-Title"] = str(extra["app_name"])
        return headers
