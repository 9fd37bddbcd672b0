"""
Groq adapter.

OpenAI-compatible chat on Groq's inference API. Groq serves no
embedding models.
"""

from typing import Dict, Set

from ..core.interface import ProviderCapability
from .base import HttpProviderAdapter
from .openai_adapter import OpenAIAdapter


class GroqAdapter(OpenAIAdapter):
    """Groq adapter (chat, tools)."""

    PROVIDER_TYPE = "groq"
    PROVIDER_NAME = "Groq"
    DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
    DEFAULT_MODEL = "llama-3.3-70b-versatile"
    DEFAULT_EMBEDDING_MODEL = None

    @property
    def capabilities(self) -> Set[ProviderCapability]:
        return {
            ProviderCapability.CHAT_COMPLETION,
            ProviderCapability.STREAMING,
            ProviderCapability.TOOLS,
            ProviderCapability.JSON_MODE,
        }

    def _build_headers(self) -> Dict[str, str]:
        # no OpenAI-Organization header
        return HttpProviderAdapter._build_headers(self)
