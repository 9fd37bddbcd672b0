"""
Mistral AI adapter.

Mistral speaks the OpenAI chat format with a few renamed fields.
"""

from typing import Any, Dict, List, Set

from ..core.interface import ProviderCapability
from .base import HttpProviderAdapter
from .openai_adapter import OpenAIAdapter


class MistralAdapter(OpenAIAdapter):
    """Mistral AI adapter (chat, embeddings, tools)."""

    PROVIDER_TYPE = "mistral"
    PROVIDER_NAME = "Mistral AI"
    DEFAULT_BASE_URL = "https://api.mistral.ai/v1"
    DEFAULT_MODEL = "mistral-large-latest"
    DEFAULT_EMBEDDING_MODEL = "mistral-embed"
    SAMPLING_KEYS = {**OpenAIAdapter.SAMPLING_KEYS, "seed": "random_seed"}

    @property
    def capabilities(self) -> Set[ProviderCapability]:
        return {
            ProviderCapability.CHAT_COMPLETION,
            ProviderCapability.EMBEDDINGS,
            ProviderCapability.STREAMING,
            ProviderCapability.TOOLS,
            ProviderCapability.JSON_MODE,
        }

    def _build_headers(self) -> Dict[str, str]:
        # no OpenAI-Organization header
        return HttpProviderAdapter._build_headers(self)

    def _embedding_payload(self, texts: List[str], opts: Dict[str, Any]) -> Dict[str, Any]:
        # mistral-embed has a fixed output size
        return {
            "model": opts.get("model") or self.DEFAULT_EMBEDDING_MODEL,
            "input": texts,
        }
