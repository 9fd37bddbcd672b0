"""
Provider adapters for different AI backends.
"""

from typing import Any, Dict, Type

from ..core.config import ProviderConfig
from ..core.interface import AbstractProvider
from ..core.registry import ProviderRegistry
from .base import HttpProviderAdapter
from .openai_adapter import OpenAIAdapter
from .anthropic_adapter import AnthropicAdapter
from .gemini_adapter import GeminiAdapter
from .ollama_adapter import OllamaAdapter
from .mistral_adapter import MistralAdapter
from .groq_adapter import GroqAdapter
from .openrouter_adapter import OpenRouterAdapter

ADAPTER_TYPES: Dict[str, Type[AbstractProvider]] = {
    "openai": OpenAIAdapter,
    "claude": AnthropicAdapter,
    "anthropic": AnthropicAdapter,
    "gemini": GeminiAdapter,
    "ollama": OllamaAdapter,
    "mistral": MistralAdapter,
    "groq": GroqAdapter,
    "openrouter": OpenRouterAdapter,
}


def create_registry() -> ProviderRegistry:
    """Registry with every built-in adapter type registered."""
    registry = ProviderRegistry()
    for provider_type, adapter_class in ADAPTER_TYPES.items():
        registry.register_adapter(provider_type, adapter_class)
    return registry


def create_adapter(config: ProviderConfig, **kwargs: Any) -> AbstractProvider:
    """
    Create and configure an adapter for a provider config.

    Args:
        config: Provider configuration; ``type`` selects the adapter
        **kwargs: Extra adapter constructor arguments (e.g. http_client)

    Raises:
        ProviderConfigurationError: If the type is unknown or config is incomplete
    """
    return create_registry().create_provider(config, **kwargs)


__all__ = [
    "ADAPTER_TYPES",
    "create_adapter",
    "create_registry",
    "HttpProviderAdapter",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
    "OllamaAdapter",
    "MistralAdapter",
    "GroqAdapter",
    "OpenRouterAdapter",
]
