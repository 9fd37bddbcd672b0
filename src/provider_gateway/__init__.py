"""
Provider Gateway

A uniform, synchronous interface to many LLM providers:
- Chat completion, embeddings, vision and translation
- Wire adapters for OpenAI, Anthropic Claude, Gemini, Ollama, Mistral, Groq and OpenRouter
- Priority-based provider resolution with per-call overrides
- Content-addressed caching and day-bucketed usage tracking
"""

from .core.config import GatewayConfig, ProviderConfig, load_config
from .core.errors import (
    GatewayError,
    InvalidArgumentError,
    ProviderAuthenticationError,
    ProviderConfigurationError,
    ProviderConnectionError,
    ProviderNotFoundError,
    ProviderRateLimitError,
    ProviderResponseError,
    QuotaExceededError,
    UnsupportedFeatureError,
)
from .core.interface import AbstractProvider, ProviderCapability
from .core.registry import ProviderRegistry
from .adapters import create_adapter
from .models.message import ChatMessage
from .models.options import (
    ChatOptions,
    EmbeddingOptions,
    ToolOptions,
    TranslationOptions,
    VisionOptions,
    resolve_options,
)
from .models.response import (
    CompletionResponse,
    EmbeddingResponse,
    FinishReason,
    ToolCall,
    TranslationResult,
    UsageStatistics,
    VisionResponse,
)
from .services.cache import CacheManager, InMemoryCacheBackend, RedisCacheBackend
from .services.manager import LlmServiceManager
from .services.translation import TranslationService
from .services.usage import InMemoryUsageStore, SqlUsageStore, UsageTracker
from .services.vision import VisionService

__version__ = "1.0.0"

__all__ = [
    "AbstractProvider",
    "ProviderCapability",
    "ProviderRegistry",
    "GatewayConfig",
    "ProviderConfig",
    "load_config",
    "create_adapter",
    "GatewayError",
    "InvalidArgumentError",
    "ProviderAuthenticationError",
    "ProviderConfigurationError",
    "ProviderConnectionError",
    "ProviderNotFoundError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "QuotaExceededError",
    "UnsupportedFeatureError",
    "ChatMessage",
    "ChatOptions",
    "EmbeddingOptions",
    "ToolOptions",
    "TranslationOptions",
    "VisionOptions",
    "resolve_options",
    "CompletionResponse",
    "EmbeddingResponse",
    "FinishReason",
    "ToolCall",
    "TranslationResult",
    "UsageStatistics",
    "VisionResponse",
    "CacheManager",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "LlmServiceManager",
    "TranslationService",
    "VisionService",
    "InMemoryUsageStore",
    "SqlUsageStore",
    "UsageTracker",
]
