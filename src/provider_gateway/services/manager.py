"""
Gateway that routes requests to registered providers.

Resolves the serving provider for each call (explicit override, then
the configured default, then the highest-priority registration), wraps
dispatch with caching and usage tracking, and passes provider errors
through unchanged.
"""

import json
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Optional, Type, Union

from opentelemetry import trace
from pydantic import ValidationError

from ..adapters import create_registry
from ..adapters.base import normalize_messages
from ..core.config import GatewayConfig
from ..core.errors import (
    InvalidArgumentError,
    ProviderConfigurationError,
    ProviderResponseError,
    QuotaExceededError,
    UnsupportedFeatureError,
)
from ..core.interface import AbstractProvider, MessageInput
from ..core.registry import ProviderRegistry
from ..models.message import ChatMessage
from ..models.options import (
    BaseOptions,
    ChatOptions,
    EmbeddingOptions,
    OptionsLike,
    ToolOptions,
    VisionOptions,
    resolve_options,
)
from ..models.response import (
    CompletionResponse,
    EmbeddingResponse,
    UsageStatistics,
    VisionResponse,
)
from .cache import CacheManager
from .pricing import PricingTable
from .usage import UsageTracker, validate_metrics

logger = logging.getLogger(__name__)

tracer = trace.get_tracer(__name__)

_JSON_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)

# keys that select the route or control caching; never part of the cached request
_ROUTING_KEYS = ("provider", "model", "cache_ttl")


@dataclass(frozen=True)
class _Scope:
    """Per-call overrides collected by the fluent interface."""
    provider: Optional[str] = None
    cache: Optional[bool] = None
    options: Dict[str, Any] = field(default_factory=dict)
    service_type: Optional[str] = None
    metrics: Dict[str, float] = field(default_factory=dict)


class LlmServiceManager:
    """
    Single entry point for chat, completion, embeddings and vision.

    The provider registry is fixed once the manager is wired; the
    fluent ``with_*`` methods return scoped views and never change
    manager state.
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        default_provider: Optional[str] = None,
        cache: Optional[CacheManager] = None,
        usage_tracker: Optional[UsageTracker] = None,
        pricing: Optional[PricingTable] = None,
        monthly_budget: Optional[float] = None,
        cache_ttl: int = CacheManager.DEFAULT_TTL,
    ):
        """
        Initialize the gateway.

        Args:
            registry: Registry holding configured providers
            default_provider: Identifier used when a call names none
            cache: Response cache (in-memory when omitted)
            usage_tracker: Usage tracker (in-memory when omitted)
            pricing: Pricing table used to estimate cost
            monthly_budget: Monthly cost limit in USD; None disables the check
            cache_ttl: TTL for opt-in completion caching
        """
        self._registry = registry if registry is not None else ProviderRegistry()
        self._default_provider = default_provider
        self._cache = cache if cache is not None else CacheManager()
        self._usage = usage_tracker if usage_tracker is not None else UsageTracker()
        self._pricing = pricing if pricing is not None else PricingTable()
        self._monthly_budget = monthly_budget
        self._cache_ttl = cache_ttl

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        cache: Optional[CacheManager] = None,
        usage_tracker: Optional[UsageTracker] = None,
        **adapter_kwargs: Any,
    ) -> "LlmServiceManager":
        """
        Build a gateway from configuration.

        Disabled providers are skipped.

        Args:
            config: Gateway configuration
            cache: Response cache
            usage_tracker: Usage tracker
            **adapter_kwargs: Extra adapter constructor arguments (e.g. http_client)

        Raises:
            ProviderConfigurationError: If a provider config is invalid or the
                default provider is not among the enabled providers
        """
        registry = create_registry()
        for provider_config in config.providers:
            if not provider_config.enabled:
                logger.info(f"Skipping disabled provider: {provider_config.identifier}")
                continue
            provider = registry.create_provider(provider_config, **adapter_kwargs)
            registry.register(provider, priority=provider_config.priority)

        if config.default_provider and config.default_provider not in registry:
            raise ProviderConfigurationError(
                f"Default provider is not configured: {config.default_provider}",
                provider=config.default_provider,
            )

        return cls(
            registry=registry,
            default_provider=config.default_provider,
            cache=cache,
            usage_tracker=usage_tracker,
            pricing=PricingTable(config.pricing),
            monthly_budget=config.monthly_budget,
            cache_ttl=config.cache_ttl,
        )

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def cache(self) -> CacheManager:
        return self._cache

    @property
    def usage_tracker(self) -> UsageTracker:
        return self._usage

    def register_provider(self, provider: AbstractProvider, priority: int = 0) -> None:
        """Register a configured provider during wiring."""
        self._registry.register(provider, priority)

    def get_provider(self, identifier: Optional[str] = None) -> AbstractProvider:
        """
        Resolve the provider for a call.

        Args:
            identifier: Explicit provider override

        Returns:
            The explicit provider, else the default, else the highest priority one

        Raises:
            ProviderNotFoundError: If an explicit or default identifier is unknown
            ProviderConfigurationError: If no provider is registered
        """
        if identifier:
            return self._registry.get(identifier)
        if self._default_provider:
            return self._registry.get(self._default_provider)

        provider = self._registry.highest_priority()
        if provider is None:
            raise ProviderConfigurationError("No providers registered")
        return provider

    def get_default_provider(self) -> AbstractProvider:
        return self.get_provider()

    def list_providers(self) -> List[Dict[str, Any]]:
        return self._registry.list_providers()

    def get_available_providers(self) -> Dict[str, AbstractProvider]:
        """Configured providers by identifier, in priority order."""
        return {p.identifier: p for p in self._registry.ordered() if p.is_configured}

    def has_available_provider(self) -> bool:
        return len(self.get_available_providers()) > 0

    def with_provider(self, identifier: str) -> "ScopedGateway":
        return ScopedGateway(self, _Scope(provider=identifier))

    def with_cache(self, enabled: bool = True) -> "ScopedGateway":
        return ScopedGateway(self, _Scope(cache=enabled))

    def with_options(self, options: OptionsLike = None, **overrides: Any) -> "ScopedGateway":
        return ScopedGateway(self, _Scope(options=_merge_scope_options({}, options, overrides)))

    def for_service(self, service_type: str, **metrics: float) -> "ScopedGateway":
        """Record usage of scoped calls under another service type."""
        return ScopedGateway(self, _Scope(service_type=service_type, metrics=validate_metrics(metrics)))

    def chat(self, messages: List[MessageInput], options: OptionsLike = None) -> CompletionResponse:
        return self._chat(messages, options, _Scope())

    def complete(self, prompt: str, options: OptionsLike = None) -> CompletionResponse:
        return self._chat([ChatMessage.user(prompt)], options, _Scope())

    def complete_json(self, prompt: str, options: OptionsLike = None) -> Any:
        return self._complete_json(prompt, options, _Scope())

    def complete_markdown(self, prompt: str, options: OptionsLike = None) -> CompletionResponse:
        return self._chat([ChatMessage.user(prompt)], _with_format(options, "markdown"), _Scope())

    def chat_with_tools(
        self,
        messages: List[MessageInput],
        tools: List[Dict[str, Any]],
        options: OptionsLike = None,
    ) -> CompletionResponse:
        return self._chat(messages, options, _Scope(), tools=tools)

    def stream_chat(self, messages: List[MessageInput], options: OptionsLike = None) -> Iterator[str]:
        """Stream a chat reply as text chunks; see _stream_chat."""
        return self._stream_chat(messages, options, _Scope())

    def embed(self, text: Union[str, List[str]], options: OptionsLike = None) -> EmbeddingResponse:
        texts = [text] if isinstance(text, str) else list(text)
        return self._embed(texts, options, _Scope())

    def embed_batch(self, texts: List[str], options: OptionsLike = None) -> EmbeddingResponse:
        return self._embed(list(texts), options, _Scope())

    def vision(self, image_url: str, prompt: str, options: OptionsLike = None) -> VisionResponse:
        return self._vision(image_url, prompt, options, _Scope())

    def _options(
        self,
        options: OptionsLike,
        scope: _Scope,
        options_cls: Type[BaseOptions],
    ) -> Dict[str, Any]:
        """Scope options, then the scoped provider, then inline options (which win)."""
        merged = dict(scope.options)
        if scope.provider:
            merged["provider"] = scope.provider
        merged.update(resolve_options(options, options_cls))
        return resolve_options(merged, options_cls)

    def _chat(
        self,
        messages: List[MessageInput],
        options: OptionsLike,
        scope: _Scope,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> CompletionResponse:
        opts = self._options(options, scope, ToolOptions if tools is not None else ChatOptions)
        provider = self.get_provider(opts.get("provider"))
        self._check_budget(provider)
        normalized = normalize_messages(messages)
        model = opts.get("model") or provider.default_model
        service_type = scope.service_type or "chat"
        use_cache = scope.cache is True

        with tracer.start_as_current_span(f"gateway.{service_type}") as span:
            span.set_attribute("gateway.provider", provider.identifier)
            span.set_attribute("gateway.model", model or "")

            cache_request = {k: v for k, v in opts.items() if k not in _ROUTING_KEYS}
            if tools is not None:
                cache_request["tools"] = tools

            if use_cache:
                cached = self._cache.get_cached_completion(
                    provider.identifier, model, normalized, cache_request,
                )
                response = self._load_cached(CompletionResponse, cached)
                if response is not None:
                    logger.debug(f"Completion cache hit for {provider.identifier}/{model}")
                    span.set_attribute("gateway.cache_hit", True)
                    self._track(service_type, provider.identifier, scope, tokens=0, cost=0.0)
                    return response

            span.set_attribute("gateway.cache_hit", False)
            if tools is not None:
                response = provider.chat_completion_with_tools(normalized, tools, opts)
            else:
                response = provider.chat_completion(normalized, opts)
            response = self._with_cost(response)

            if use_cache:
                self._cache.cache_completion(
                    provider.identifier,
                    model,
                    normalized,
                    cache_request,
                    response.model_dump(mode="json"),
                    ttl=opts.get("cache_ttl", self._cache_ttl),
                )

            self._track(
                service_type,
                provider.identifier,
                scope,
                tokens=response.usage.total_tokens,
                cost=response.usage.estimated_cost or 0.0,
            )
            return response

    def _stream_chat(self, messages: List[MessageInput], options: OptionsLike, scope: _Scope) -> Iterator[str]:
        """
        Resolve the provider and open a streamed chat.

        Routing, the capability check and the budget check run before the
        iterator is returned. Streams are never cached. One usage event
        is recorded when the stream ends or the caller closes it; streamed
        replies carry no token counts, so the event records the number
        of characters received.

        Raises:
            UnsupportedFeatureError: If the provider cannot stream
        """
        opts = self._options(options, scope, ChatOptions)
        provider = self.get_provider(opts.get("provider"))
        if not provider.supports_streaming():
            raise UnsupportedFeatureError(
                f"Provider {provider.identifier} does not support streaming",
                provider=provider.identifier,
                feature="streaming",
            )
        self._check_budget(provider)
        normalized = normalize_messages(messages)
        return self._iter_stream(provider, normalized, opts, scope)

    def _iter_stream(
        self,
        provider: AbstractProvider,
        messages: List[Dict[str, Any]],
        opts: Dict[str, Any],
        scope: _Scope,
    ) -> Iterator[str]:
        service_type = scope.service_type or "chat"
        span = tracer.start_span(f"gateway.{service_type}")
        span.set_attribute("gateway.provider", provider.identifier)
        span.set_attribute("gateway.model", opts.get("model") or provider.default_model or "")
        span.set_attribute("gateway.stream", True)

        received = 0
        try:
            for chunk in provider.stream_chat_completion(messages, opts):
                received += len(chunk)
                yield chunk
        except GeneratorExit:
            logger.debug(f"Stream from {provider.identifier} closed after {received} characters")
            self._track(service_type, provider.identifier, scope, characters=received)
            raise
        else:
            self._track(service_type, provider.identifier, scope, characters=received)
        finally:
            span.end()

    def _complete_json(self, prompt: str, options: OptionsLike, scope: _Scope) -> Any:
        response = self._chat([ChatMessage.user(prompt)], _with_format(options, "json"), scope)

        content = response.content.strip()
        fenced = _JSON_FENCE.match(content)
        if fenced:
            content = fenced.group(1)

        try:
            return json.loads(content)
        except ValueError as e:
            raise ProviderResponseError(
                f"Provider returned invalid JSON: {e}",
                provider=response.provider,
            ) from e

    def _embed(self, texts: List[str], options: OptionsLike, scope: _Scope) -> EmbeddingResponse:
        if not texts:
            raise InvalidArgumentError("At least one text is required for embeddings")
        if any(not isinstance(text, str) or not text.strip() for text in texts):
            raise InvalidArgumentError("Embedding input texts must be non-empty strings")

        opts = self._options(options, scope, EmbeddingOptions)
        provider = self.get_provider(opts.get("provider"))
        self._check_budget(provider)

        model = opts.get("model") or provider.default_embedding_model or "default"
        dimensions = opts.get("dimensions")
        ttl = opts.get("cache_ttl", CacheManager.EMBEDDING_TTL)
        use_cache = ttl > 0 and scope.cache is not False
        service_type = scope.service_type or "embeddings"

        with tracer.start_as_current_span(f"gateway.{service_type}") as span:
            span.set_attribute("gateway.provider", provider.identifier)
            span.set_attribute("gateway.model", model)
            span.set_attribute("gateway.batch_size", len(texts))

            vectors: List[Optional[List[float]]] = [None] * len(texts)
            reused_usage = UsageStatistics()
            response_model = model

            if use_cache:
                for index, text in enumerate(texts):
                    entry = self._cache.get_cached_embeddings(provider.identifier, model, text, dimensions)
                    if not entry or "vector" not in entry:
                        continue
                    vectors[index] = entry["vector"]
                    response_model = entry.get("model", response_model)
                    stored_usage = self._load_cached(UsageStatistics, entry.get("usage"))
                    if stored_usage is not None:
                        reused_usage = _add_usage(reused_usage, stored_usage)

            misses = [i for i, vector in enumerate(vectors) if vector is None]
            span.set_attribute("gateway.cache_hit", not misses)
            fresh_usage = UsageStatistics()

            if misses:
                # one provider call for all distinct texts not found in cache
                unique = list(dict.fromkeys(texts[i] for i in misses))
                response = self._with_cost(provider.embeddings(unique, opts))
                if response.count != len(unique):
                    raise ProviderResponseError(
                        f"{provider.name} returned {response.count} embeddings for {len(unique)} inputs",
                        provider=provider.identifier,
                    )

                by_text = dict(zip(unique, response.embeddings))
                for i in misses:
                    vectors[i] = by_text[texts[i]]
                fresh_usage = response.usage
                response_model = response.model or model

                if use_cache:
                    # usage is only attributable to a single text when the call had one input
                    entry_usage = fresh_usage.model_dump(mode="json") if len(unique) == 1 else None
                    for text in unique:
                        self._cache.cache_embeddings(
                            provider.identifier,
                            model,
                            text,
                            {"vector": by_text[text], "model": response_model, "usage": entry_usage},
                            dimensions=dimensions,
                            ttl=ttl,
                        )
            else:
                logger.debug(f"Embedding cache hit for {provider.identifier}/{model}")

            self._track(
                service_type,
                provider.identifier,
                scope,
                tokens=fresh_usage.total_tokens,
                cost=fresh_usage.estimated_cost or 0.0,
            )

            return EmbeddingResponse(
                embeddings=vectors,
                model=response_model,
                usage=_add_usage(reused_usage, fresh_usage),
                provider=provider.identifier,
            )

    def _vision(self, image_url: str, prompt: str, options: OptionsLike, scope: _Scope) -> VisionResponse:
        opts = self._options(options, scope, VisionOptions)
        provider = self.get_provider(opts.get("provider"))
        self._check_budget(provider)
        service_type = scope.service_type or "vision"

        with tracer.start_as_current_span(f"gateway.{service_type}") as span:
            span.set_attribute("gateway.provider", provider.identifier)
            span.set_attribute("gateway.model", opts.get("model") or provider.default_model or "")

            response = self._with_cost(provider.analyze_image(image_url, prompt, opts))

            self._track(
                service_type,
                provider.identifier,
                scope,
                tokens=response.usage.total_tokens,
                images=1,
                cost=response.usage.estimated_cost or 0.0,
            )
            return response

    def _with_cost(self, response):
        """Fill in estimated cost from the pricing table when the provider gave none."""
        if response.usage.estimated_cost is not None:
            return response
        cost = self._pricing.estimate_cost(response.model, response.usage)
        if cost is None:
            return response
        return response.replace(usage=response.usage.with_cost(cost))

    def _check_budget(self, provider: AbstractProvider) -> None:
        if self._monthly_budget is None:
            return
        try:
            spent = self._usage.get_current_month_cost()
        except Exception as e:
            logger.warning(f"Could not read monthly cost, skipping budget check: {e}")
            return

        if spent >= self._monthly_budget:
            raise QuotaExceededError(
                f"Monthly budget of ${self._monthly_budget:.2f} exhausted (${spent:.2f} spent)",
                provider=provider.identifier,
                budget=self._monthly_budget,
                spent=spent,
            )

    def _track(self, service_type: str, provider: str, scope: _Scope, **metrics: float) -> None:
        self._usage.track_usage(service_type, provider, {**metrics, **scope.metrics})

    @staticmethod
    def _load_cached(model_cls, data):
        if data is None:
            return None
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed cache entry: {e}")
            return None


class ScopedGateway:
    """
    Gateway view with per-call overrides.

    Created by LlmServiceManager.with_provider/with_cache/with_options;
    each chained call returns a new view.
    """

    def __init__(self, manager: LlmServiceManager, scope: _Scope):
        self._manager = manager
        self._scope = scope

    def with_provider(self, identifier: str) -> "ScopedGateway":
        return ScopedGateway(self._manager, replace(self._scope, provider=identifier))

    def with_cache(self, enabled: bool = True) -> "ScopedGateway":
        return ScopedGateway(self._manager, replace(self._scope, cache=enabled))

    def with_options(self, options: OptionsLike = None, **overrides: Any) -> "ScopedGateway":
        merged = _merge_scope_options(self._scope.options, options, overrides)
        return ScopedGateway(self._manager, replace(self._scope, options=merged))

    def for_service(self, service_type: str, **metrics: float) -> "ScopedGateway":
        merged = {**self._scope.metrics, **validate_metrics(metrics)}
        return ScopedGateway(self._manager, replace(self._scope, service_type=service_type, metrics=merged))

    def get_provider(self) -> AbstractProvider:
        return self._manager.get_provider(self._scope.provider or self._scope.options.get("provider"))

    def chat(self, messages: List[MessageInput], options: OptionsLike = None) -> CompletionResponse:
        return self._manager._chat(messages, options, self._scope)

    def complete(self, prompt: str, options: OptionsLike = None) -> CompletionResponse:
        return self._manager._chat([ChatMessage.user(prompt)], options, self._scope)

    def complete_json(self, prompt: str, options: OptionsLike = None) -> Any:
        return self._manager._complete_json(prompt, options, self._scope)

    def complete_markdown(self, prompt: str, options: OptionsLike = None) -> CompletionResponse:
        return self._manager._chat([ChatMessage.user(prompt)], _with_format(options, "markdown"), self._scope)

    def chat_with_tools(
        self,
        messages: List[MessageInput],
        tools: List[Dict[str, Any]],
        options: OptionsLike = None,
    ) -> CompletionResponse:
        return self._manager._chat(messages, options, self._scope, tools=tools)

    def stream_chat(self, messages: List[MessageInput], options: OptionsLike = None) -> Iterator[str]:
        return self._manager._stream_chat(messages, options, self._scope)

    def embed(self, text: Union[str, List[str]], options: OptionsLike = None) -> EmbeddingResponse:
        texts = [text] if isinstance(text, str) else list(text)
        return self._manager._embed(texts, options, self._scope)

    def embed_batch(self, texts: List[str], options: OptionsLike = None) -> EmbeddingResponse:
        return self._manager._embed(list(texts), options, self._scope)

    def vision(self, image_url: str, prompt: str, options: OptionsLike = None) -> VisionResponse:
        return self._manager._vision(image_url, prompt, options, self._scope)


def _merge_scope_options(current: Dict[str, Any], options: OptionsLike, overrides: Dict[str, Any]) -> Dict[str, Any]:
    # scoped options are checked later against the operation's options class
    if isinstance(options, BaseOptions):
        options = options.to_dict()
    return {**current, **dict(options or {}), **overrides}


def _with_format(options: OptionsLike, response_format: str) -> Dict[str, Any]:
    resolved = resolve_options(options, ChatOptions)
    resolved["response_format"] = response_format
    return resolved


def _add_usage(a: UsageStatistics, b: UsageStatistics) -> UsageStatistics:
    cost = None
    if a.estimated_cost is not None or b.estimated_cost is not None:
        cost = (a.estimated_cost or 0.0) + (b.estimated_cost or 0.0)
    return UsageStatistics(
        prompt_tokens=a.prompt_tokens + b.prompt_tokens,
        completion_tokens=a.completion_tokens + b.completion_tokens,
        total_tokens=a.total_tokens + b.total_tokens,
        estimated_cost=cost,
    )
