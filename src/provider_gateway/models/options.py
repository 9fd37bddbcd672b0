"""
Validated, immutable option objects for gateway operations.

Every ``with_*`` method returns a new instance and re-runs validation,
so an options object can be shared across calls without aliasing.
"""

from typing import Any, Dict, List, Literal, Mapping, Optional, Type, Union

from pydantic import Field

from .base import ValueObject
from ..core.errors import InvalidArgumentError

ResponseFormat = Literal["text", "json", "markdown"]
DetailLevel = Literal["auto", "low", "high"]
Formality = Literal["default", "formal", "informal"]
Domain = Literal["general", "technical", "medical", "legal", "marketing"]
ToolChoice = Literal["auto", "none", "required"]


class BaseOptions(ValueObject):
    """Common behaviour of all option objects."""

    provider: Optional[str] = None
    model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire-neutral snake_case map with absent fields omitted."""
        return self.model_dump(exclude_none=True)

    def merge(self, overrides: Mapping[str, Any]) -> Dict[str, Any]:
        """Overlay explicit overrides on this object's map; overrides win."""
        return {**self.to_dict(), **dict(overrides)}

    def with_provider(self, provider: Optional[str]):
        return self.replace(provider=provider)

    def with_model(self, model: Optional[str]):
        return self.replace(model=model)


class ChatOptions(BaseOptions):
    """Options for chat completion."""

    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    frequency_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    presence_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    response_format: Optional[ResponseFormat] = None
    system_prompt: Optional[str] = None
    stop_sequences: Optional[List[str]] = None
    seed: Optional[int] = Field(default=None, ge=0)

    @classmethod
    def factual(cls, **overrides: Any) -> "ChatOptions":
        """Low temperature for precise answers."""
        return cls(**{"temperature": 0.2, "top_p": 0.9, **overrides})

    @classmethod
    def creative(cls, **overrides: Any) -> "ChatOptions":
        return cls(**{"temperature": 1.2, "top_p": 1.0, "presence_penalty": 0.6, **overrides})

    @classmethod
    def balanced(cls, **overrides: Any) -> "ChatOptions":
        return cls(**{"temperature": 0.7, "max_tokens": 4096, **overrides})

    @classmethod
    def json_mode(cls, **overrides: Any) -> "ChatOptions":
        """Structured JSON output."""
        return cls(**{"temperature": 0.3, "response_format": "json", **overrides})

    @classmethod
    def code(cls, **overrides: Any) -> "ChatOptions":
        return cls(**{
            "temperature": 0.2,
            "max_tokens": 8192,
            "top_p": 0.95,
            "frequency_penalty": 0.0,
            **overrides,
        })

    def with_temperature(self, temperature: Optional[float]):
        return self.replace(temperature=temperature)

    def with_max_tokens(self, max_tokens: Optional[int]):
        return self.replace(max_tokens=max_tokens)

    def with_top_p(self, top_p: Optional[float]):
        return self.replace(top_p=top_p)

    def with_frequency_penalty(self, penalty: Optional[float]):
        return self.replace(frequency_penalty=penalty)

    def with_presence_penalty(self, penalty: Optional[float]):
        return self.replace(presence_penalty=penalty)

    def with_response_format(self, response_format: Optional[str]):
        return self.replace(response_format=response_format)

    def with_system_prompt(self, system_prompt: Optional[str]):
        return self.replace(system_prompt=system_prompt)

    def with_stop_sequences(self, stop_sequences: Optional[List[str]]):
        return self.replace(stop_sequences=stop_sequences)


class ToolOptions(ChatOptions):
    """Chat options with tool-calling controls."""

    tool_choice: Optional[ToolChoice] = None
    parallel_tool_calls: Optional[bool] = None

    @classmethod
    def auto(cls, **overrides: Any) -> "ToolOptions":
        return cls(**{"tool_choice": "auto", **overrides})

    @classmethod
    def required(cls, **overrides: Any) -> "ToolOptions":
        """Force the model to call at least one tool."""
        return cls(**{"tool_choice": "required", **overrides})

    @classmethod
    def no_tools(cls, **overrides: Any) -> "ToolOptions":
        return cls(**{"tool_choice": "none", **overrides})

    @classmethod
    def parallel(cls, **overrides: Any) -> "ToolOptions":
        return cls(**{"tool_choice": "auto", "parallel_tool_calls": True, **overrides})

    def with_tool_choice(self, tool_choice: Optional[str]):
        return self.replace(tool_choice=tool_choice)

    def with_parallel_tool_calls(self, enabled: Optional[bool]):
        return self.replace(parallel_tool_calls=enabled)


class EmbeddingOptions(BaseOptions):
    """Options for embedding generation."""

    dimensions: Optional[int] = Field(default=None, gt=0)
    cache_ttl: Optional[int] = Field(default=86400, ge=0)

    @classmethod
    def standard(cls, **overrides: Any) -> "EmbeddingOptions":
        return cls(**overrides)

    @classmethod
    def no_cache(cls, **overrides: Any) -> "EmbeddingOptions":
        return cls(**{"cache_ttl": 0, **overrides})

    @classmethod
    def compact(cls, **overrides: Any) -> "EmbeddingOptions":
        """Small vectors for cheap storage."""
        return cls(**{"dimensions": 256, **overrides})

    @classmethod
    def high_precision(cls, **overrides: Any) -> "EmbeddingOptions":
        return cls(**{"dimensions": 1536, **overrides})

    def with_dimensions(self, dimensions: Optional[int]):
        return self.replace(dimensions=dimensions)

    def with_cache_ttl(self, cache_ttl: Optional[int]):
        return self.replace(cache_ttl=cache_ttl)


class VisionOptions(BaseOptions):
    """Options for image analysis."""

    detail_level: Optional[DetailLevel] = "auto"
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)

    @classmethod
    def alt_text(cls, **overrides: Any) -> "VisionOptions":
        """Short, accessible alt text."""
        return cls(**{"detail_level": "low", "max_tokens": 100, "temperature": 0.5, **overrides})

    @classmethod
    def detailed(cls, **overrides: Any) -> "VisionOptions":
        return cls(**{"detail_level": "high", "max_tokens": 500, "temperature": 0.7, **overrides})

    @classmethod
    def quick(cls, **overrides: Any) -> "VisionOptions":
        return cls(**{"detail_level": "low", "max_tokens": 200, "temperature": 0.5, **overrides})

    @classmethod
    def comprehensive(cls, **overrides: Any) -> "VisionOptions":
        return cls(**{"detail_level": "high", "max_tokens": 1000, "temperature": 0.7, **overrides})

    def with_detail_level(self, detail_level: Optional[str]):
        return self.replace(detail_level=detail_level)

    def with_max_tokens(self, max_tokens: Optional[int]):
        return self.replace(max_tokens=max_tokens)

    def with_temperature(self, temperature: Optional[float]):
        return self.replace(temperature=temperature)


class TranslationOptions(BaseOptions):
    """Options for translation."""

    formality: Optional[Formality] = "default"
    domain: Optional[Domain] = "general"
    glossary: Optional[Dict[str, str]] = None
    context: Optional[str] = None
    preserve_formatting: bool = True
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)

    @classmethod
    def formal(cls, **overrides: Any) -> "TranslationOptions":
        return cls(**{"formality": "formal", **overrides})

    @classmethod
    def informal(cls, **overrides: Any) -> "TranslationOptions":
        return cls(**{"formality": "informal", **overrides})

    @classmethod
    def technical(cls, **overrides: Any) -> "TranslationOptions":
        return cls(**{"domain": "technical", "formality": "formal", "temperature": 0.2, **overrides})

    @classmethod
    def marketing(cls, **overrides: Any) -> "TranslationOptions":
        return cls(**{"domain": "marketing", "temperature": 0.7, **overrides})

    @classmethod
    def medical(cls, **overrides: Any) -> "TranslationOptions":
        return cls(**{"domain": "medical", "formality": "formal", "temperature": 0.1, **overrides})

    @classmethod
    def legal(cls, **overrides: Any) -> "TranslationOptions":
        return cls(**{"domain": "legal", "formality": "formal", "temperature": 0.1, **overrides})

    def with_formality(self, formality: Optional[str]):
        return self.replace(formality=formality)

    def with_domain(self, domain: Optional[str]):
        return self.replace(domain=domain)

    def with_glossary(self, glossary: Optional[Dict[str, str]]):
        return self.replace(glossary=glossary)

    def with_context(self, context: Optional[str]):
        return self.replace(context=context)

    def with_preserve_formatting(self, preserve: bool):
        return self.replace(preserve_formatting=preserve)

    def with_temperature(self, temperature: Optional[float]):
        return self.replace(temperature=temperature)

    def with_max_tokens(self, max_tokens: Optional[int]):
        return self.replace(max_tokens=max_tokens)


OptionsLike = Union[BaseOptions, Mapping[str, Any], None]


def resolve_options(
    options: OptionsLike,
    options_cls: Optional[Type[BaseOptions]] = None,
) -> Dict[str, Any]:
    """
    Normalize a typed options object or a raw map into one canonical map.

    Known keys of a raw map are validated through ``options_cls``
    (ChatOptions by default); unknown keys are passed through unchanged.

    Args:
        options: Typed options, raw mapping, or None
        options_cls: Options class used to validate raw maps

    Returns:
        Wire-neutral option map without None values

    Raises:
        InvalidArgumentError: If a known key holds an invalid value
    """
    if options is None:
        return {}
    if isinstance(options, BaseOptions):
        return options.to_dict()
    if not isinstance(options, Mapping):
        raise InvalidArgumentError(
            f"Options must be an options object or a mapping, got {type(options).__name__}"
        )

    cls = options_cls or ChatOptions
    known = {k: v for k, v in options.items() if k in cls.model_fields and v is not None}
    extra = {k: v for k, v in options.items() if k not in cls.model_fields and v is not None}

    # only keys the caller actually supplied, so class defaults do not leak in
    validated = cls(**known).model_dump(include=set(known), exclude_none=True)
    return {**extra, **validated}
