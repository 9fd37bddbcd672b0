"""
Direct OpenAI API adapter.

Also the base for OpenAI-compatible APIs (Mistral, Groq, OpenRouter).
"""

import logging
from typing import Any, Dict, Iterator, List, Set, Union

from ..core.interface import ProviderCapability, MessageInput
from ..core.errors import UnsupportedFeatureError
from ..models.options import EmbeddingOptions, OptionsLike, ToolOptions, VisionOptions
from ..models.response import (
    CompletionResponse,
    EmbeddingResponse,
    ToolCall,
    UsageStatistics,
    VisionResponse,
)
from .base import HttpProviderAdapter, decode_arguments, normalize_messages, sse_data, text_of

logger = logging.getLogger(__name__)

# option key -> wire key
_SAMPLING_KEYS = {
    "temperature": "temperature",
    "max_tokens": "max_tokens",
    "top_p": "top_p",
    "frequency_penalty": "frequency_penalty",
    "presence_penalty": "presence_penalty",
    "seed": "seed",
    "stop_sequences": "stop",
}


class OpenAIAdapter(HttpProviderAdapter):
    """
    Direct OpenAI API adapter.

    Chat completions, embeddings, vision and tool calling against
    the OpenAI REST API.
    """

    PROVIDER_TYPE = "openai"
    PROVIDER_NAME = "OpenAI"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MODEL = "gpt-4o"
    DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
    SAMPLING_KEYS = _SAMPLING_KEYS

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
        headers = super()._build_headers()
        if self._config is not None and self._config.organization_id:
            headers["OpenAI-Organization"] = self._config.organization_id
        return headers

    def chat_completion(
        self,
        messages: List[MessageInput],
        options: OptionsLike = None,
    ) -> CompletionResponse:
        """Create a chat completion via the chat/completions endpoint."""
        opts = self._resolve(options)
        payload = self._chat_payload(normalize_messages(messages), opts)
        data = self._send_request("POST", "chat/completions", payload)
        return self._parse_completion(data, payload["model"])

    def chat_completion_with_tools(
        self,
        messages: List[MessageInput],
        tools: List[Dict[str, Any]],
        options: OptionsLike = None,
    ) -> CompletionResponse:
        """Chat completion with OpenAI-format function tools."""
        opts = self._resolve(options, ToolOptions)
        payload = self._chat_payload(normalize_messages(messages), opts)
        payload["tools"] = tools

        if "tool_choice" in opts:
            payload["tool_choice"] = opts["tool_choice"]
        if "parallel_tool_calls" in opts:
            payload["parallel_tool_calls"] = opts["parallel_tool_calls"]

        data = self._send_request("POST", "chat/completions", payload)
        return self._parse_completion(data, payload["model"])

    def stream_chat_completion(
        self,
        messages: List[MessageInput],
        options: OptionsLike = None,
    ) -> Iterator[str]:
        """Stream chat/completions deltas over server-sent events."""
        opts = self._resolve(options)
        payload = self._chat_payload(normalize_messages(messages), opts)
        payload["stream"] = True

        for event in sse_data(self._stream_request("POST", "chat/completions", payload)):
            choices = event.get("choices") or [{}]
            content = (choices[0].get("delta") or {}).get("content")
            if content:
                yield content

    def embeddings(
        self,
        input: Union[str, List[str]],
        options: OptionsLike = None,
    ) -> EmbeddingResponse:
        """Create embeddings; the whole batch is sent in one request."""
        if ProviderCapability.EMBEDDINGS not in self.capabilities:
            raise UnsupportedFeatureError(
                f"{self.name} does not support embeddings",
                provider=self.identifier,
                feature="embeddings",
            )

        opts = self._resolve(options, EmbeddingOptions)
        texts = self._as_list(input)
        payload = self._embedding_payload(texts, opts)

        data = self._send_request("POST", "embeddings", payload)

        items = sorted(data.get("data", []), key=lambda item: item.get("index", 0))
        usage = data.get("usage") or {}
        prompt_tokens = usage.get("prompt_tokens", 0)

        return EmbeddingResponse(
            embeddings=[item["embedding"] for item in items],
            model=data.get("model", payload["model"]),
            usage=UsageStatistics(
                prompt_tokens=prompt_tokens,
                total_tokens=usage.get("total_tokens", prompt_tokens),
            ),
            provider=self.identifier,
        )

    def analyze_image(
        self,
        image_url: str,
        prompt: str,
        options: OptionsLike = None,
    ) -> VisionResponse:
        """Analyze an image by sending it as an image_url content part."""
        if ProviderCapability.VISION not in self.capabilities:
            return super().analyze_image(image_url, prompt, options)

        opts = self._resolve(options, VisionOptions)
        content = [
            {"type": "text", "text": prompt},
            {
                "type": "image_url",
                "image_url": {"url": image_url, "detail": opts.get("detail_level", "auto")},
            },
        ]
        messages = self._apply_system_prompt([{"role": "user", "content": content}], opts)

        payload = {"model": opts.get("model") or self._model, "messages": messages}
        for key in ("max_tokens", "temperature"):
            if key in opts:
                payload[key] = opts[key]

        data = self._send_request("POST", "chat/completions", payload)
        completion = self._parse_completion(data, payload["model"])

        return VisionResponse(
            description=completion.content,
            model=completion.model,
            usage=completion.usage,
            provider=self.identifier,
        )

    def _chat_payload(self, messages: List[Dict[str, Any]], opts: Dict[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": opts.get("model") or self._model,
            "messages": self._apply_system_prompt(messages, opts),
        }
        for key, wire_key in self.SAMPLING_KEYS.items():
            if key in opts:
                payload[wire_key] = opts[key]

        if opts.get("response_format") == "json":
            payload["response_format"] = {"type": "json_object"}

        return payload

    def _embedding_payload(self, texts: List[str], opts: Dict[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": opts.get("model") or self.DEFAULT_EMBEDDING_MODEL,
            "input": texts,
        }
        if "dimensions" in opts:
            payload["dimensions"] = opts["dimensions"]
        return payload

    def _parse_completion(self, data: Dict[str, Any], model: str) -> CompletionResponse:
        choices = data.get("choices") or [{}]
        choice = choices[0]
        message = choice.get("message") or {}

        tool_calls = []
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            tool_calls.append(ToolCall(
                id=call.get("id", ""),
                type=call.get("type", "function"),
                name=function.get("name", ""),
                arguments=decode_arguments(function.get("arguments")),
            ))

        usage = data.get("usage") or {}
        prompt_tokens = usage.get("prompt_tokens", 0)
        completion_tokens = usage.get("completion_tokens", 0)

        return CompletionResponse(
            content=text_of(message.get("content")),
            model=data.get("model", model),
            usage=UsageStatistics(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=usage.get("total_tokens", prompt_tokens + completion_tokens),
            ),
            finish_reason=choice.get("finish_reason") or "stop",
            provider=self.identifier,
            tool_calls=tool_calls,
            metadata={"id": data["id"]} if data.get("id") else {},
        )
