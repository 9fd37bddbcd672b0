"""
Anthropic Claude API adapter.

Translates the normalized chat model into the Messages API format:
system messages are lifted into the top-level ``system`` field and
responses arrive as a list of content blocks.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Set, Union

from ..core.interface import ProviderCapability, MessageInput
from ..core.errors import ProviderResponseError, UnsupportedFeatureError
from ..models.options import OptionsLike, ToolOptions, VisionOptions
from ..models.response import (
    CompletionResponse,
    EmbeddingResponse,
    ToolCall,
    UsageStatistics,
    VisionResponse,
)
from .base import HttpProviderAdapter, normalize_messages, parse_data_uri, sse_data, text_of

logger = logging.getLogger(__name__)

STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
}


def map_stop_reason(stop_reason: Optional[str]) -> str:
    """Map a Claude stop_reason onto the shared finish reason set."""
    if not stop_reason:
        return "stop"
    return STOP_REASONS.get(stop_reason, stop_reason)


def map_tool_choice(tool_choice: str) -> Dict[str, Any]:
    if tool_choice == "auto":
        return {"type": "auto"}
    if tool_choice == "none":
        return {"type": "none"}
    if tool_choice == "required":
        return {"type": "any"}
    return {"type": "tool", "name": tool_choice}


def convert_tools(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert OpenAI-format function tools into Claude tool definitions."""
    converted = []
    for tool in tools:
        function = tool.get("function", tool)
        converted.append({
            "name": function.get("name", ""),
            "description": function.get("description", ""),
            "input_schema": function.get("parameters") or {"type": "object", "properties": {}},
        })
    return converted


class AnthropicAdapter(HttpProviderAdapter):
    """
    Direct Anthropic API adapter.

    Connects directly to Anthropic's API for Claude models.
    """

    PROVIDER_TYPE = "claude"
    PROVIDER_NAME = "Anthropic Claude"
    DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
    ANTHROPIC_VERSION = "2023-06-01"
    DEFAULT_MAX_TOKENS = 4096

    @property
    def capabilities(self) -> Set[ProviderCapability]:
        return {
            ProviderCapability.CHAT_COMPLETION,
            ProviderCapability.VISION,
            ProviderCapability.STREAMING,
            ProviderCapability.TOOLS,
        }

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": self.ANTHROPIC_VERSION,
        }

    def chat_completion(
        self,
        messages: List[MessageInput],
        options: OptionsLike = None,
    ) -> CompletionResponse:
        """Create a chat completion via the messages endpoint."""
        opts = self._resolve(options)
        payload = self._messages_payload(normalize_messages(messages), opts)
        data = self._send_request("POST", "messages", payload)
        return self._parse_message(data, payload["model"])

    def chat_completion_with_tools(
        self,
        messages: List[MessageInput],
        tools: List[Dict[str, Any]],
        options: OptionsLike = None,
    ) -> CompletionResponse:
        opts = self._resolve(options, ToolOptions)
        payload = self._messages_payload(normalize_messages(messages), opts)
        payload["tools"] = convert_tools(tools)

        if "tool_choice" in opts:
            payload["tool_choice"] = map_tool_choice(opts["tool_choice"])
            if opts.get("parallel_tool_calls") is False and opts["tool_choice"] != "none":
                payload["tool_choice"]["disable_parallel_tool_use"] = True

        data = self._send_request("POST", "messages", payload)
        return self._parse_message(data, payload["model"])

    def stream_chat_completion(
        self,
        messages: List[MessageInput],
        options: OptionsLike = None,
    ) -> Iterator[str]:
        """Stream text deltas from the messages endpoint."""
        opts = self._resolve(options)
        payload = self._messages_payload(normalize_messages(messages), opts)
        payload["stream"] = True

        for event in sse_data(self._stream_request("POST", "messages", payload)):
            kind = event.get("type")
            if kind == "error":
                error = event.get("error") or {}
                raise ProviderResponseError(
                    error.get("message") or "Stream failed",
                    provider=self.identifier,
                )
            if kind == "content_block_delta":
                text = (event.get("delta") or {}).get("text")
                if text:
                    yield text

    def embeddings(
        self,
        input: Union[str, List[str]],
        options: OptionsLike = None,
    ) -> EmbeddingResponse:
        raise UnsupportedFeatureError(
            "Anthropic Claude does not provide an embeddings API",
            provider=self.identifier,
            feature="embeddings",
        )

    def analyze_image(
        self,
        image_url: str,
        prompt: str,
        options: OptionsLike = None,
    ) -> VisionResponse:
        """Analyze an image passed as a base64 data URI or a public URL."""
        opts = self._resolve(options, VisionOptions)

        inline = parse_data_uri(image_url)
        if inline:
            media_type, data = inline
            source = {"type": "base64", "media_type": media_type, "data": data}
        else:
            source = {"type": "url", "url": image_url}

        messages = [{
            "role": "user",
            "content": [
                {"type": "image", "source": source},
                {"type": "text", "text": prompt},
            ],
        }]
        payload = self._messages_payload(messages, opts)

        data = self._send_request("POST", "messages", payload)
        completion = self._parse_message(data, payload["model"])

        return VisionResponse(
            description=completion.content,
            model=completion.model,
            usage=completion.usage,
            provider=self.identifier,
        )

    def _messages_payload(self, messages: List[Dict[str, Any]], opts: Dict[str, Any]) -> Dict[str, Any]:
        system_parts = [text_of(m["content"]) for m in messages if m["role"] == "system"]
        if opts.get("system_prompt") and not system_parts:
            system_parts.append(opts["system_prompt"])

        conversation = []
        for message in messages:
            if message["role"] == "system":
                continue
            # tool results are sent back as user turns
            role = "user" if message["role"] == "tool" else message["role"]
            conversation.append({"role": role, "content": message["content"]})

        payload: Dict[str, Any] = {
            "model": opts.get("model") or self._model,
            "max_tokens": opts.get("max_tokens", self.DEFAULT_MAX_TOKENS),
            "messages": conversation,
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        for key in ("temperature", "top_p", "stop_sequences"):
            if key in opts:
                payload[key] = opts[key]

        return payload

    def _parse_message(self, data: Dict[str, Any], model: str) -> CompletionResponse:
        text_blocks = []
        tool_calls = []
        for block in data.get("content") or []:
            if block.get("type") == "text":
                text_blocks.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.get("id", ""),
                    name=block.get("name", ""),
                    arguments=block.get("input") or {},
                ))

        usage = data.get("usage") or {}
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)

        return CompletionResponse(
            content="".join(text_blocks),
            model=data.get("model", model),
            usage=UsageStatistics(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            finish_reason=map_stop_reason(data.get("stop_reason")),
            provider=self.identifier,
            tool_calls=tool_calls,
            metadata={"id": data["id"]} if data.get("id") else {},
        )
