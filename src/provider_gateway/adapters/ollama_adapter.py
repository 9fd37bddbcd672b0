"""
Ollama adapter.

Connects to a local or self-hosted Ollama server. No API key is needed.
"""

import json
import logging
from typing import Any, Dict, Iterator, List, Set, Union

from ..core.interface import ProviderCapability, MessageInput
from ..core.errors import InvalidArgumentError, ProviderResponseError
from ..models.options import EmbeddingOptions, OptionsLike, ToolOptions, VisionOptions
from ..models.response import (
    CompletionResponse,
    EmbeddingResponse,
    ToolCall,
    UsageStatistics,
    VisionResponse,
)
from .base import HttpProviderAdapter, decode_arguments, normalize_messages, parse_data_uri, text_of

logger = logging.getLogger(__name__)


class OllamaAdapter(HttpProviderAdapter):
    """
    Ollama adapter for local models.

    Supports any model pulled into the Ollama server.
    """

    PROVIDER_TYPE = "ollama"
    PROVIDER_NAME = "Ollama"
    DEFAULT_BASE_URL = "http://localhost:11434"
    DEFAULT_MODEL = "llama3.2"
    DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"
    REQUIRES_API_KEY = False

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

    def chat_completion(
        self,
        messages: List[MessageInput],
        options: OptionsLike = None,
    ) -> CompletionResponse:
        """Create a chat completion via api/chat (non-streaming)."""
        opts = self._resolve(options)
        payload = self._chat_payload(normalize_messages(messages), opts)
        data = self._send_request("POST", "api/chat", payload)
        return self._parse_chat(data, payload["model"])

    def chat_completion_with_tools(
        self,
        messages: List[MessageInput],
        tools: List[Dict[str, Any]],
        options: OptionsLike = None,
    ) -> CompletionResponse:
        opts = self._resolve(options, ToolOptions)
        payload = self._chat_payload(normalize_messages(messages), opts)
        if opts.get("tool_choice") != "none":
            payload["tools"] = tools
        data = self._send_request("POST", "api/chat", payload)
        return self._parse_chat(data, payload["model"])

    def stream_chat_completion(
        self,
        messages: List[MessageInput],
        options: OptionsLike = None,
    ) -> Iterator[str]:
        """Stream api/chat, which answers with one JSON object per line."""
        opts = self._resolve(options)
        payload = self._chat_payload(normalize_messages(messages), opts)
        payload["stream"] = True

        for line in self._stream_request("POST", "api/chat", payload):
            try:
                chunk = json.loads(line)
            except ValueError:
                logger.debug(f"Skipping malformed stream line: {line[:100]}")
                continue
            if not isinstance(chunk, dict):
                continue
            if chunk.get("error"):
                raise ProviderResponseError(str(chunk["error"]), provider=self.identifier)
            content = (chunk.get("message") or {}).get("content")
            if content:
                yield content
            if chunk.get("done"):
                return

    def list_models(self) -> List[str]:
        """Models pulled into the server (api/tags)."""
        data = self._send_request("GET", "api/tags")
        return sorted(item["name"] for item in data.get("models") or [] if item.get("name"))

    def embeddings(
        self,
        input: Union[str, List[str]],
        options: OptionsLike = None,
    ) -> EmbeddingResponse:
        """Embed each text with its own api/embeddings call."""
        opts = self._resolve(options, EmbeddingOptions)
        texts = self._as_list(input)
        model = opts.get("model") or self.DEFAULT_EMBEDDING_MODEL

        vectors = []
        for text in texts:
            data = self._send_request("POST", "api/embeddings", {"model": model, "prompt": text})
            vectors.append(data.get("embedding", []))

        return EmbeddingResponse(
            embeddings=vectors,
            model=model,
            usage=UsageStatistics(),
            provider=self.identifier,
        )

    def analyze_image(
        self,
        image_url: str,
        prompt: str,
        options: OptionsLike = None,
    ) -> VisionResponse:
        """Analyze a base64 data URI image with a multimodal model."""
        inline = parse_data_uri(image_url)
        if not inline:
            raise InvalidArgumentError(
                "Ollama vision requires a base64 data URI image",
                provider=self.identifier,
            )

        opts = self._resolve(options, VisionOptions)
        messages = [{"role": "user", "content": prompt, "images": [inline[1]]}]
        payload = self._chat_payload(messages, opts)

        data = self._send_request("POST", "api/chat", payload)
        completion = self._parse_chat(data, payload["model"])

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
            "stream": False,
        }

        model_options: Dict[str, Any] = {}
        if "temperature" in opts:
            model_options["temperature"] = opts["temperature"]
        if "top_p" in opts:
            model_options["top_p"] = opts["top_p"]
        if "max_tokens" in opts:
            model_options["num_predict"] = opts["max_tokens"]
        if "stop_sequences" in opts:
            model_options["stop"] = opts["stop_sequences"]
        if "seed" in opts:
            model_options["seed"] = opts["seed"]
        if model_options:
            payload["options"] = model_options

        if opts.get("response_format") == "json":
            payload["format"] = "json"

        return payload

    def _parse_chat(self, data: Dict[str, Any], model: str) -> CompletionResponse:
        message = data.get("message") or {}
        prompt_tokens = data.get("prompt_eval_count", 0)
        completion_tokens = data.get("eval_count", 0)

        tool_calls = []
        for index, call in enumerate(message.get("tool_calls") or []):
            function = call.get("function") or {}
            tool_calls.append(ToolCall(
                id=call.get("id") or f"call_{index}",
                name=function.get("name", ""),
                arguments=decode_arguments(function.get("arguments")),
            ))

        finish_reason = data.get("done_reason") or "stop"
        if tool_calls and finish_reason == "stop":
            finish_reason = "tool_calls"

        return CompletionResponse(
            content=text_of(message.get("content")),
            model=data.get("model", model),
            usage=UsageStatistics(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            finish_reason=finish_reason,
            provider=self.identifier,
            tool_calls=tool_calls,
        )
