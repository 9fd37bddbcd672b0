"""
Google Gemini API adapter.

Uses the generativelanguage REST API with the API key passed as a
query parameter.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Set, Union

from ..core.interface import ProviderCapability, MessageInput
from ..models.options import EmbeddingOptions, OptionsLike, ToolOptions, VisionOptions
from ..models.response import (
    CompletionResponse,
    EmbeddingResponse,
    ToolCall,
    UsageStatistics,
    VisionResponse,
)
from .base import HttpProviderAdapter, normalize_messages, parse_data_uri, sse_data, text_of

logger = logging.getLogger(__name__)

FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
}

TOOL_MODES = {
    "auto": "AUTO",
    "none": "NONE",
    "required": "ANY",
}


def map_finish_reason(reason: Optional[str]) -> str:
    if not reason:
        return "stop"
    return FINISH_REASONS.get(reason, reason.lower())


class GeminiAdapter(HttpProviderAdapter):
    """Google Gemini adapter (chat, embeddings, vision, tools)."""

    PROVIDER_TYPE = "gemini"
    PROVIDER_NAME = "Google Gemini"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-2.0-flash"
    DEFAULT_EMBEDDING_MODEL = "text-embedding-004"

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
        return {"Content-Type": "application/json"}

    def _build_params(self) -> Dict[str, str]:
        return {"key": self._api_key}

    def chat_completion(
        self,
        messages: List[MessageInput],
        options: OptionsLike = None,
    ) -> CompletionResponse:
        """Create a completion via models/{model}:generateContent."""
        opts = self._resolve(options)
        model = opts.get("model") or self._model
        payload = self._content_payload(normalize_messages(messages), opts)
        data = self._send_request("POST", f"models/{model}:generateContent", payload)
        return self._parse_candidates(data, model)

    def chat_completion_with_tools(
        self,
        messages: List[MessageInput],
        tools: List[Dict[str, Any]],
        options: OptionsLike = None,
    ) -> CompletionResponse:
        opts = self._resolve(options, ToolOptions)
        model = opts.get("model") or self._model
        payload = self._content_payload(normalize_messages(messages), opts)

        declarations = []
        for tool in tools:
            function = tool.get("function", tool)
            declaration = {
                "name": function.get("name", ""),
                "description": function.get("description", ""),
            }
            if function.get("parameters"):
                declaration["parameters"] = function["parameters"]
            declarations.append(declaration)
        payload["tools"] = [{"functionDeclarations": declarations}]

        if opts.get("tool_choice") in TOOL_MODES:
            payload["toolConfig"] = {
                "functionCallingConfig": {"mode": TOOL_MODES[opts["tool_choice"]]},
            }

        data = self._send_request("POST", f"models/{model}:generateContent", payload)
        return self._parse_candidates(data, model)

    def stream_chat_completion(
        self,
        messages: List[MessageInput],
        options: OptionsLike = None,
    ) -> Iterator[str]:
        """Stream via models/{model}:streamGenerateContent as server-sent events."""
        opts = self._resolve(options)
        model = opts.get("model") or self._model
        payload = self._content_payload(normalize_messages(messages), opts)
        lines = self._stream_request(
            "POST", f"models/{model}:streamGenerateContent", payload, params={"alt": "sse"},
        )

        for event in sse_data(lines):
            for candidate in (event.get("candidates") or [])[:1]:
                parts = (candidate.get("content") or {}).get("parts") or []
                text = "".join(part.get("text", "") for part in parts)
                if text:
                    yield text

    def list_models(self) -> List[str]:
        data = self._send_request("GET", "models")
        names = (item.get("name", "") for item in data.get("models") or [])
        return sorted(name[len("models/"):] if name.startswith("models/") else name for name in names if name)

    def embeddings(
        self,
        input: Union[str, List[str]],
        options: OptionsLike = None,
    ) -> EmbeddingResponse:
        """Embed each text with its own embedContent call."""
        opts = self._resolve(options, EmbeddingOptions)
        texts = self._as_list(input)
        model = opts.get("model") or self.DEFAULT_EMBEDDING_MODEL

        vectors = []
        for text in texts:
            payload: Dict[str, Any] = {
                "model": f"models/{model}",
                "content": {"parts": [{"text": text}]},
            }
            if "dimensions" in opts:
                payload["outputDimensionality"] = opts["dimensions"]
            data = self._send_request("POST", f"models/{model}:embedContent", payload)
            vectors.append((data.get("embedding") or {}).get("values", []))

        # the embedding API reports no usage; estimate four characters per token
        estimated_tokens = sum(len(text) // 4 for text in texts)

        return EmbeddingResponse(
            embeddings=vectors,
            model=model,
            usage=UsageStatistics(prompt_tokens=estimated_tokens, total_tokens=estimated_tokens),
            provider=self.identifier,
        )

    def analyze_image(
        self,
        image_url: str,
        prompt: str,
        options: OptionsLike = None,
    ) -> VisionResponse:
        opts = self._resolve(options, VisionOptions)
        model = opts.get("model") or self._model

        inline = parse_data_uri(image_url)
        if inline:
            mime_type, data = inline
            image_part = {"inlineData": {"mimeType": mime_type, "data": data}}
        else:
            image_part = {"fileData": {"mimeType": "image/jpeg", "fileUri": image_url}}

        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}, image_part]}],
        }
        generation_config = self._generation_config(opts)
        if generation_config:
            payload["generationConfig"] = generation_config

        data = self._send_request("POST", f"models/{model}:generateContent", payload)
        completion = self._parse_candidates(data, model)

        return VisionResponse(
            description=completion.content,
            model=completion.model,
            usage=completion.usage,
            provider=self.identifier,
        )

    def _content_payload(self, messages: List[Dict[str, Any]], opts: Dict[str, Any]) -> Dict[str, Any]:
        messages = self._apply_system_prompt(messages, opts)

        system_parts = []
        contents = []
        for message in messages:
            text = text_of(message["content"])
            if message["role"] == "system":
                system_parts.append({"text": text})
                continue
            role = "model" if message["role"] == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": text}]})

        payload: Dict[str, Any] = {"contents": contents}
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}

        generation_config = self._generation_config(opts)
        if generation_config:
            payload["generationConfig"] = generation_config

        return payload

    @staticmethod
    def _generation_config(opts: Dict[str, Any]) -> Dict[str, Any]:
        config: Dict[str, Any] = {}
        if "temperature" in opts:
            config["temperature"] = opts["temperature"]
        if "max_tokens" in opts:
            config["maxOutputTokens"] = opts["max_tokens"]
        if "top_p" in opts:
            config["topP"] = opts["top_p"]
        if "top_k" in opts:
            config["topK"] = opts["top_k"]
        if "stop_sequences" in opts:
            config["stopSequences"] = opts["stop_sequences"]
        if opts.get("response_format") == "json":
            config["responseMimeType"] = "application/json"
        return config

    def _parse_candidates(self, data: Dict[str, Any], model: str) -> CompletionResponse:
        candidates = data.get("candidates") or []
        usage = data.get("usageMetadata") or {}
        prompt_tokens = usage.get("promptTokenCount", 0)
        completion_tokens = usage.get("candidatesTokenCount", 0)
        usage_stats = UsageStatistics(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=usage.get("totalTokenCount", prompt_tokens + completion_tokens),
        )

        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            return CompletionResponse(
                content="",
                model=model,
                usage=usage_stats,
                finish_reason="content_filter" if block_reason else "stop",
                provider=self.identifier,
                metadata={"block_reason": block_reason} if block_reason else {},
            )

        candidate = candidates[0]
        texts = []
        tool_calls = []
        for index, part in enumerate((candidate.get("content") or {}).get("parts") or []):
            if "text" in part:
                texts.append(part["text"])
            elif "functionCall" in part:
                call = part["functionCall"]
                tool_calls.append(ToolCall(
                    id=f"call_{index}",
                    name=call.get("name", ""),
                    arguments=call.get("args") or {},
                ))

        finish_reason = map_finish_reason(candidate.get("finishReason"))
        if tool_calls and finish_reason == "stop":
            finish_reason = "tool_calls"

        return CompletionResponse(
            content="".join(texts),
            model=data.get("modelVersion", model),
            usage=usage_stats,
            finish_reason=finish_reason,
            provider=self.identifier,
            tool_calls=tool_calls,
        )
