"""
Shared fixtures for provider gateway tests.
"""

import json
import re
from typing import Any, Dict, List, Optional

import httpx
import pytest

from provider_gateway.core.config import ProviderConfig
from provider_gateway.core.interface import AbstractProvider, ProviderCapability
from provider_gateway.models.options import resolve_options
from provider_gateway.models.response import (
    CompletionResponse,
    EmbeddingResponse,
    UsageStatistics,
    VisionResponse,
)


class FakeProviderAPI:
    """Scripted HTTP backend; the last scripted response repeats."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []
        self.delays: List[float] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        status, body = item
        if isinstance(body, bytes):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def make_adapter():
    """Build a configured adapter wired to a FakeProviderAPI."""

    def factory(adapter_cls, *responses, **config):
        api = FakeProviderAPI(*responses)
        adapter = adapter_cls(
            transport=httpx.MockTransport(api.handler),
            sleep=api.delays.append,
        )
        api_key = config.pop("api_key", "test-key")
        adapter.configure(ProviderConfig(type=adapter_cls.PROVIDER_TYPE, api_key=api_key, **config))
        return adapter, api

    return factory


class ScriptedProvider(AbstractProvider):
    """In-process provider returning canned responses and recording calls."""

    def __init__(
        self,
        identifier: str,
        content: str = "ok",
        finish_reason: str = "stop",
        usage: Optional[UsageStatistics] = None,
        error: Optional[Exception] = None,
        streaming: bool = True,
    ):
        self._identifier = identifier
        self.content = content
        self.finish_reason = finish_reason
        self.usage = usage or UsageStatistics.from_tokens(10, 5)
        self.error = error
        self.streaming = streaming
        self.chat_calls: List[Dict[str, Any]] = []
        self.embedding_calls: List[List[str]] = []
        self.vision_calls: List[Dict[str, Any]] = []

    @property
    def name(self) -> str:
        return f"Scripted {self._identifier}"

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def capabilities(self):
        capabilities = {
            ProviderCapability.CHAT_COMPLETION,
            ProviderCapability.EMBEDDINGS,
            ProviderCapability.VISION,
            ProviderCapability.TOOLS,
        }
        if self.streaming:
            capabilities.add(ProviderCapability.STREAMING)
        return capabilities

    @property
    def is_configured(self) -> bool:
        return True

    @property
    def default_model(self) -> str:
        return f"{self._identifier}-model"

    @property
    def default_embedding_model(self) -> str:
        return f"{self._identifier}-embed"

    def configure(self, config: ProviderConfig) -> None:
        pass

    def chat_completion(self, messages, options=None) -> CompletionResponse:
        self.chat_calls.append({"messages": messages, "options": resolve_options(options)})
        if self.error is not None:
            raise self.error
        return CompletionResponse(
            content=self.content,
            model=self.default_model,
            usage=self.usage,
            finish_reason=self.finish_reason,
            provider=self._identifier,
        )

    def chat_completion_with_tools(self, messages, tools, options=None) -> CompletionResponse:
        self.chat_calls.append({"messages": messages, "tools": tools, "options": resolve_options(options)})
        return CompletionResponse(
            content="",
            model=self.default_model,
            usage=self.usage,
            finish_reason="tool_calls",
            provider=self._identifier,
            tool_calls=[{"id": "call_1", "name": tools[0]["function"]["name"], "arguments": {}}],
        )

    def stream_chat_completion(self, messages, options=None):
        self.chat_calls.append({"messages": messages, "options": resolve_options(options), "stream": True})
        if self.error is not None:
            raise self.error
        for word in re.findall(r"\S+\s*", self.content):
            yield word

    def embeddings(self, input, options=None) -> EmbeddingResponse:
        texts = [input] if isinstance(input, str) else list(input)
        self.embedding_calls.append(texts)
        if self.error is not None:
            raise self.error
        return EmbeddingResponse(
            embeddings=[[float(len(t)), 1.0, 0.0] for t in texts],
            model=self.default_embedding_model,
            usage=UsageStatistics(prompt_tokens=4 * len(texts), total_tokens=4 * len(texts)),
            provider=self._identifier,
        )

    def analyze_image(self, image_url, prompt, options=None) -> VisionResponse:
        self.vision_calls.append({"image_url": image_url, "prompt": prompt, "options": options})
        return VisionResponse(
            description=f"  {self.content}  ",
            model=self.default_model,
            usage=self.usage,
            provider=self._identifier,
        )


@pytest.fixture
def scripted_provider():
    return ScriptedProvider
