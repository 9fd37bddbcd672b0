"""
Abstract provider interface definition.

Defines the contract that all provider adapters must implement.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Set, Union
from enum import Enum

from .config import ProviderConfig
from .errors import UnsupportedFeatureError
from ..models.message import ChatMessage
from ..models.options import ChatOptions, EmbeddingOptions, VisionOptions, ToolOptions
from ..models.response import CompletionResponse, EmbeddingResponse, VisionResponse

MessageInput = Union[ChatMessage, Dict[str, Any]]
OptionsInput = Union[ChatOptions, EmbeddingOptions, VisionOptions, ToolOptions, Dict[str, Any], None]


class ProviderCapability(str, Enum):
    """Capabilities that a provider may support."""
    CHAT_COMPLETION = "chat_completion"
    EMBEDDINGS = "embeddings"
    VISION = "vision"
    STREAMING = "streaming"
    TOOLS = "tools"
    JSON_MODE = "json_mode"


class AbstractProvider(ABC):
    """
    Abstract base class for AI provider adapters.

    All provider adapters must implement this interface to be
    usable behind the gateway.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Human readable provider name.

        Returns:
            Provider name (e.g., "OpenAI", "Anthropic Claude")
        """
        pass

    @property
    @abstractmethod
    def identifier(self) -> str:
        """
        Stable identifier used for registration and usage tracking.

        Returns:
            Provider identifier (e.g., "openai", "claude")
        """
        pass

    @property
    @abstractmethod
    def capabilities(self) -> Set[ProviderCapability]:
        """
        Set of capabilities this provider supports.

        Returns:
            Set of ProviderCapability values
        """
        pass

    @property
    def is_configured(self) -> bool:
        """
        Check if configure() has been called successfully.

        Returns:
            True if the provider is ready for requests
        """
        return False

    @property
    def default_model(self) -> Optional[str]:
        """Model used when the request does not name one."""
        return None

    @property
    def default_embedding_model(self) -> Optional[str]:
        """Embedding model used when the request does not name one."""
        return None

    @abstractmethod
    def configure(self, config: ProviderConfig) -> None:
        """
        Apply credentials and settings.

        Must be called before any request method.

        Args:
            config: Provider configuration

        Raises:
            ProviderConfigurationError: If required settings are missing
        """
        pass

    @abstractmethod
    def chat_completion(
        self,
        messages: List[MessageInput],
        options: OptionsInput = None,
    ) -> CompletionResponse:
        """
        Create a chat completion.

        Args:
            messages: Conversation messages
            options: Typed options or raw option map

        Returns:
            Normalized completion response
        """
        pass

    @abstractmethod
    def embeddings(
        self,
        input: Union[str, List[str]],
        options: OptionsInput = None,
    ) -> EmbeddingResponse:
        """
        Create embeddings for one text or a batch of texts.

        Args:
            input: Text or list of texts
            options: Typed options or raw option map

        Returns:
            Normalized embedding response, one vector per input in order
        """
        pass

    def analyze_image(
        self,
        image_url: str,
        prompt: str,
        options: OptionsInput = None,
    ) -> VisionResponse:
        """
        Describe or analyze an image.

        Args:
            image_url: HTTP(S) URL or data URI of the image
            prompt: Instruction for the model
            options: Typed options or raw option map

        Returns:
            Normalized vision response
        """
        raise UnsupportedFeatureError(
            f"{self.name} does not support vision",
            provider=self.identifier,
            feature="vision",
        )

    def chat_completion_with_tools(
        self,
        messages: List[MessageInput],
        tools: List[Dict[str, Any]],
        options: OptionsInput = None,
    ) -> CompletionResponse:
        """
        Create a chat completion with tool definitions.

        Args:
            messages: Conversation messages
            tools: OpenAI-style tool definitions
            options: Typed options or raw option map

        Returns:
            Normalized completion response, possibly carrying tool calls
        """
        raise UnsupportedFeatureError(
            f"{self.name} does not support tool calling",
            provider=self.identifier,
            feature="tools",
        )

    def stream_chat_completion(
        self,
        messages: List[MessageInput],
        options: OptionsInput = None,
    ) -> Iterator[str]:
        """
        Stream a chat completion as text chunks.

        Args:
            messages: Conversation messages
            options: Typed options or raw option map

        Yields:
            Non-empty pieces of the reply, in order
        """
        raise UnsupportedFeatureError(
            f"{self.name} does not support streaming",
            provider=self.identifier,
            feature="streaming",
        )

    def list_models(self) -> List[str]:
        """Model identifiers the provider serves."""
        raise UnsupportedFeatureError(
            f"{self.name} cannot list models",
            provider=self.identifier,
            feature="models",
        )

    def check_connection(self) -> Dict[str, Any]:
        """
        Verify credentials and reachability with a live request.

        Errors from the request are raised, not reported.

        Returns:
            ``{"success": True, "message": ..., "models": [...]}``
        """
        models = self.list_models()
        return {
            "success": True,
            "message": f"Connection successful. Found {len(models)} models.",
            "models": models,
        }

    def complete(self, prompt: str, options: OptionsInput = None) -> CompletionResponse:
        """Single-prompt completion shortcut."""
        return self.chat_completion([ChatMessage.user(prompt)], options)

    def supports(self, capability: ProviderCapability) -> bool:
        """Check if provider supports a capability."""
        return capability in self.capabilities

    def supports_vision(self) -> bool:
        return self.supports(ProviderCapability.VISION)

    def supports_streaming(self) -> bool:
        return self.supports(ProviderCapability.STREAMING)

    def supports_tools(self) -> bool:
        return self.supports(ProviderCapability.TOOLS)

    def close(self) -> None:
        """Release network resources held by the provider."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} identifier={self.identifier}>"
