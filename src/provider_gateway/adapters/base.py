"""
Shared HTTP plumbing for provider adapters.

Handles configuration, authentication headers, the bounded retry loop
and classification of provider failures.
"""

import json
import logging
import re
import time
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Type, Union

import httpx

from ..core.config import ProviderConfig
from ..core.errors import (
    InvalidArgumentError,
    ProviderAuthenticationError,
    ProviderConfigurationError,
    ProviderConnectionError,
    ProviderRateLimitError,
    ProviderResponseError,
)
from ..core.interface import AbstractProvider, MessageInput
from ..models.message import ChatMessage
from ..models.options import BaseOptions, ChatOptions, OptionsLike, resolve_options

logger = logging.getLogger(__name__)

VALID_ROLES = ("system", "user", "assistant", "tool")

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def normalize_messages(messages: List[MessageInput]) -> List[Dict[str, Any]]:
    """
    Convert ChatMessage objects and raw dicts into plain message dicts.

    Raises:
        InvalidArgumentError: If the list is empty or a role is invalid
    """
    if not messages:
        raise InvalidArgumentError("At least one message is required")

    result = []
    for message in messages:
        if isinstance(message, ChatMessage):
            result.append(message.to_dict())
        elif isinstance(message, dict):
            if message.get("role") not in VALID_ROLES:
                raise InvalidArgumentError(f"Invalid message role: {message.get('role')!r}")
            result.append(dict(message))
        else:
            raise InvalidArgumentError(f"Unsupported message type: {type(message).__name__}")
    return result


def parse_data_uri(url: str) -> Optional[Tuple[str, str]]:
    """Split a base64 data URI into (mime_type, data), or None for other URLs."""
    match = _DATA_URI.match(url)
    if not match:
        return None
    return match.group("mime"), match.group("data")


def decode_arguments(arguments: Any) -> Dict[str, Any]:
    """Decode tool-call arguments that may arrive as a JSON string."""
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    try:
        decoded = json.loads(arguments)
    except (TypeError, ValueError):
        logger.warning(f"Could not decode tool call arguments: {arguments!r}")
        return {}
    return decoded if isinstance(decoded, dict) else {"value": decoded}


def text_of(content: Any) -> str:
    """Flatten message content (string or content-part list) into text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "") for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return "" if content is None else str(content)


def sse_data(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """
    Decode the JSON payloads of server-sent event ``data:`` lines.

    Stops at the ``[DONE]`` sentinel. Event names, comments and
    malformed payloads are skipped.
    """
    for line in lines:
        if not line.startswith("data:"):
            continue
        data = line[5:].strip()
        if data == "[DONE]":
            return
        try:
            event = json.loads(data)
        except ValueError:
            logger.debug(f"Skipping malformed stream event: {data[:100]}")
            continue
        if isinstance(event, dict):
            yield event


class HttpProviderAdapter(AbstractProvider):
    """
    Base class for adapters that talk JSON over HTTPS.

    Subclasses set the class constants and implement the payload
    builders and response parsers.
    """

    PROVIDER_TYPE = ""
    PROVIDER_NAME = ""
    DEFAULT_BASE_URL = ""
    DEFAULT_MODEL = ""
    DEFAULT_EMBEDDING_MODEL: Optional[str] = None
    REQUIRES_API_KEY = True

    def __init__(
        self,
        identifier: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the adapter.

        Args:
            identifier: Registration identifier (defaults to the provider type)
            http_client: Pre-built client; the adapter does not close it
            transport: Transport for the adapter-owned client (tests)
            sleep: Sleep function used between retries
        """
        self._identifier = identifier or self.PROVIDER_TYPE
        self._injected_client = http_client
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.Client] = None
        self._config: Optional[ProviderConfig] = None
        self._base_url = self.DEFAULT_BASE_URL
        self._api_key: Optional[str] = None
        self._model = self.DEFAULT_MODEL
        self._max_retries = 3
        self._retry_backoff = 0.1

    @property
    def name(self) -> str:
        return self.PROVIDER_NAME

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def is_configured(self) -> bool:
        return self._config is not None

    @property
    def default_model(self) -> Optional[str]:
        return self._model

    @property
    def default_embedding_model(self) -> Optional[str]:
        return self.DEFAULT_EMBEDDING_MODEL

    def configure(self, config: ProviderConfig) -> None:
        if self.REQUIRES_API_KEY and not config.api_key:
            raise ProviderConfigurationError(
                f"{self.name} API key is not configured",
                provider=self._identifier,
            )

        self._config = config
        self._api_key = config.api_key
        self._base_url = (config.endpoint_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._model = config.default_model or self.DEFAULT_MODEL
        self._max_retries = max(1, config.max_retries)
        self._retry_backoff = config.retry_backoff

        if self._injected_client is not None:
            self._client = self._injected_client
        else:
            self.close()
            self._client = httpx.Client(timeout=config.timeout, transport=self._transport)

        logger.info(f"Configured {self.name} provider {self._identifier} at {self._base_url}")

    def close(self) -> None:
        """Close the adapter-owned HTTP client."""
        if self._client is not None and self._injected_client is None:
            self._client.close()
            self._client = None

    def _build_headers(self) -> Dict[str, str]:
        """Authentication and content headers for every request."""
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_params(self) -> Dict[str, str]:
        """Query parameters added to every request."""
        return {}

    def _require_configured(self) -> None:
        if self._config is None or self._client is None:
            raise ProviderConfigurationError(
                f"{self.name} provider is not configured; call configure() first",
                provider=self._identifier,
            )

    def _resolve(self, options: OptionsLike, options_cls: Type[BaseOptions] = ChatOptions) -> Dict[str, Any]:
        return resolve_options(options, options_cls)

    def _apply_system_prompt(
        self,
        messages: List[Dict[str, Any]],
        opts: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """Prepend options.system_prompt unless a system message is present."""
        system_prompt = opts.get("system_prompt")
        if system_prompt and not any(m["role"] == "system" for m in messages):
            return [{"role": "system", "content": system_prompt}] + messages
        return messages

    def _send_request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send a request with bounded retries.

        2xx responses are decoded and returned. 4xx responses raise
        immediately. 5xx responses and transport errors are retried with
        exponential backoff until the attempt budget is spent.

        Args:
            method: HTTP method
            path: Path relative to the provider base URL
            payload: JSON body

        Returns:
            Decoded JSON response

        Raises:
            ProviderResponseError: On a 4xx response
            ProviderConnectionError: When all attempts fail
        """
        self._require_configured()
        url = f"{self._base_url}/{path.lstrip('/')}"
        last_error = "no attempt made"

        for attempt in range(self._max_retries):
            try:
                response = self._client.request(
                    method,
                    url,
                    json=payload,
                    params=self._build_params() or None,
                    headers=self._build_headers(),
                )
            except httpx.RequestError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"{self.name} request failed (attempt {attempt + 1}/{self._max_retries}): {last_error}"
                )
            else:
                if response.is_success:
                    return self._decode(response)
                if response.status_code < 500:
                    raise self._response_error(response)
                last_error = f"HTTP {response.status_code}: {self._extract_error_message(response)}"
                logger.warning(
                    f"{self.name} returned {response.status_code} "
                    f"(attempt {attempt + 1}/{self._max_retries})"
                )

            if attempt < self._max_retries - 1:
                delay = self._retry_backoff * (2 ** attempt)
                logger.debug(f"Retrying {self.name} request in {delay:.2f}s")
                self._sleep(delay)

        raise ProviderConnectionError(
            f"Failed to connect to provider after {self._max_retries} attempts: {last_error}",
            provider=self._identifier,
        )

    def _stream_request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Iterator[str]:
        """
        Send a streaming request and yield the non-empty response lines.

        Failures before the first line arrives follow the same retry and
        classification rules as _send_request. Once lines have been
        yielded the request is never repeated; a transport failure at
        that point raises ProviderConnectionError.

        Raises:
            ProviderResponseError: On a 4xx response
            ProviderConnectionError: When all attempts fail or the stream breaks
        """
        self._require_configured()
        url = f"{self._base_url}/{path.lstrip('/')}"
        query = {**self._build_params(), **(params or {})}
        last_error = "no attempt made"

        for attempt in range(self._max_retries):
            started = False
            try:
                with self._client.stream(
                    method,
                    url,
                    json=payload,
                    params=query or None,
                    headers=self._build_headers(),
                ) as response:
                    if response.is_success:
                        started = True
                        for line in response.iter_lines():
                            if line.strip():
                                yield line
                        return

                    response.read()
                    if response.status_code < 500:
                        raise self._response_error(response)
                    last_error = f"HTTP {response.status_code}: {self._extract_error_message(response)}"
                    logger.warning(
                        f"{self.name} stream returned {response.status_code} "
                        f"(attempt {attempt + 1}/{self._max_retries})"
                    )
            except httpx.RequestError as e:
                if started:
                    raise ProviderConnectionError(
                        f"{self.name} stream interrupted: {type(e).__name__}: {e}",
                        provider=self._identifier,
                    ) from e
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"{self.name} stream request failed (attempt {attempt + 1}/{self._max_retries}): {last_error}"
                )

            if attempt < self._max_retries - 1:
                delay = self._retry_backoff * (2 ** attempt)
                logger.debug(f"Retrying {self.name} stream in {delay:.2f}s")
                self._sleep(delay)

        raise ProviderConnectionError(
            f"Failed to connect to provider after {self._max_retries} attempts: {last_error}",
            provider=self._identifier,
        )

    def list_models(self) -> List[str]:
        """Model identifiers the provider currently serves."""
        return self._parse_models(self._send_request("GET", "models"))

    def _parse_models(self, data: Dict[str, Any]) -> List[str]:
        return sorted(item["id"] for item in data.get("data") or [] if item.get("id"))

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderResponseError(
                f"Invalid JSON in {self.name} response: {e}",
                provider=self._identifier,
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise ProviderResponseError(
                f"Unexpected {self.name} response shape",
                provider=self._identifier,
                status_code=response.status_code,
            )
        return data

    def _response_error(self, response: httpx.Response) -> ProviderResponseError:
        """Classify a non-retryable error response."""
        message = self._extract_error_message(response)
        status = response.status_code

        if status in (401, 403):
            return ProviderAuthenticationError(message, provider=self._identifier, status_code=status)
        if status == 429:
            retry_after = response.headers.get("retry-after")
            try:
                retry_seconds = float(retry_after) if retry_after else None
            except ValueError:
                retry_seconds = None
            return ProviderRateLimitError(
                message,
                provider=self._identifier,
                status_code=status,
                retry_after=retry_seconds,
            )
        return ProviderResponseError(message, provider=self._identifier, status_code=status)

    @staticmethod
    def _extract_error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or "Unknown provider error"

        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
            if data.get("message"):
                return str(data["message"])
        return "Unknown provider error"

    @staticmethod
    def _as_list(input: Union[str, List[str]]) -> List[str]:
        texts = [input] if isinstance(input, str) else list(input)
        if not texts:
            raise InvalidArgumentError("Embedding input must not be empty")
        if not all(isinstance(t, str) for t in texts):
            raise InvalidArgumentError("Embedding input must be text")
        return texts
