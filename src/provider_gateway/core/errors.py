"""
Provider gateway error types.
"""


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(self, message: str, provider: str = None):
        self.message = message
        self.provider = provider
        super().__init__(message)


class InvalidArgumentError(GatewayError, ValueError):
    """Raised when an option or input value is malformed or out of range."""
    pass


class ProviderConfigurationError(GatewayError):
    """Raised when a provider is missing configuration or used unconfigured."""
    pass


class ProviderNotFoundError(ProviderConfigurationError):
    """Raised when a provider identifier is not registered."""
    pass


class ProviderResponseError(GatewayError):
    """Raised when the provider understood and rejected the request."""

    def __init__(self, message: str, provider: str = None, status_code: int = None):
        super().__init__(message, provider)
        self.status_code = status_code


class ProviderAuthenticationError(ProviderResponseError):
    """Raised when the provider rejects the credentials."""
    pass


class ProviderRateLimitError(ProviderResponseError):
    """Raised when the provider rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        provider: str = None,
        status_code: int = 429,
        retry_after: float = None,
    ):
        super().__init__(message, provider, status_code)
        self.retry_after = retry_after


class ProviderConnectionError(GatewayError):
    """Raised when the provider is unreachable after all retry attempts."""
    pass


class UnsupportedFeatureError(GatewayError):
    """Raised when a provider does not implement a requested feature."""

    def __init__(self, message: str, provider: str = None, feature: str = None):
        super().__init__(message, provider)
        self.feature = feature


class QuotaExceededError(GatewayError):
    """Raised when the locally configured usage budget is exhausted."""

    def __init__(self, message: str, provider: str = None, budget: float = None, spent: float = None):
        super().__init__(message, provider)
        self.budget = budget
        self.spent = spent
