"""
Provider registry for managing and resolving provider adapters.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Type, Any

from .config import ProviderConfig
from .interface import AbstractProvider, ProviderCapability
from .errors import ProviderConfigurationError, ProviderNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderRegistration:
    """A registered provider with its dispatch priority."""
    identifier: str
    provider: AbstractProvider
    priority: int = 0
    sequence: int = 0


class ProviderRegistry:
    """
    Registry for provider adapters.

    Holds adapter classes by type and configured provider instances by
    identifier. Instances are ordered by descending priority, ties broken
    by registration order. Registrations are never removed.
    """

    def __init__(self):
        """Initialize the registry."""
        self._adapters: Dict[str, Type[AbstractProvider]] = {}
        self._registrations: Dict[str, ProviderRegistration] = {}

    def register_adapter(
        self,
        provider_type: str,
        adapter_class: Type[AbstractProvider]
    ) -> None:
        """
        Register a provider adapter class.

        Args:
            provider_type: Type identifier (e.g., "openai", "claude")
            adapter_class: Adapter class to register
        """
        self._adapters[provider_type] = adapter_class
        logger.info(f"Registered provider adapter: {provider_type}")

    def adapter_types(self) -> List[str]:
        return sorted(self._adapters)

    def create_provider(self, config: ProviderConfig, **kwargs: Any) -> AbstractProvider:
        """
        Create and configure a provider instance from a registered adapter.

        Args:
            config: Provider configuration
            **kwargs: Extra constructor arguments (e.g. http_client)

        Returns:
            Configured provider instance (not yet registered)

        Raises:
            ProviderConfigurationError: If the adapter type is unknown
        """
        if config.type not in self._adapters:
            raise ProviderConfigurationError(
                f"Unknown provider type: {config.type}",
                provider=config.identifier,
            )

        adapter_class = self._adapters[config.type]
        instance = adapter_class(identifier=config.identifier, **kwargs)
        instance.configure(config)

        logger.info(f"Created provider instance: {config.identifier} (type: {config.type})")
        return instance

    def register(self, provider: AbstractProvider, priority: int = 0) -> None:
        """
        Register a provider instance.

        Args:
            provider: Configured provider adapter
            priority: Higher priority providers are preferred

        Raises:
            ProviderConfigurationError: If the identifier is already registered
        """
        identifier = provider.identifier
        if identifier in self._registrations:
            raise ProviderConfigurationError(
                f"Provider already registered: {identifier}",
                provider=identifier,
            )

        self._registrations[identifier] = ProviderRegistration(
            identifier=identifier,
            provider=provider,
            priority=priority,
            sequence=len(self._registrations),
        )
        logger.info(f"Registered provider: {identifier} (priority: {priority})")

    def get(self, identifier: str) -> AbstractProvider:
        """
        Get a provider by identifier.

        Args:
            identifier: Provider identifier

        Returns:
            Provider instance

        Raises:
            ProviderNotFoundError: If provider not found
        """
        if identifier not in self._registrations:
            raise ProviderNotFoundError(f"Provider not found: {identifier}", provider=identifier)
        return self._registrations[identifier].provider

    def has(self, identifier: str) -> bool:
        return identifier in self._registrations

    def ordered(self) -> List[AbstractProvider]:
        """Providers by descending priority, then registration order."""
        registrations = sorted(
            self._registrations.values(),
            key=lambda r: (-r.priority, r.sequence),
        )
        return [r.provider for r in registrations]

    def highest_priority(self) -> Optional[AbstractProvider]:
        ordered = self.ordered()
        return ordered[0] if ordered else None

    def find_with_capability(self, capability: ProviderCapability) -> List[AbstractProvider]:
        """
        Find all configured providers that support a capability.

        Args:
            capability: Required capability

        Returns:
            Providers in priority order
        """
        return [
            p for p in self.ordered()
            if p.supports(capability) and p.is_configured
        ]

    def list_providers(self) -> List[Dict[str, Any]]:
        """
        List all registered providers.

        Returns:
            List of provider info dicts in priority order
        """
        return [
            {
                "identifier": r.identifier,
                "name": r.provider.name,
                "priority": r.priority,
                "capabilities": sorted(c.value for c in r.provider.capabilities),
                "is_configured": r.provider.is_configured,
            }
            for r in sorted(self._registrations.values(), key=lambda r: (-r.priority, r.sequence))
        ]

    def close_all(self) -> None:
        """Close all registered providers."""
        for registration in self._registrations.values():
            registration.provider.close()

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._registrations
