"""
Configuration loading for the provider gateway.
"""

import os
import re
import logging
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")

# camelCase keys accepted from configuration records
_ALIASES = {
    "apiKey": "api_key",
    "defaultModel": "default_model",
    "organizationId": "organization_id",
    "endpointUrl": "endpoint_url",
    "timeoutSeconds": "timeout",
    "maxRetries": "max_retries",
    "retryBackoff": "retry_backoff",
    "defaultProvider": "default_provider",
    "cacheTtl": "cache_ttl",
    "monthlyBudget": "monthly_budget",
}


@dataclass
class ProviderConfig:
    """Configuration for a single provider instance."""
    type: str
    identifier: Optional[str] = None
    api_key: Optional[str] = None
    default_model: Optional[str] = None
    organization_id: Optional[str] = None
    endpoint_url: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 3
    retry_backoff: float = 0.1
    priority: int = 0
    enabled: bool = True
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.identifier:
            self.identifier = self.type

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        """Build a provider config from a (possibly camelCase) mapping."""
        data = {_ALIASES.get(k, k): v for k, v in data.items()}
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        extra = dict(data.get("extra") or {})
        extra.update({k: v for k, v in data.items() if k not in known and k != "extra"})

        return cls(
            type=data.get("type", ""),
            identifier=data.get("identifier") or data.get("name"),
            api_key=data.get("api_key"),
            default_model=data.get("default_model"),
            organization_id=data.get("organization_id"),
            endpoint_url=data.get("endpoint_url") or data.get("base_url"),
            timeout=float(data.get("timeout", 30.0)),
            max_retries=int(data.get("max_retries", 3)),
            retry_backoff=float(data.get("retry_backoff", 0.1)),
            priority=int(data.get("priority", 0)),
            enabled=bool(data.get("enabled", True)),
            extra={k: v for k, v in extra.items() if k not in ("name", "base_url")},
        )


@dataclass
class ModelPricing:
    """Price in USD per 1M tokens."""
    input: float
    output: float


@dataclass
class GatewayConfig:
    """Complete gateway configuration."""
    default_provider: Optional[str] = None
    providers: List[ProviderConfig] = field(default_factory=list)
    cache_ttl: int = 3600
    monthly_budget: Optional[float] = None
    pricing: Dict[str, ModelPricing] = field(default_factory=dict)

    def get_provider_config(self, identifier: str) -> Optional[ProviderConfig]:
        for provider in self.providers:
            if provider.identifier == identifier:
                return provider
        return None


def load_config(config_path: Optional[str] = None) -> GatewayConfig:
    """
    Load gateway configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Loaded configuration
    """
    if config_path is None:
        config_path = os.environ.get("PROVIDER_GATEWAY_CONFIG")

    if config_path is None:
        paths = [
            Path("config/provider-gateway/providers.yaml"),
            Path("/etc/provider-gateway/providers.yaml"),
            Path.home() / ".config/provider-gateway/providers.yaml",
        ]
        for p in paths:
            if p.exists():
                config_path = str(p)
                break

    if config_path is None or not Path(config_path).exists():
        logger.warning("No provider gateway config file found, using defaults")
        return GatewayConfig()

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        return GatewayConfig()

    return parse_config(data)


def parse_config(data: Dict[str, Any]) -> GatewayConfig:
    """Parse configuration dictionary."""
    data = _expand_env(data)
    data = {_ALIASES.get(k, k): v for k, v in data.items()}

    providers = [ProviderConfig.from_dict(p) for p in data.get("providers", [])]

    pricing = {
        model: ModelPricing(input=float(p["input"]), output=float(p["output"]))
        for model, p in (data.get("pricing") or {}).items()
    }

    budget = data.get("monthly_budget")

    config = GatewayConfig(
        default_provider=data.get("default_provider"),
        providers=providers,
        cache_ttl=int(data.get("cache_ttl", 3600)),
        monthly_budget=float(budget) if budget is not None else None,
        pricing=pricing,
    )
    logger.info(f"Loaded configuration for {len(providers)} providers")
    return config


def _expand_env(value: Any) -> Any:
    """Expand ${VAR} references from the environment, recursively."""
    if isinstance(value, str):
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value
