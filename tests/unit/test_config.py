"""
Unit tests for configuration loading and the provider registry.
"""

import pytest

from provider_gateway.adapters import OpenAIAdapter, create_registry
from provider_gateway.core.config import (
    GatewayConfig,
    ProviderConfig,
    load_config,
    parse_config,
)
from provider_gateway.core.errors import ProviderConfigurationError, ProviderNotFoundError
from provider_gateway.core.interface import ProviderCapability
from provider_gateway.core.registry import ProviderRegistry

CONFIG_YAML = """
defaultProvider: claude-main
cacheTtl: 600
monthlyBudget: 250
providers:
  - type: openai
    name: openai-main
    apiKey: ${TEST_OPENAI_KEY}
    defaultModel: gpt-4o-mini
    organizationId: org-42
    priority: 10
  - type: claude
    identifier: claude-main
    api_key: ${TEST_CLAUDE_KEY}
    priority: 20
    timeoutSeconds: 45
  - type: ollama
    base_url: http://gpu-box:11434
    enabled: false
    keep_alive: 5m
pricing:
  my-finetune:
    input: 1.5
    output: 3
"""


class TestProviderConfig:
    """Test provider config parsing."""

    def test_identifier_defaults_to_type(self):
        assert ProviderConfig(type="gemini").identifier == "gemini"

    def test_from_dict_aliases(self):
        """Test camelCase keys map onto config fields."""
        config = ProviderConfig.from_dict({
            "type": "openai",
            "apiKey": "sk-1",
            "defaultModel": "gpt-4o",
            "endpointUrl": "https://proxy.local/v1",
            "maxRetries": 5,
            "retryBackoff": 0.5,
        })
        assert config.api_key == "sk-1"
        assert config.default_model == "gpt-4o"
        assert config.endpoint_url == "https://proxy.local/v1"
        assert config.max_retries == 5
        assert config.retry_backoff == 0.5
        assert config.extra == {}

    def test_unknown_keys_go_to_extra(self):
        config = ProviderConfig.from_dict({"type": "ollama", "keep_alive": "5m"})
        assert config.extra == {"keep_alive": "5m"}


class TestLoadConfig:
    """Test YAML configuration loading."""

    def test_load_yaml_with_env(self, tmp_path, monkeypatch):
        """Test ${VAR} references are expanded from the environment."""
        monkeypatch.setenv("TEST_OPENAI_KEY", "sk-openai")
        monkeypatch.setenv("TEST_CLAUDE_KEY", "sk-claude")
        path = tmp_path / "providers.yaml"
        path.write_text(CONFIG_YAML)

        config = load_config(str(path))

        assert config.default_provider == "claude-main"
        assert config.cache_ttl == 600
        assert config.monthly_budget == 250.0
        assert len(config.providers) == 3

        openai = config.get_provider_config("openai-main")
        assert openai.api_key == "sk-openai"
        assert openai.organization_id == "org-42"
        assert openai.priority == 10

        claude = config.get_provider_config("claude-main")
        assert claude.api_key == "sk-claude"
        assert claude.timeout == 45.0

        ollama = config.get_provider_config("ollama")
        assert ollama.endpoint_url == "http://gpu-box:11434"
        assert ollama.enabled is False
        assert ollama.extra == {"keep_alive": "5m"}

        assert config.pricing["my-finetune"].input == 1.5
        assert config.pricing["my-finetune"].output == 3.0

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        path = tmp_path / "gateway.yaml"
        path.write_text("default_provider: openai\n")
        monkeypatch.setenv("PROVIDER_GATEWAY_CONFIG", str(path))

        assert load_config().default_provider == "openai"

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "missing.yaml"))
        assert config == GatewayConfig()

    def test_invalid_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("providers: [\n")
        assert load_config(str(path)) == GatewayConfig()

    def test_unset_env_var_expands_empty(self, monkeypatch):
        monkeypatch.delenv("TEST_MISSING_KEY", raising=False)
        config = parse_config({"providers": [{"type": "openai", "api_key": "${TEST_MISSING_KEY}"}]})
        assert config.providers[0].api_key == ""


class TestProviderRegistry:
    """Test provider registration and priority ordering."""

    def test_priority_order(self, scripted_provider):
        """Test higher priority wins and ties keep registration order."""
        registry = ProviderRegistry()
        registry.register(scripted_provider("openai"), priority=10)
        registry.register(scripted_provider("claude"), priority=20)
        registry.register(scripted_provider("gemini"), priority=10)

        assert [p.identifier for p in registry.ordered()] == ["claude", "openai", "gemini"]
        assert registry.highest_priority().identifier == "claude"
        assert [p["identifier"] for p in registry.list_providers()] == ["claude", "openai", "gemini"]

    def test_duplicate_identifier_rejected(self, scripted_provider):
        registry = ProviderRegistry()
        registry.register(scripted_provider("openai"))
        with pytest.raises(ProviderConfigurationError):
            registry.register(scripted_provider("openai"), priority=99)
        assert len(registry) == 1

    def test_get_unknown(self):
        with pytest.raises(ProviderNotFoundError):
            ProviderRegistry().get("nope")

    def test_empty_registry(self):
        registry = ProviderRegistry()
        assert registry.highest_priority() is None
        assert "openai" not in registry

    def test_find_with_capability(self, scripted_provider):
        registry = create_registry()
        registry.register(scripted_provider("a"), priority=1)
        registry.register(
            registry.create_provider(ProviderConfig(type="claude", api_key="k")),
            priority=5,
        )

        embedders = registry.find_with_capability(ProviderCapability.EMBEDDINGS)
        assert [p.identifier for p in embedders] == ["a"]

    def test_create_provider(self):
        """Test adapters are instantiated and configured from config."""
        registry = create_registry()
        provider = registry.create_provider(
            ProviderConfig(type="openai", identifier="openai-eu", api_key="k", default_model="gpt-4o-mini")
        )
        assert isinstance(provider, OpenAIAdapter)
        assert provider.identifier == "openai-eu"
        assert provider.default_model == "gpt-4o-mini"
        assert "claude" in registry.adapter_types()
        provider.close()
