"""
Unit tests for option objects and option resolution.
"""

import pytest

from provider_gateway.core.errors import InvalidArgumentError
from provider_gateway.models.options import (
    ChatOptions,
    EmbeddingOptions,
    ToolOptions,
    TranslationOptions,
    VisionOptions,
    resolve_options,
)


class TestChatOptionsValidation:
    """Test range and enumeration checks on ChatOptions."""

    @pytest.mark.parametrize("temperature", [0.0, 0.3, 0.7, 1.0, 1.5, 2.0])
    def test_temperature_in_range_round_trips(self, temperature):
        """Test valid temperatures are stored exactly, without clamping."""
        options = ChatOptions(temperature=temperature)
        assert options.temperature == temperature

    @pytest.mark.parametrize("temperature", [-0.1, 2.01, 5.0])
    def test_temperature_out_of_range_fails(self, temperature):
        """Test out-of-range temperature raises InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError):
            ChatOptions(temperature=temperature)

    def test_invalid_argument_is_value_error(self):
        """Test InvalidArgumentError can be caught as ValueError."""
        with pytest.raises(ValueError):
            ChatOptions(top_p=1.5)

    @pytest.mark.parametrize("field,value", [
        ("top_p", -0.1),
        ("top_p", 1.1),
        ("frequency_penalty", -2.5),
        ("presence_penalty", 2.5),
        ("max_tokens", 0),
        ("max_tokens", -10),
        ("response_format", "xml"),
    ])
    def test_invalid_values_fail(self, field, value):
        """Test each bounded field rejects out-of-range values."""
        with pytest.raises(InvalidArgumentError):
            ChatOptions(**{field: value})

    def test_unknown_field_fails(self):
        """Test unknown keyword arguments are rejected."""
        with pytest.raises(InvalidArgumentError):
            ChatOptions(temprature=0.5)

    def test_with_method_validates(self):
        """Test with_* methods re-run validation."""
        options = ChatOptions()
        with pytest.raises(InvalidArgumentError):
            options.with_temperature(3.0)


class TestCopyOnWrite:
    """Test immutable, copy-on-write option mutation."""

    def test_with_returns_new_instance(self):
        """Test with_* leaves the receiver untouched."""
        original = ChatOptions(temperature=0.5)
        changed = original.with_temperature(1.0)

        assert changed is not original
        assert original.temperature == 0.5
        assert changed.temperature == 1.0

    def test_options_are_frozen(self):
        """Test direct attribute assignment is refused."""
        options = ChatOptions(temperature=0.5)
        with pytest.raises(Exception):
            options.temperature = 1.0

    def test_chained_with_calls(self):
        """Test chaining keeps earlier changes."""
        options = ChatOptions().with_model("gpt-4o").with_max_tokens(100).with_provider("openai")
        assert options.to_dict() == {"model": "gpt-4o", "max_tokens": 100, "provider": "openai"}


class TestSerialization:
    """Test to_dict and merge."""

    def test_to_dict_omits_none(self):
        """Test absent fields are not serialized."""
        assert ChatOptions(temperature=0.2).to_dict() == {"temperature": 0.2}

    def test_to_dict_uses_snake_case(self):
        """Test keys use snake_case names."""
        data = ChatOptions(max_tokens=10, top_p=0.5, stop_sequences=["END"]).to_dict()
        assert set(data) == {"max_tokens", "top_p", "stop_sequences"}

    def test_merge_overrides_win(self):
        """Test explicit overrides replace object values."""
        options = ChatOptions(temperature=0.2, max_tokens=100)
        merged = options.merge({"temperature": 0.9, "user": "abc"})
        assert merged == {"temperature": 0.9, "max_tokens": 100, "user": "abc"}


class TestPresets:
    """Test option presets."""

    def test_chat_presets(self):
        """Test chat preset values."""
        assert ChatOptions.factual().to_dict() == {"temperature": 0.2, "top_p": 0.9}
        assert ChatOptions.creative().presence_penalty == 0.6
        assert ChatOptions.balanced().max_tokens == 4096
        assert ChatOptions.json_mode().response_format == "json"
        assert ChatOptions.code().max_tokens == 8192

    def test_preset_accepts_overrides(self):
        """Test presets can be adjusted at creation."""
        assert ChatOptions.factual(temperature=0.0).temperature == 0.0

    def test_embedding_presets(self):
        """Test embedding preset values."""
        assert EmbeddingOptions.standard().cache_ttl == 86400
        assert EmbeddingOptions.no_cache().cache_ttl == 0
        assert EmbeddingOptions.compact().dimensions == 256
        assert EmbeddingOptions.high_precision().dimensions == 1536

    def test_vision_presets(self):
        """Test vision preset values."""
        alt = VisionOptions.alt_text()
        assert (alt.detail_level, alt.max_tokens, alt.temperature) == ("low", 100, 0.5)
        assert VisionOptions.comprehensive().max_tokens == 1000

    def test_translation_presets(self):
        """Test translation preset values."""
        assert TranslationOptions.formal().formality == "formal"
        assert TranslationOptions.technical().domain == "technical"
        assert TranslationOptions.legal().domain == "legal"
        assert TranslationOptions().preserve_formatting is True

    def test_tool_presets(self):
        """Test tool preset values."""
        assert ToolOptions.required().tool_choice == "required"
        assert ToolOptions.no_tools().tool_choice == "none"
        parallel = ToolOptions.parallel()
        assert parallel.parallel_tool_calls is True
        assert parallel.tool_choice == "auto"


class TestTypeSpecificValidation:
    """Test enumerated and bounded fields on other option types."""

    def test_detail_level(self):
        """Test detail level is restricted."""
        with pytest.raises(InvalidArgumentError):
            VisionOptions(detail_level="ultra")

    def test_formality_and_domain(self):
        """Test formality and domain are restricted."""
        with pytest.raises(InvalidArgumentError):
            TranslationOptions(formality="casual")
        with pytest.raises(InvalidArgumentError):
            TranslationOptions(domain="poetry")

    def test_embedding_bounds(self):
        """Test dimensions must be positive and cache_ttl non-negative."""
        with pytest.raises(InvalidArgumentError):
            EmbeddingOptions(dimensions=0)
        with pytest.raises(InvalidArgumentError):
            EmbeddingOptions(cache_ttl=-1)

    def test_tool_choice(self):
        """Test tool choice is restricted."""
        with pytest.raises(InvalidArgumentError):
            ToolOptions(tool_choice="sometimes")


class TestResolveOptions:
    """Test normalization of typed options and raw maps."""

    def test_none_resolves_to_empty_map(self):
        """Test missing options resolve to an empty map."""
        assert resolve_options(None) == {}

    def test_typed_and_raw_resolve_identically(self):
        """Test a typed object and the equivalent raw map give one result."""
        typed = resolve_options(ChatOptions(temperature=0.4, max_tokens=50))
        raw = resolve_options({"temperature": 0.4, "max_tokens": 50})
        assert typed == raw

    def test_raw_map_known_keys_validated(self):
        """Test raw maps are range checked."""
        with pytest.raises(InvalidArgumentError):
            resolve_options({"temperature": 9})

    def test_raw_map_extras_pass_through(self):
        """Test unknown keys survive resolution."""
        resolved = resolve_options({"temperature": 0.5, "top_k": 40})
        assert resolved == {"temperature": 0.5, "top_k": 40}

    def test_raw_map_drops_none(self):
        """Test None values are removed."""
        assert resolve_options({"temperature": None, "model": "m"}) == {"model": "m"}

    def test_raw_map_does_not_add_defaults(self):
        """Test class defaults are not injected into raw maps."""
        assert resolve_options({"model": "e"}, EmbeddingOptions) == {"model": "e"}

    def test_rejects_other_types(self):
        """Test non-mapping input is rejected."""
        with pytest.raises(InvalidArgumentError):
            resolve_options(["temperature", 0.5])
