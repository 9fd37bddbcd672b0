"""
Unit tests for messages and normalized responses.
"""

import math

import pytest

from provider_gateway.core.errors import InvalidArgumentError
from provider_gateway.models.message import ChatMessage
from provider_gateway.models.response import (
    CompletionResponse,
    EmbeddingResponse,
    TranslationResult,
    UsageStatistics,
)


class TestChatMessage:
    """Test ChatMessage value object."""

    @pytest.mark.parametrize("role", ["system", "user", "assistant", "tool"])
    def test_valid_roles(self, role):
        """Test all four roles are accepted."""
        assert ChatMessage(role=role, content="hi").role == role

    def test_invalid_role_fails(self):
        """Test an unknown role fails at construction."""
        with pytest.raises(InvalidArgumentError):
            ChatMessage(role="moderator", content="hi")

    def test_factories_and_predicates(self):
        """Test factory methods set the role."""
        assert ChatMessage.system("s").is_system()
        assert ChatMessage.user("u").is_user()
        assert ChatMessage.assistant("a").is_assistant()
        assert ChatMessage.tool("t").is_tool()
        assert not ChatMessage.user("u").is_system()

    def test_dict_round_trip(self):
        """Test from_dict/to_dict."""
        data = {"role": "user", "content": "Hello"}
        assert ChatMessage.from_dict(data).to_dict() == data

    def test_from_dict_requires_fields(self):
        """Test missing keys are rejected."""
        with pytest.raises(InvalidArgumentError):
            ChatMessage.from_dict({"role": "user"})

    def test_message_is_immutable(self):
        """Test messages cannot be changed after creation."""
        message = ChatMessage.user("hi")
        with pytest.raises(Exception):
            message.content = "changed"


class TestCompletionResponse:
    """Test derived finish reason predicates."""

    @pytest.mark.parametrize("reason,complete,truncated", [
        ("stop", True, False),
        ("length", False, True),
        ("tool_calls", False, False),
        ("content_filter", False, False),
        ("recitation", False, False),
    ])
    def test_predicates(self, reason, complete, truncated):
        """Test is_complete/was_truncated are exclusive and reason driven."""
        response = CompletionResponse(content="x", finish_reason=reason)
        assert response.is_complete() is complete
        assert response.was_truncated() is truncated
        assert not (response.is_complete() and response.was_truncated())

    def test_filtered_and_tool_calls(self):
        """Test the remaining predicates."""
        assert CompletionResponse(finish_reason="content_filter").was_filtered()
        response = CompletionResponse(
            finish_reason="tool_calls",
            tool_calls=[{"id": "1", "name": "lookup", "arguments": {"q": "x"}}],
        )
        assert response.has_tool_calls()
        assert response.tool_calls[0].arguments == {"q": "x"}

    def test_text_alias(self):
        """Test text returns the content."""
        assert CompletionResponse(content="hello").text == "hello"


class TestUsageStatistics:
    """Test usage snapshots."""

    def test_total_is_not_recomputed(self):
        """Test the reported total is stored as given."""
        usage = UsageStatistics(prompt_tokens=10, completion_tokens=5, total_tokens=20)
        assert usage.total_tokens == 20

    def test_from_tokens_sums(self):
        """Test from_tokens computes the total."""
        usage = UsageStatistics.from_tokens(10, 5)
        assert usage.total_tokens == usage.prompt_tokens + usage.completion_tokens == 15

    def test_negative_tokens_fail(self):
        """Test negative counts are rejected."""
        with pytest.raises(InvalidArgumentError):
            UsageStatistics(prompt_tokens=-1)


class TestCosineSimilarity:
    """Test the cosine similarity helper."""

    VECTORS = [
        [1.0, 2.0, 3.0],
        [-1.0, 0.5, 4.0],
        [0.001, -3.0, 2.5],
        [10.0, 10.0, -10.0],
    ]

    @pytest.mark.parametrize("vector", VECTORS)
    def test_self_similarity_is_one(self, vector):
        """Test a non-zero vector is fully similar to itself."""
        assert EmbeddingResponse.cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_symmetric_and_bounded(self):
        """Test symmetry and the [-1, 1] range for all pairs."""
        for a in self.VECTORS:
            for b in self.VECTORS:
                ab = EmbeddingResponse.cosine_similarity(a, b)
                ba = EmbeddingResponse.cosine_similarity(b, a)
                assert ab == ba
                assert -1.0 <= ab <= 1.0

    def test_opposite_vectors(self):
        """Test opposite vectors score -1."""
        assert EmbeddingResponse.cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self):
        """Test orthogonal vectors score 0."""
        assert EmbeddingResponse.cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)

    def test_length_mismatch_fails(self):
        """Test differing lengths raise InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError):
            EmbeddingResponse.cosine_similarity([1, 2], [1, 2, 3])

    def test_empty_vector_fails(self):
        """Test empty vectors raise InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError):
            EmbeddingResponse.cosine_similarity([], [])

    def test_zero_vector_scores_zero(self):
        """Test a zero vector has no direction."""
        assert EmbeddingResponse.cosine_similarity([0, 0], [1, 1]) == 0.0


class TestEmbeddingResponse:
    """Test embedding response accessors."""

    def test_vector_access(self):
        """Test get_vector, count and dimensions."""
        response = EmbeddingResponse(embeddings=[[1.0, 0.0], [0.0, 1.0]])
        assert response.get_vector() == [1.0, 0.0]
        assert response.get_vector(1) == [0.0, 1.0]
        assert response.count == 2
        assert response.dimensions == 2

    def test_missing_vector_fails(self):
        """Test out-of-range index raises."""
        with pytest.raises(InvalidArgumentError):
            EmbeddingResponse(embeddings=[]).get_vector()

    def test_normalize_vector(self):
        """Test normalization yields unit length."""
        normalized = EmbeddingResponse.normalize_vector([3.0, 4.0])
        assert normalized == pytest.approx([0.6, 0.8])
        assert math.isclose(sum(x * x for x in normalized), 1.0)


class TestSimilaritySearch:
    """Test ranking and pairwise similarity helpers."""

    def test_most_similar_ranks_descending(self):
        candidates = [[0.0, 1.0], [1.0, 0.0], [1.0, 1.0], [-1.0, 0.0]]
        results = EmbeddingResponse.find_most_similar([1.0, 0.0], candidates, top_k=3)

        assert [r["index"] for r in results] == [1, 2, 0]
        assert results[0]["similarity"] == pytest.approx(1.0)
        assert results[1]["similarity"] == pytest.approx(math.sqrt(0.5))
        assert results[2]["similarity"] == pytest.approx(0.0)

    def test_most_similar_ties_keep_candidate_order(self):
        results = EmbeddingResponse.find_most_similar([1.0, 0.0], [[2.0, 0.0], [1.0, 0.0]])
        assert [r["index"] for r in results] == [0, 1]

    def test_most_similar_without_candidates(self):
        assert EmbeddingResponse.find_most_similar([1.0, 0.0], []) == []

    def test_most_similar_rejects_bad_input(self):
        with pytest.raises(InvalidArgumentError):
            EmbeddingResponse.find_most_similar([1.0, 0.0], [[1.0, 0.0]], top_k=0)
        with pytest.raises(InvalidArgumentError):
            EmbeddingResponse.find_most_similar([1.0, 0.0], [[1.0, 0.0, 0.0]])

    def test_pairwise_matrix(self):
        """Test the matrix is symmetric with a unit diagonal."""
        matrix = EmbeddingResponse.pairwise_similarities([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])

        assert len(matrix) == 3
        assert all(matrix[i][i] == 1.0 for i in range(3))
        assert matrix[0][1] == pytest.approx(0.0)
        assert matrix[0][2] == pytest.approx(math.sqrt(0.5))
        assert matrix[2][0] == pytest.approx(matrix[0][2])

    def test_pairwise_zero_vector(self):
        matrix = EmbeddingResponse.pairwise_similarities([[0.0, 0.0], [1.0, 1.0]])
        assert matrix == [[1.0, 0.0], [0.0, 1.0]]

    def test_pairwise_rejects_mixed_lengths(self):
        assert EmbeddingResponse.pairwise_similarities([]) == []
        with pytest.raises(InvalidArgumentError):
            EmbeddingResponse.pairwise_similarities([[1.0, 0.0], [1.0]])


class TestTranslationResult:
    """Test translation result helpers."""

    def test_is_confident(self):
        """Test the default confidence threshold."""
        result = TranslationResult(
            translation="Hallo",
            source_language="en",
            target_language="de",
            confidence=0.9,
        )
        assert result.is_confident()
        assert not result.is_confident(0.95)
