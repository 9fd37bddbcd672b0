"""
Normalized, provider-agnostic response models.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from pydantic import Field

from .base import ValueObject
from ..core.errors import InvalidArgumentError


class FinishReason(str, Enum):
    """Shared finish reason vocabulary."""
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"


class UsageStatistics(ValueObject):
    """Token usage snapshot. total_tokens is reported, not recomputed."""
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    estimated_cost: Optional[float] = Field(default=None, ge=0)

    @classmethod
    def from_tokens(
        cls,
        prompt_tokens: int,
        completion_tokens: int = 0,
        estimated_cost: Optional[float] = None,
    ) -> "UsageStatistics":
        return cls(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            estimated_cost=estimated_cost,
        )

    def with_cost(self, estimated_cost: Optional[float]) -> "UsageStatistics":
        return self.replace(estimated_cost=estimated_cost)


class ToolCall(ValueObject):
    """A tool invocation requested by the model."""
    id: str
    type: str = "function"
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class CompletionResponse(ValueObject):
    """
    Unified chat completion response.

    ``finish_reason`` is normally one of the FinishReason values. Unknown
    upstream reasons are kept as-is and satisfy none of the predicates.
    """
    content: str = ""
    model: str = ""
    usage: UsageStatistics = Field(default_factory=UsageStatistics)
    finish_reason: str = FinishReason.STOP.value
    provider: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def is_complete(self) -> bool:
        return self.finish_reason == FinishReason.STOP.value

    def was_truncated(self) -> bool:
        return self.finish_reason == FinishReason.LENGTH.value

    def was_filtered(self) -> bool:
        return self.finish_reason == FinishReason.CONTENT_FILTER.value

    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0

    @property
    def text(self) -> str:
        return self.content


class EmbeddingResponse(ValueObject):
    """Unified embedding response; one vector per input, in input order."""
    embeddings: List[List[float]]
    model: str = ""
    usage: UsageStatistics = Field(default_factory=UsageStatistics)
    provider: str = ""

    def get_vector(self, index: int = 0) -> List[float]:
        """
        Get one embedding vector.

        Args:
            index: Batch position (defaults to the first input)

        Raises:
            InvalidArgumentError: If no vector exists at the index
        """
        if index < 0 or index >= len(self.embeddings):
            raise InvalidArgumentError(f"No embedding at index {index}")
        return self.embeddings[index]

    @property
    def count(self) -> int:
        return len(self.embeddings)

    @property
    def dimensions(self) -> int:
        return len(self.embeddings[0]) if self.embeddings else 0

    @staticmethod
    def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
        """
        Cosine similarity of two equal-length vectors, in [-1, 1].

        A zero-norm vector has similarity 0.0 with everything.

        Raises:
            InvalidArgumentError: If either vector is empty or lengths differ
        """
        va = np.asarray(a, dtype=float)
        vb = np.asarray(b, dtype=float)

        if va.ndim != 1 or vb.ndim != 1:
            raise InvalidArgumentError("Vectors must be one-dimensional")
        if va.size == 0 or vb.size == 0:
            raise InvalidArgumentError("Vectors must not be empty")
        if va.size != vb.size:
            raise InvalidArgumentError(
                f"Vectors must have the same length ({va.size} != {vb.size})"
            )

        norm = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
        if norm == 0.0:
            return 0.0
        return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))

    @staticmethod
    def normalize_vector(vector: Sequence[float]) -> List[float]:
        """Scale a vector to unit length; zero vectors are returned unchanged."""
        v = np.asarray(vector, dtype=float)
        norm = np.linalg.norm(v)
        if norm == 0.0:
            return v.tolist()
        return (v / norm).tolist()

    @staticmethod
    def find_most_similar(
        query: Sequence[float],
        candidates: Sequence[Sequence[float]],
        top_k: int = 5,
    ) -> List[Dict[str, Any]]:
        """
        Rank candidate vectors by cosine similarity to a query vector.

        Args:
            query: Query vector
            candidates: Candidate vectors, each the length of the query
            top_k: Maximum number of results

        Returns:
            Up to top_k ``{"index", "similarity"}`` entries, most similar
            first; ties keep candidate order

        Raises:
            InvalidArgumentError: If top_k is below 1 or a vector is malformed
        """
        if top_k < 1:
            raise InvalidArgumentError("top_k must be at least 1")
        if len(candidates) == 0:
            return []

        scores = np.array([EmbeddingResponse.cosine_similarity(query, c) for c in candidates])
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [{"index": int(i), "similarity": float(scores[i])} for i in order]

    @staticmethod
    def pairwise_similarities(vectors: Sequence[Sequence[float]]) -> List[List[float]]:
        """
        Cosine similarity between every pair of vectors.

        The diagonal is always 1.0; zero-norm vectors score 0.0 against
        every other vector.

        Raises:
            InvalidArgumentError: If the vectors are empty or differ in length
        """
        if len(vectors) == 0:
            return []
        try:
            m = np.asarray(vectors, dtype=float)
        except ValueError as e:
            raise InvalidArgumentError(f"Vectors must have the same length: {e}") from e
        if m.ndim != 2 or m.shape[1] == 0:
            raise InvalidArgumentError("Vectors must be non-empty and of equal length")

        norms = np.linalg.norm(m, axis=1)
        unit = np.divide(m, norms[:, None], out=np.zeros_like(m), where=norms[:, None] != 0)
        matrix = np.clip(unit @ unit.T, -1.0, 1.0)
        np.fill_diagonal(matrix, 1.0)
        return matrix.tolist()


class VisionResponse(ValueObject):
    """Unified image analysis response."""
    description: str
    model: str = ""
    usage: UsageStatistics = Field(default_factory=UsageStatistics)
    provider: str = ""
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @property
    def text(self) -> str:
        return self.description


class TranslationResult(ValueObject):
    """Result of a translation request."""
    translation: str
    source_language: str
    target_language: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    usage: UsageStatistics = Field(default_factory=UsageStatistics)
    alternatives: List[str] = Field(default_factory=list)

    def is_confident(self, threshold: float = 0.7) -> bool:
        return self.confidence >= threshold
