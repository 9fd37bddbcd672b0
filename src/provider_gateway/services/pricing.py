"""
Per-model token pricing used to estimate request cost.
"""

import logging
from decimal import Decimal
from typing import Dict, Mapping, Optional

from ..core.config import ModelPricing
from ..models.response import UsageStatistics

logger = logging.getLogger(__name__)

# USD per 1M tokens
MODEL_PRICING: Dict[str, Dict[str, Decimal]] = {
    # OpenAI models
    "gpt-4o": {"input": Decimal("2.50"), "output": Decimal("10.00")},
    "gpt-4o-mini": {"input": Decimal("0.15"), "output": Decimal("0.60")},
    "gpt-4-turbo": {"input": Decimal("10.00"), "output": Decimal("30.00")},
    "text-embedding-3-small": {"input": Decimal("0.02"), "output": Decimal("0")},
    "text-embedding-3-large": {"input": Decimal("0.13"), "output": Decimal("0")},
    # Anthropic models
    "claude-sonnet-4-5": {"input": Decimal("3.00"), "output": Decimal("15.00")},
    "claude-3-5-sonnet": {"input": Decimal("3.00"), "output": Decimal("15.00")},
    "claude-3-opus": {"input": Decimal("15.00"), "output": Decimal("75.00")},
    "claude-3-haiku": {"input": Decimal("0.25"), "output": Decimal("1.25")},
    # Google models
    "gemini-2.0-flash": {"input": Decimal("0.10"), "output": Decimal("0.40")},
    "gemini-1.5-pro": {"input": Decimal("1.25"), "output": Decimal("5.00")},
    # Mistral models
    "mistral-large": {"input": Decimal("2.00"), "output": Decimal("6.00")},
    "mistral-embed": {"input": Decimal("0.10"), "output": Decimal("0")},
    # Groq hosted models
    "llama-3.3-70b": {"input": Decimal("0.59"), "output": Decimal("0.79")},
}


class PricingTable:
    """
    Model pricing lookup with partial-name matching.

    Configured prices override the built-in table.
    """

    def __init__(self, overrides: Optional[Mapping[str, ModelPricing]] = None):
        self._pricing = dict(MODEL_PRICING)
        for model, price in (overrides or {}).items():
            self._pricing[model.lower()] = {
                "input": Decimal(str(price.input)),
                "output": Decimal(str(price.output)),
            }

    def get_model_pricing(self, model: str) -> Optional[Dict[str, Decimal]]:
        """Get pricing for a model, or None when the model is unknown."""
        model_lower = model.lower()

        if model_lower in self._pricing:
            return self._pricing[model_lower]

        # Partial match, longest key first so "gpt-4o-mini" beats "gpt-4o"
        for key in sorted(self._pricing, key=len, reverse=True):
            if key in model_lower:
                return self._pricing[key]

        logger.debug(f"No pricing found for model {model}")
        return None

    def estimate_cost(self, model: str, usage: UsageStatistics) -> Optional[float]:
        """
        Estimate the USD cost of a request.

        Args:
            model: Model name reported by the provider
            usage: Token usage of the request

        Returns:
            Cost in USD, or None for unpriced models
        """
        pricing = self.get_model_pricing(model) if model else None
        if pricing is None:
            return None

        cost = (
            Decimal(usage.prompt_tokens) * pricing["input"]
            + Decimal(usage.completion_tokens) * pricing["output"]
        ) / Decimal(1_000_000)
        return float(cost)
