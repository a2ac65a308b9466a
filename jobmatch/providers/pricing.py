"""Token pricing used to estimate the cost recorded in match provenance."""

from typing import Dict, Tuple

# USD per one million tokens: (input, output).
MODEL_PRICES: Dict[str, Tuple[float, float]] = {
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "gpt-4.1-mini": (0.40, 1.60),
    "gpt-4.1": (2.00, 8.00),
    "text-embedding-3-small": (0.02, 0.0),
    "text-embedding-3-large": (0.13, 0.0),
}

_FALLBACK_MODEL = "gpt-4o-mini"


def estimate_cost_usd(model: str, prompt_tokens: int, completion_tokens: int = 0) -> float:
    """Estimate the USD cost of one call.

    Unknown models are priced like the default chat model. Dated model
    snapshots ("gpt-4o-mini-2024-07-18") resolve to their base name.

    Args:
        model: Model identifier reported by the provider
        prompt_tokens: Input tokens
        completion_tokens: Output tokens

    Returns:
        Cost rounded to 6 decimal places
    """
    input_price, output_price = _lookup(model)
    cost = (prompt_tokens * input_price + completion_tokens * output_price) / 1_000_000
    return round(cost, 6)


def _lookup(model: str) -> Tuple[float, float]:
    if model in MODEL_PRICES:
        return MODEL_PRICES[model]
    for name in sorted(MODEL_PRICES, key=len, reverse=True):
        if model.startswith(name + "-"):
            return MODEL_PRICES[name]
    return MODEL_PRICES[_FALLBACK_MODEL]
