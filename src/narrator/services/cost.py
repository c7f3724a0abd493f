"""Rough token and cost estimate for narrating a manuscript."""

from __future__ import annotations

import math

from ..schemas.narration import CostEstimate, ModelId

CHARS_PER_TOKEN = 4

# USD per 1M tokens, from public pricing at the time of writing
PRICE_PER_MILLION_TOKENS: dict[ModelId, float] = {
    ModelId.FLASH: 0.10,
    ModelId.PRO: 1.25,
}


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_cost(text: str, model: ModelId) -> CostEstimate:
    tokens = estimate_tokens(text)
    cost = (tokens / 1_000_000) * PRICE_PER_MILLION_TOKENS[model]
    return CostEstimate(
        characters=len(text),
        tokens=tokens,
        cost_usd=round(cost, 6),
        model=model,
    )


__all__ = ["CHARS_PER_TOKEN", "PRICE_PER_MILLION_TOKENS", "estimate_cost", "estimate_tokens"]
