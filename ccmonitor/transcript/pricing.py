"""Per-model token pricing."""

from __future__ import annotations

from typing import Optional

from ccmonitor.config import ModelRate

# USD per million tokens, keyed by a substring of the model name.
DEFAULT_RATES: dict[str, ModelRate] = {
    "claude-opus-4": ModelRate(input=15.0, output=75.0),
    "claude-3-opus": ModelRate(input=15.0, output=75.0),
    "claude-sonnet-4": ModelRate(input=3.0, output=15.0),
    "claude-3-7-sonnet": ModelRate(input=3.0, output=15.0),
    "claude-3-5-sonnet": ModelRate(input=3.0, output=15.0),
    "claude-3-5-haiku": ModelRate(input=0.8, output=4.0),
    "claude-3-haiku": ModelRate(input=0.25, output=1.25),
}

# Sonnet tier when the model is unknown
DEFAULT_RATE = ModelRate(input=3.0, output=15.0)


class PriceTable:
    """Looks up rates by detected model; user overrides win over built-ins."""

    def __init__(self, overrides: Optional[dict[str, ModelRate]] = None):
        self.rates: dict[str, ModelRate] = {**DEFAULT_RATES, **(overrides or {})}
        self._overrides = set(overrides or {})

    def rate_for(self, model: Optional[str]) -> ModelRate:
        if not model:
            return DEFAULT_RATE
        # Overrides first, then the most specific (longest) matching key.
        keys = sorted(self.rates, key=lambda k: (k not in self._overrides, -len(k)))
        for key in keys:
            if key in model:
                return self.rates[key]
        return DEFAULT_RATE

    def cost(self, input_tokens: int, output_tokens: int, model: Optional[str] = None) -> float:
        rate = self.rate_for(model)
        return (input_tokens * rate.input + output_tokens * rate.output) / 1_000_000
