from __future__ import annotations

from dataclasses import dataclass


# USD per 1M tokens
PRICING: dict[str, dict[str, tuple[float, float]]] = {
    "openai": {
        "gpt-4.1-mini": (0.40, 1.60),
        "gpt-4.1-nano": (0.10, 0.40),
        "gpt-4.1": (2.00, 8.00),
        "gpt-4o": (2.50, 10.00),
        "gpt-4o-mini": (0.15, 0.60),
    },
    "gemini": {
        "gemini-2.5-flash": (0.30, 2.50),
        "gemini-2.5-flash-lite": (0.10, 0.40),
        "gemini-2.5-pro": (1.25, 10.00),
    },
}


@dataclass(frozen=True)
class Cost:
    input: float
    output: float

    @property
    def total(self) -> float:
        return self.input + self.output


def calculate_cost(provider: str, model: str, input_tokens: int, output_tokens: int) -> Cost | None:
    prices = PRICING.get(provider, {}).get(model)
    if prices is None:
        return None
    input_price, output_price = prices
    return Cost(
        input=input_tokens / 1_000_000 * input_price,
        output=output_tokens / 1_000_000 * output_price,
    )
