from __future__ import annotations

from typing import Any

from avatargen.models import TokenUsage

PER_MILLION = 1_000_000


def format_cost(amount: float) -> str:
    return f"${amount:.4f}"


class CostAccountant:
    def __init__(self, rates: dict[str, dict[str, Any]]):
        self.rates = rates

    def estimate(self, backend: str, usage: dict[str, int] | None) -> TokenUsage:
        try:
            rate = self.rates[backend]
        except KeyError:
            raise KeyError(f"No pricing configured for backend '{backend}'") from None
        image_tokens = int(rate["image_tokens"])
        if usage:
            prompt_tokens = int(usage.get("prompt_tokens", 0))
            completion_tokens = int(usage.get("completion_tokens", 0))
            total_tokens = int(usage.get("total_tokens") or prompt_tokens + completion_tokens)
            estimated = False
        else:
            prompt_tokens = int(rate.get("assumed_prompt_tokens", 0))
            completion_tokens = 0
            total_tokens = prompt_tokens
            estimated = True
        cost = (
            prompt_tokens * float(rate.get("input_per_million", 0.0))
            + completion_tokens * float(rate.get("output_per_million", 0.0))
            + image_tokens * float(rate["image_per_million"])
        ) / PER_MILLION
        return TokenUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            image_tokens=image_tokens,
            total_tokens=total_tokens + image_tokens,
            estimated_cost=cost,
            estimated=estimated,
        )

    def probe_cost(self, backend: str) -> float:
        return float(self.rates.get(backend, {}).get("probe_cost", 0.0))

    @staticmethod
    def cached() -> TokenUsage:
        return TokenUsage()
