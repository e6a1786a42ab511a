from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import StrEnum

from pydantic_ai.usage import RunUsage

from focusgroup.llm.service import UsageMetadata


class ModelTier(StrEnum):
    PRO = "pro"
    FLASH = "flash"


# JPY per token, (input, output).
COST_RATES: dict[ModelTier, tuple[float, float]] = {
    ModelTier.PRO: (0.0003, 0.0018),
    ModelTier.FLASH: (0.000045, 0.000375),
}


@dataclass
class TokenUsage:
    """Cumulative token usage for one simulation run, split by model tier."""

    usage: RunUsage = field(default_factory=RunUsage)
    by_tier: dict[ModelTier, RunUsage] = field(
        default_factory=lambda: {tier: RunUsage() for tier in ModelTier}
    )

    @property
    def input_tokens(self) -> int:
        return self.usage.input_tokens

    @property
    def output_tokens(self) -> int:
        return self.usage.output_tokens

    @property
    def total_tokens(self) -> int:
        return self.usage.total_tokens

    @property
    def api_calls(self) -> int:
        return self.usage.requests

    def record(self, metadata: UsageMetadata | None, tier: ModelTier) -> None:
        """Add one successful call. Calls without usage metadata still count."""
        run_usage = RunUsage(
            requests=1,
            input_tokens=max(metadata.input_tokens, 0) if metadata else 0,
            output_tokens=max(metadata.output_tokens, 0) if metadata else 0,
        )
        self.usage.incr(run_usage)
        self.by_tier[tier].incr(run_usage)

    def snapshot(self) -> TokenUsage:
        """Return an independent copy, safe to hand to observers."""
        return copy.deepcopy(self)

    def estimate_cost(self) -> float:
        """Estimated cost in JPY, rounded to 2 decimals."""
        cost = 0.0
        for tier, tier_usage in self.by_tier.items():
            input_rate, output_rate = COST_RATES[tier]
            cost += tier_usage.input_tokens * input_rate + tier_usage.output_tokens * output_rate
        return round(cost, 2)

    def format_cost(self) -> str:
        return f"¥{self.estimate_cost():.2f}"

    def as_dict(self) -> dict[str, object]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "api_calls": self.api_calls,
            "by_tier": {
                tier.value: {
                    "input_tokens": tier_usage.input_tokens,
                    "output_tokens": tier_usage.output_tokens,
                    "api_calls": tier_usage.requests,
                }
                for tier, tier_usage in self.by_tier.items()
            },
            "estimated_cost_jpy": self.estimate_cost(),
        }
