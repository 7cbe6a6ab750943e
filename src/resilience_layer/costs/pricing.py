"""
Per-service pricing and cost calculation.

A service is priced either per call or per 1k tokens (input/output rates),
never both. When only a token total is known, 80% is treated as input and
20% as output.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

INPUT_TOKEN_SHARE = 0.8
OUTPUT_TOKEN_SHARE = 0.2


class TokenRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    input: float = Field(..., ge=0.0, description="USD per 1k input tokens")
    output: float = Field(..., ge=0.0, description="USD per 1k output tokens")


class ServicePricing(BaseModel):
    model_config = ConfigDict(frozen=True)

    cost_per_call: Optional[float] = Field(default=None, ge=0.0, description="Flat USD per API call")
    cost_per_1k_tokens: Optional[TokenRates] = Field(default=None, description="Token-tiered rates")

    @model_validator(mode="after")
    def _one_pricing_mode(self) -> "ServicePricing":
        if self.cost_per_call is not None and self.cost_per_1k_tokens is not None:
            raise ValueError("cost_per_call and cost_per_1k_tokens are mutually exclusive")
        return self


def default_service_pricing() -> dict[str, ServicePricing]:
    """Estimated list prices; override through configuration."""
    return {
        "firecrawl": ServicePricing(cost_per_call=0.001),
        "gemini": ServicePricing(cost_per_1k_tokens=TokenRates(input=0.000075, output=0.0003)),
        "google_cse": ServicePricing(cost_per_call=0.0005),
        "linkedin": ServicePricing(cost_per_call=0.01),
        "email_discovery": ServicePricing(cost_per_call=0.005),
        "other": ServicePricing(cost_per_call=0.001),
    }


def calculate_api_cost(
    pricing: ServicePricing,
    tokens_used: Optional[int] = None,
    input_tokens: Optional[int] = None,
    output_tokens: Optional[int] = None,
    calls: int = 1,
) -> float:
    """
    Cost in USD of ``calls`` calls consuming the given tokens.

    Token pricing only applies when the service is token-priced and either
    both input and output counts or a total are known. Explicit counts,
    zero included, win over the 80/20 split of the total.
    """
    cost = 0.0
    rates = pricing.cost_per_1k_tokens

    if rates is not None:
        if input_tokens is not None and output_tokens is not None:
            input_count, output_count = input_tokens, output_tokens
        elif tokens_used:
            input_count = tokens_used * INPUT_TOKEN_SHARE if input_tokens is None else input_tokens
            output_count = tokens_used * OUTPUT_TOKEN_SHARE if output_tokens is None else output_tokens
        else:
            input_count = output_count = 0
        cost += input_count / 1000 * rates.input
        cost += output_count / 1000 * rates.output

    if pricing.cost_per_call:
        cost += max(1, calls) * pricing.cost_per_call

    return max(0.0, cost)
