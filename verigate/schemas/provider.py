"""
Provider Schemas
=================

Static descriptors for supported LLM providers and the normalized shape
every provider adapter returns. The rest of the pipeline only ever sees
``RawProviderResponse``; provider-specific request and response shapes
stay inside the adapters.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ModelTiers(BaseModel):
    """Model names per use case."""
    model_config = ConfigDict(frozen=True)

    default: str
    fast: str
    accurate: str
    cheap: Optional[str] = None


class ProviderDescriptor(BaseModel):
    """
    Read-only description of one provider: models, endpoint and prices.

    Constructed once when the provider registry is imported and shared
    by reference; never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str
    base_url: str
    endpoint: str = Field(description="Path template appended to base_url")
    models: ModelTiers
    cost_per_1k_input: float = Field(ge=0.0)
    cost_per_1k_output: float = Field(ge=0.0)
    api_key_env: Optional[str] = Field(
        default=None,
        description="Environment variable holding the API key (None for keyless providers)",
    )
    website: str = ""
    known_models: tuple[str, ...] = ()

    @property
    def requires_api_key(self) -> bool:
        return self.api_key_env is not None

    def cost(self, input_tokens: int, output_tokens: int) -> float:
        """Currency cost of a call from its token counts."""
        return (
            (input_tokens / 1000) * self.cost_per_1k_input
            + (output_tokens / 1000) * self.cost_per_1k_output
        )

    def resolve_model(self, name: Optional[str]) -> str:
        """Map a tier name ("fast", "accurate", "cheap") or None to a model id."""
        if not name:
            return self.models.default
        if name in ("default", "fast", "accurate", "cheap"):
            return getattr(self.models, name) or self.models.default
        return name

    def info(self) -> dict:
        """Human-facing summary (used by ``verigate providers``)."""
        return {
            "name": self.display_name,
            "models": list(self.known_models) or [self.models.default],
            "website": self.website,
            "cost": f"${self.cost_per_1k_input}/1K input, ${self.cost_per_1k_output}/1K output",
        }


class TokenUsage(BaseModel):
    """Token counts as reported by the provider."""
    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class RawProviderResponse(BaseModel):
    """Normalized output of one provider call."""
    model_config = ConfigDict(frozen=True)

    text: str = ""
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None


class CallSettings(BaseModel):
    """
    Fully resolved settings for one provider call.

    Built by the verifier from per-call options layered over the static
    config, so adapters never consult configuration themselves.
    """
    model_config = ConfigDict(frozen=True)

    model: str
    temperature: float = Field(ge=0.0, le=2.0)
    max_tokens: int = Field(gt=0)
    timeout_s: float = Field(gt=0.0)
