"""
VeriGate Configuration System
==============================

Central configuration using Pydantic Settings. Supports:
- Environment variables (VERIGATE_ prefix, ``__`` for nested fields)
- .env file loading
- YAML config file overrides

The resolved config is read-only for the lifetime of a verifier:
per-call overrides travel in ``VerificationOptions``, never by
mutating the shared config.

Usage:
    from verigate.config import get_config
    cfg = get_config()                          # loads from env / .env
    cfg = get_config("configs/moderation.yaml") # loads with YAML overrides
"""

from __future__ import annotations

import hashlib
import json
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from verigate.schemas.verification import VerificationCriteria

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_SECRET_FIELDS = {"openai_api_key", "gemini_api_key", "anthropic_api_key", "huggingface_api_key"}


# ── Provider ───────────────────────────────────────────────────────
class ProviderName(str, Enum):
    """Supported completion providers."""
    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    HUGGINGFACE = "huggingface"
    OLLAMA = "ollama"


# ── Sub-configs ────────────────────────────────────────────────────
class CriteriaConfig(BaseModel):
    """Which of the seven canonical checks run by default."""
    toxicity: bool = Field(default=False, description="Toxic, hateful or abusive content")
    factuality: bool = Field(default=False, description="Factual accuracy / misinformation")
    coherence: bool = Field(default=False, description="Logical flow and clarity")
    relevance: bool = Field(default=False, description="Relevance to the intended topic")
    safety: bool = Field(default=False, description="Dangerous or policy-violating content")
    moderation: bool = Field(default=False, description="Inappropriate or explicit content")
    bias: bool = Field(default=False, description="Political, racial, gender or other bias")

    def to_criteria(self) -> VerificationCriteria:
        return VerificationCriteria(**self.model_dump())


# ── Main Config ────────────────────────────────────────────────────
class VerigateConfig(BaseSettings):
    """
    Root configuration for the verification pipeline.

    Loads from environment variables (VERIGATE_ prefix) and .env file.
    Can be extended with YAML overrides via `get_config(yaml_path)`.

    Example:
        export VERIGATE_PROVIDER=gemini
        export VERIGATE_MAX_RETRIES=5
        export VERIGATE_CRITERIA__TOXICITY=true
    """
    model_config = SettingsConfigDict(
        env_prefix="VERIGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ── Provider call settings ─────────────────────────────────────
    provider: ProviderName = Field(default=ProviderName.OPENAI, description="Completion provider")
    model: Optional[str] = Field(
        default=None,
        description="Default model; None uses the provider's default tier",
    )
    max_retries: int = Field(default=3, ge=1, le=10, description="Retries after the first attempt")
    timeout_ms: int = Field(default=30000, gt=0, description="Per-call HTTP timeout")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=1000, gt=0, description="Max output tokens")
    retry_base_delay_s: float = Field(default=1.0, ge=0.0, description="Backoff base (doubles per attempt)")

    # ── Batch settings ─────────────────────────────────────────────
    batch_size: int = Field(default=3, gt=0, description="Concurrent verifications per chunk")
    batch_delay_s: float = Field(default=1.0, ge=0.0, description="Pause between chunks")

    # ── Criteria ───────────────────────────────────────────────────
    criteria: CriteriaConfig = Field(default_factory=CriteriaConfig)

    # ── Observability ──────────────────────────────────────────────
    error_reporting_enabled: bool = Field(default=False, description="Send reports to the error sink")
    metrics_path: Optional[Path] = Field(
        default=None,
        description="JSONL file for the metrics sink (None keeps metrics in memory)",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format: 'json' or 'text'")

    # ── Credentials / endpoints ────────────────────────────────────
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_base_url: Optional[str] = Field(default=None, description="OpenAI-compatible base URL")
    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API key")
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API key")
    anthropic_base_url: Optional[str] = None
    huggingface_api_key: Optional[str] = Field(default=None, description="HuggingFace Inference token")
    huggingface_base_url: Optional[str] = None
    ollama_base_url: Optional[str] = Field(default=None, description="Ollama server URL")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper == "WARN":
            upper = "WARNING"
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {_VALID_LOG_LEVELS}, got '{v}'")
        return upper

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    def api_key_for(self, provider: str) -> Optional[str]:
        """API key configured for ``provider`` (None for keyless providers)."""
        return getattr(self, f"{provider}_api_key", None)

    def base_url_for(self, provider: str) -> Optional[str]:
        return getattr(self, f"{provider}_base_url", None)

    def validate_provider_credentials(self) -> list[str]:
        """
        Check that the selected provider can actually be called.

        Returns:
            Human-readable problems; empty when the config is usable.
        """
        problems: list[str] = []
        provider = self.provider.value
        if provider != ProviderName.OLLAMA.value and not self.api_key_for(provider):
            problems.append(
                f"VERIGATE_{provider.upper()}_API_KEY is required for the {provider} provider"
            )
        return problems

    def config_hash(self) -> str:
        """
        Deterministic SHA-256 hash of the configuration (secrets excluded).

        Stamped into metrics metadata so recorded outcomes can be tied
        back to the settings that produced them.
        """
        config_dict = self.model_dump(mode="json", exclude=_SECRET_FIELDS)
        canonical = json.dumps(config_dict, sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


# ── Config Loading ─────────────────────────────────────────────────
def get_config(yaml_path: Optional[str] = None, **overrides) -> VerigateConfig:
    """
    Load VeriGate configuration.

    Priority (highest to lowest):
        1. Keyword overrides
        2. YAML config file (if provided)
        3. Environment variables (VERIGATE_ prefix)
        4. .env file
        5. Default values

    Args:
        yaml_path: Optional path to a YAML config file for overrides.
        **overrides: Field values that win over every other source.

    Returns:
        Fully resolved VerigateConfig instance.
    """
    values: dict = {}
    if yaml_path:
        import yaml
        with open(yaml_path) as f:
            values.update(yaml.safe_load(f) or {})
    values.update({k: v for k, v in overrides.items() if v is not None})
    return VerigateConfig(**values)
