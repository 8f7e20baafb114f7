"""
Verification Schemas
=====================

Data contracts for a single verification and for batch aggregates.

Design Decisions:
    - Criteria and options are frozen: built fresh per call, never mutated
    - Scores and confidence are continuous [0, 1] and validated at construction
    - Results serialize with camelCase aliases (``isValid``, ``latencyMs``)
      so the JSON contract matches what HTTP callers consume
    - Every result is fully populated on every code path; failure paths
      carry zeroed metrics rather than missing ones

Category map semantics:
    A result produced from structured (JSON) model output always carries
    all seven canonical categories; categories the model skipped are
    filled with ``passed=False, score=0, "Category not checked"``.
    A result produced by the free-text fallback carries an EMPTY map.
    Empty categories mean "no category information available", never
    "every category failed". Use ``has_category_information`` rather
    than reading meaning into the map's size.

Data Flow:
    VerificationCriteria + content → Prompt → Provider → Parser → VerificationResult
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


CANONICAL_CATEGORIES: tuple[str, ...] = (
    "toxicity",
    "factuality",
    "coherence",
    "relevance",
    "safety",
    "moderation",
    "bias",
)

NOT_CHECKED_EXPLANATION = "Category not checked"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp used on metrics and metadata."""
    return datetime.now(timezone.utc).isoformat()


class VerificationType(str, Enum):
    """Tag describing what a verification is for. Used in logs and reports."""
    CONTENT_SAFETY = "content_safety"
    FACT_CHECK = "fact_check"
    QUALITY = "quality"
    MODERATION = "moderation"
    CUSTOM = "custom"
    GENERAL = "general"


class VerificationCriteria(BaseModel):
    """
    Named boolean checks requested for one verification.

    The seven canonical criteria are explicit fields; arbitrary extra
    named criteria are accepted as extra boolean fields:

        VerificationCriteria(toxicity=True, tone=True)
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    toxicity: bool = False
    factuality: bool = False
    coherence: bool = False
    relevance: bool = False
    safety: bool = False
    moderation: bool = False
    bias: bool = False

    @model_validator(mode="after")
    def extras_are_booleans(self) -> "VerificationCriteria":
        for name, value in (self.model_extra or {}).items():
            if not isinstance(value, bool):
                raise ValueError(f"criterion '{name}' must be a boolean, got {type(value).__name__}")
        return self

    def as_dict(self) -> dict[str, bool]:
        """All criteria (canonical first, then extras) with their flags."""
        flags = {name: getattr(self, name) for name in CANONICAL_CATEGORIES}
        flags.update(self.model_extra or {})
        return flags

    def enabled(self) -> list[str]:
        """Requested criterion names in fixed, stable order."""
        return [name for name, flag in self.as_dict().items() if flag]

    def merged(self, overrides: Optional[dict[str, bool]]) -> "VerificationCriteria":
        """Return a new criteria set with ``overrides`` applied on top."""
        if not overrides:
            return self
        return VerificationCriteria(**{**self.as_dict(), **overrides})


class VerificationOptions(BaseModel):
    """
    Per-call configuration. Any field left as ``None`` falls back to the
    verifier's static configuration.
    """
    model_config = ConfigDict(frozen=True)

    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    context: Optional[str] = None
    type: Optional[VerificationType] = None
    batch_size: Optional[int] = Field(default=None, gt=0)
    batch_index: Optional[int] = Field(default=None, ge=0)
    batch_total: Optional[int] = Field(default=None, ge=0)
    timeout_ms: Optional[int] = Field(default=None, gt=0)
    retry_attempts: Optional[int] = Field(default=None, ge=0, le=10)
    custom_criteria: Optional[dict[str, bool]] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def type_tag(self) -> str:
        return self.type.value if self.type else VerificationType.GENERAL.value


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CategoryResult(_CamelModel):
    """Outcome for one criterion."""
    model_config = ConfigDict(frozen=True)

    passed: bool
    score: float = Field(ge=0.0, le=1.0)
    explanation: str
    details: Optional[list[str]] = None

    @classmethod
    def not_checked(cls) -> "CategoryResult":
        return cls(passed=False, score=0.0, explanation=NOT_CHECKED_EXPLANATION)


class VerificationMetrics(_CamelModel):
    """Latency, token usage and cost for one verification."""
    model_config = ConfigDict(frozen=True)

    latency_ms: float = Field(default=0.0, ge=0.0)
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0, description="Currency units (USD)")
    model: str = "unknown"
    provider: str = "unknown"
    timestamp: str = Field(default_factory=utc_timestamp)

    @classmethod
    def zeroed(cls, model: str = "unknown", provider: str = "unknown") -> "VerificationMetrics":
        """Metrics for a verification where no provider call succeeded."""
        return cls(model=model, provider=provider)


class VerificationResult(_CamelModel):
    """
    Sole output of one verification. See the module docstring for the
    meaning of an empty ``categories`` map.

    Schema:
        {
          "isValid": true,
          "confidence": 0.92,
          "reason": "No harmful content found",
          "issues": [],
          "suggestions": [],
          "categories": {"toxicity": {"passed": true, "score": 0.95, "explanation": "..."}},
          "metrics": {"latencyMs": 812.4, "totalTokens": 391, "cost": 0.0003, ...},
          "provider": "openai",
          "model": "gpt-4o-mini"
        }
    """
    is_valid: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    categories: dict[str, CategoryResult] = Field(default_factory=dict)
    metrics: VerificationMetrics = Field(default_factory=VerificationMetrics)
    provider: Optional[str] = None
    model: Optional[str] = None
    error: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_category_information(self) -> bool:
        """False when the free-text fallback produced this result."""
        return bool(self.categories)

    @property
    def used_fallback(self) -> bool:
        return self.metadata.get("parse_path") == "free_text"

    @property
    def failed_categories(self) -> list[str]:
        """Categories that were checked by the model and did not pass."""
        return [
            name for name, cat in self.categories.items()
            if not cat.passed and cat.explanation != NOT_CHECKED_EXPLANATION
        ]

    def to_json_dict(self) -> dict[str, Any]:
        """camelCase dict for the external JSON contract."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BatchVerificationResult(_CamelModel):
    """Aggregate over a completed list of results. Built by ``verify.batch.summarize``."""
    total: int = 0
    valid: int = 0
    invalid: int = 0
    average_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    total_cost: float = 0.0
    total_tokens: int = 0
    results: list[VerificationResult] = Field(default_factory=list)
    summary: dict[str, int] = Field(default_factory=dict)
