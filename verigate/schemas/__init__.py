"""
VeriGate Data Schemas
======================

Pydantic v2 models for the verification pipeline's data contracts:

1. VerificationCriteria / VerificationOptions: per-call inputs
2. CategoryResult / VerificationMetrics / VerificationResult: per-call output
3. BatchVerificationResult: aggregate over many results
4. ProviderDescriptor / RawProviderResponse: provider adapter contract
"""

from verigate.schemas.verification import (
    CANONICAL_CATEGORIES,
    BatchVerificationResult,
    CategoryResult,
    VerificationCriteria,
    VerificationMetrics,
    VerificationOptions,
    VerificationResult,
    VerificationType,
)
from verigate.schemas.provider import (
    CallSettings,
    ModelTiers,
    ProviderDescriptor,
    RawProviderResponse,
    TokenUsage,
)

__all__ = [
    # Verification
    "CANONICAL_CATEGORIES",
    "BatchVerificationResult",
    "CategoryResult",
    "VerificationCriteria",
    "VerificationMetrics",
    "VerificationOptions",
    "VerificationResult",
    "VerificationType",
    # Provider
    "CallSettings",
    "ModelTiers",
    "ProviderDescriptor",
    "RawProviderResponse",
    "TokenUsage",
]
