"""
VeriGate Verification Core
===========================

    content + criteria → prompt → provider (with retries) → parser → VerificationResult

Modules:
    prompt      — deterministic prompt rendering
    retry       — transient-vs-terminal error classification, backoff
    normalizer  — score / confidence scale normalization
    parser      — JSON extraction ladder and free-text fallback
    verifier    — single-verification state machine (LLMVerifier)
    batch       — chunked concurrent verification and aggregation
"""

from verigate.verify.batch import BatchCoordinator, summarize
from verigate.verify.normalizer import calculate_confidence, normalize_score
from verigate.verify.parser import parse_response
from verigate.verify.prompt import build_prompt
from verigate.verify.retry import backoff_delay, is_retryable
from verigate.verify.verifier import LLMVerifier, VerifyState

__all__ = [
    "BatchCoordinator",
    "LLMVerifier",
    "VerifyState",
    "backoff_delay",
    "build_prompt",
    "calculate_confidence",
    "is_retryable",
    "normalize_score",
    "parse_response",
    "summarize",
]
