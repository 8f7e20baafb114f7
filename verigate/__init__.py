"""
VeriGate — Bounded-Confidence Verification of LLM Output
=========================================================

VeriGate turns untrusted, free-form text returned by a large language
model into a structured verdict: valid/invalid, a confidence in [0, 1],
per-category scores, issues and suggestions. The upstream model may be
non-deterministic, may return malformed output, and may fail
transiently; the pipeline always returns a fully populated result.

Architecture Overview:
    content → Prompt Builder → Provider (with retries) → Parser → Result → Metrics

Modules:
    - schemas:    Pydantic data contracts (criteria, options, results)
    - providers:  Uniform async adapters over LLM completion endpoints
    - verify:     Prompt builder, parser, normalizer, retry classifier,
                  orchestrator and batch coordinator
    - monitoring: Metrics sinks, health checks and error reporting
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
