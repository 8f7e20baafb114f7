"""
Ollama Provider
================

Local models served by Ollama. No API key, no cost.

Request:  POST {base_url}/api/generate
          {"model", "prompt", "stream": false, "options": {"temperature", "num_predict"}}
Response: {"response": ..., "prompt_eval_count": n, "eval_count": m, "model": ...}
"""

from __future__ import annotations

from typing import Any

from verigate.providers.base import HTTPProvider
from verigate.schemas.provider import (
    CallSettings,
    ModelTiers,
    ProviderDescriptor,
    RawProviderResponse,
    TokenUsage,
)

OLLAMA_DESCRIPTOR = ProviderDescriptor(
    name="ollama",
    display_name="Ollama (local)",
    base_url="http://localhost:11434",
    endpoint="/api/generate",
    models=ModelTiers(
        default="llama3.1",
        fast="llama3.2",
        accurate="llama3.1:70b",
    ),
    cost_per_1k_input=0.0,
    cost_per_1k_output=0.0,
    api_key_env=None,
    website="https://ollama.com",
    known_models=("llama3.1", "llama3.2", "llama3.1:70b", "mistral", "qwen2.5"),
)


class OllamaProvider(HTTPProvider):
    """Verification calls against a local Ollama server."""

    descriptor = OLLAMA_DESCRIPTOR

    def _payload(self, prompt: str, call: CallSettings) -> dict[str, Any]:
        return {
            "model": call.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": call.temperature,
                "num_predict": call.max_tokens,
            },
        }

    def _parse(self, body: Any, call: CallSettings) -> RawProviderResponse:
        if not isinstance(body, dict):
            return RawProviderResponse(text="", usage=None, model=call.model)

        usage = None
        if "prompt_eval_count" in body or "eval_count" in body:
            prompt_tokens = int(body.get("prompt_eval_count") or 0)
            completion_tokens = int(body.get("eval_count") or 0)
            usage = TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            )

        return RawProviderResponse(
            text=body.get("response") or "",
            usage=usage,
            model=body.get("model") or call.model,
        )
