"""
HuggingFace Provider
=====================

Text generation through the HuggingFace Inference API.

Request:  POST {base_url}/models/{model}
          {"inputs": prompt, "parameters": {"temperature", "max_new_tokens", "return_full_text": false}}
Response: [{"generated_text": ...}]

The Inference API does not report token usage; the verifier falls
back to its length-based estimate.
"""

from __future__ import annotations

from typing import Any

from verigate.providers.base import HTTPProvider
from verigate.schemas.provider import (
    CallSettings,
    ModelTiers,
    ProviderDescriptor,
    RawProviderResponse,
)

HUGGINGFACE_DESCRIPTOR = ProviderDescriptor(
    name="huggingface",
    display_name="HuggingFace Inference",
    base_url="https://api-inference.huggingface.co",
    endpoint="/models/{model}",
    models=ModelTiers(
        default="mistralai/Mistral-7B-Instruct-v0.3",
        fast="HuggingFaceH4/zephyr-7b-beta",
        accurate="meta-llama/Meta-Llama-3-70B-Instruct",
    ),
    cost_per_1k_input=0.0,
    cost_per_1k_output=0.0,
    api_key_env="VERIGATE_HUGGINGFACE_API_KEY",
    website="https://huggingface.co/inference-api",
    known_models=(
        "mistralai/Mistral-7B-Instruct-v0.3",
        "HuggingFaceH4/zephyr-7b-beta",
        "meta-llama/Meta-Llama-3-70B-Instruct",
    ),
)


class HuggingFaceProvider(HTTPProvider):
    """Verification calls against a hosted HuggingFace text-generation model."""

    descriptor = HUGGINGFACE_DESCRIPTOR

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    def _payload(self, prompt: str, call: CallSettings) -> dict[str, Any]:
        return {
            "inputs": prompt,
            "parameters": {
                # The Inference API rejects temperature == 0
                "temperature": max(call.temperature, 0.01),
                "max_new_tokens": call.max_tokens,
                "return_full_text": False,
            },
        }

    def _parse(self, body: Any, call: CallSettings) -> RawProviderResponse:
        if isinstance(body, list) and body:
            body = body[0]
        text = body.get("generated_text", "") if isinstance(body, dict) else ""
        return RawProviderResponse(text=text or "", usage=None, model=call.model)
