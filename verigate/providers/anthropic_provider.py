"""
Anthropic Provider
===================

Calls the Anthropic Messages API directly over ``httpx``.

Request:  POST {base_url}/messages
          {"model", "max_tokens", "temperature", "messages": [{"role": "user", ...}]}
Response: {"content": [{"type": "text", "text": ...}], "usage": {"input_tokens", "output_tokens"}}
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

ANTHROPIC_API_VERSION = "2023-06-01"

ANTHROPIC_DESCRIPTOR = ProviderDescriptor(
    name="anthropic",
    display_name="Anthropic Claude",
    base_url="https://api.anthropic.com/v1",
    endpoint="/messages",
    models=ModelTiers(
        default="claude-3-haiku-20240307",
        fast="claude-3-haiku-20240307",
        accurate="claude-3-opus-20240229",
    ),
    cost_per_1k_input=0.00025,
    cost_per_1k_output=0.00125,
    api_key_env="VERIGATE_ANTHROPIC_API_KEY",
    website="https://www.anthropic.com",
    known_models=("claude-3-opus-20240229", "claude-3-sonnet-20240229", "claude-3-haiku-20240307"),
)


class AnthropicProvider(HTTPProvider):
    """Verification calls against the Anthropic Messages API."""

    descriptor = ANTHROPIC_DESCRIPTOR

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_API_VERSION,
        }

    def _payload(self, prompt: str, call: CallSettings) -> dict[str, Any]:
        return {
            "model": call.model,
            "max_tokens": call.max_tokens,
            "temperature": call.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }

    def _parse(self, body: Any, call: CallSettings) -> RawProviderResponse:
        if not isinstance(body, dict):
            body = {}
        text = "".join(
            block.get("text", "") for block in body.get("content") or []
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )

        usage = None
        raw_usage = body.get("usage")
        if isinstance(raw_usage, dict):
            input_tokens = int(raw_usage.get("input_tokens") or 0)
            output_tokens = int(raw_usage.get("output_tokens") or 0)
            usage = TokenUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )

        return RawProviderResponse(text=text, usage=usage, model=body.get("model") or call.model)
