"""
Gemini Provider
================

Uses Google's Gemini API through the ``google-genai`` SDK's async
surface (``client.aio.models.generate_content``).

The SDK call is wrapped in ``asyncio.wait_for`` so the configured
per-call timeout aborts the request; the abort surfaces as a retryable
``ProviderError(code="ETIMEDOUT")``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors

from verigate.providers.base import BaseProvider
from verigate.schemas.provider import (
    CallSettings,
    ModelTiers,
    ProviderDescriptor,
    RawProviderResponse,
    TokenUsage,
)

logger = logging.getLogger("verigate.providers.gemini")

GEMINI_DESCRIPTOR = ProviderDescriptor(
    name="gemini",
    display_name="Google Gemini",
    base_url="https://generativelanguage.googleapis.com/v1",
    endpoint="/models/{model}:generateContent",
    models=ModelTiers(
        default="gemini-2.0-flash",
        fast="gemini-2.0-flash",
        accurate="gemini-1.5-pro",
    ),
    cost_per_1k_input=0.000125,
    cost_per_1k_output=0.000375,
    api_key_env="VERIGATE_GEMINI_API_KEY",
    website="https://ai.google.dev",
    known_models=("gemini-2.0-flash", "gemini-1.5-pro", "gemini-1.5-flash"),
)


class GeminiProvider(BaseProvider):
    """
    Verification calls against Gemini ``generateContent``.

    Args:
        api_key: Google AI API key.
        base_url: Unused by the SDK; kept for a uniform constructor.
        client: Pre-built ``genai.Client`` (used by tests).
    """

    descriptor = GEMINI_DESCRIPTOR

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        super().__init__(api_key=api_key, base_url=base_url)
        self._client = client
        self._owns_client = client is None

    def _get_client(self):
        """Lazy-initialize the Gemini client."""
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aio.aclose()
            self._client = None

    async def invoke(self, prompt: str, call: CallSettings) -> RawProviderResponse:
        client = self._get_client()
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=call.model,
                    contents=prompt,
                    config={
                        "temperature": call.temperature,
                        "max_output_tokens": call.max_tokens,
                    },
                ),
                timeout=call.timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise self._error(f"gemini request timed out after {call.timeout_s}s", code="ETIMEDOUT") from e
        except genai_errors.APIError as e:
            status = e.code if isinstance(e.code, int) else None
            raise self._error(f"gemini returned HTTP {e.code}: {e.message}", status=status) from e
        except httpx.TimeoutException as e:
            raise self._error(f"gemini request timed out: {e}", code="ETIMEDOUT") from e
        except httpx.TransportError as e:
            raise self._error(f"gemini transport error: {e}", code="NETWORK_ERROR") from e

        usage = None
        meta = getattr(response, "usage_metadata", None)
        if meta is not None:
            prompt_tokens = meta.prompt_token_count or 0
            completion_tokens = meta.candidates_token_count or 0
            usage = TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=meta.total_token_count or prompt_tokens + completion_tokens,
            )

        return RawProviderResponse(text=response.text or "", usage=usage, model=call.model)
