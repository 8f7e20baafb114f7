"""
OpenAI Provider
================

Chat-completions calls through the official ``openai`` SDK
(``AsyncOpenAI``). Works with any OpenAI-compatible endpoint when
``base_url`` is overridden.

The SDK's own retry loop is disabled (``max_retries=0``): one
``invoke`` is one HTTP request, and retrying belongs to the verifier.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import openai

from verigate.providers.base import BaseProvider
from verigate.schemas.provider import (
    CallSettings,
    ModelTiers,
    ProviderDescriptor,
    RawProviderResponse,
    TokenUsage,
)

logger = logging.getLogger("verigate.providers.openai")

SYSTEM_PROMPT = "You are a precise content verification judge. Respond only with JSON."

OPENAI_DESCRIPTOR = ProviderDescriptor(
    name="openai",
    display_name="OpenAI",
    base_url="https://api.openai.com/v1",
    endpoint="/chat/completions",
    models=ModelTiers(
        default="gpt-4o-mini",
        fast="gpt-4o-mini",
        accurate="gpt-4o",
        cheap="gpt-3.5-turbo",
    ),
    cost_per_1k_input=0.0005,
    cost_per_1k_output=0.0015,
    api_key_env="VERIGATE_OPENAI_API_KEY",
    website="https://openai.com",
    known_models=("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"),
)


class OpenAIProvider(BaseProvider):
    """
    Verification calls against OpenAI chat completions.

    Usage:
        provider = OpenAIProvider(api_key="sk-...")
        raw = await provider.invoke(prompt, CallSettings(model="gpt-4o-mini", ...))

    Args:
        api_key: OpenAI API key.
        base_url: OpenAI-compatible base URL override.
        client: Pre-built ``AsyncOpenAI`` client (used by tests).
    """

    descriptor = OPENAI_DESCRIPTOR

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
        """Lazy-initialize the async OpenAI client."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                max_retries=0,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.close()
            self._client = None

    async def invoke(self, prompt: str, call: CallSettings) -> RawProviderResponse:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=call.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=call.temperature,
                max_tokens=call.max_tokens,
                timeout=call.timeout_s,
            )
        except openai.APITimeoutError as e:
            raise self._error(f"openai request timed out after {call.timeout_s}s", code="ETIMEDOUT") from e
        except openai.APIConnectionError as e:
            raise self._error(f"openai connection failed: {e}", code="NETWORK_ERROR") from e
        except openai.APIStatusError as e:
            raise self._error(f"openai returned HTTP {e.status_code}: {e.message}", status=e.status_code) from e
        except openai.OpenAIError as e:
            raise self._error(f"openai error: {e}") from e

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""

        usage = None
        if response.usage is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        return RawProviderResponse(text=text, usage=usage, model=response.model or call.model)
