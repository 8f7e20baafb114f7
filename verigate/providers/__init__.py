"""
VeriGate Providers
===================

Registry of completion providers. Each entry pairs a static
``ProviderDescriptor`` (models, endpoint, prices) with the adapter
class that speaks the provider's wire format.

Usage:
    from verigate.providers import create_provider
    provider = create_provider("anthropic", config)
    raw = await provider.invoke(prompt, call_settings)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from verigate.errors import ConfigurationError
from verigate.providers.anthropic_provider import ANTHROPIC_DESCRIPTOR, AnthropicProvider
from verigate.providers.base import BaseProvider, HTTPProvider
from verigate.providers.gemini_provider import GEMINI_DESCRIPTOR, GeminiProvider
from verigate.providers.huggingface_provider import HUGGINGFACE_DESCRIPTOR, HuggingFaceProvider
from verigate.providers.ollama_provider import OLLAMA_DESCRIPTOR, OllamaProvider
from verigate.providers.openai_provider import OPENAI_DESCRIPTOR, OpenAIProvider
from verigate.schemas.provider import ProviderDescriptor

logger = logging.getLogger("verigate.providers")

PROVIDER_CLASSES: dict[str, type[BaseProvider]] = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "anthropic": AnthropicProvider,
    "huggingface": HuggingFaceProvider,
    "ollama": OllamaProvider,
}

PROVIDER_DESCRIPTORS: dict[str, ProviderDescriptor] = {
    d.name: d
    for d in (
        OPENAI_DESCRIPTOR,
        GEMINI_DESCRIPTOR,
        ANTHROPIC_DESCRIPTOR,
        HUGGINGFACE_DESCRIPTOR,
        OLLAMA_DESCRIPTOR,
    )
}


def get_descriptor(name: str) -> ProviderDescriptor:
    """Descriptor for ``name``; raises ConfigurationError if unknown."""
    descriptor = PROVIDER_DESCRIPTORS.get(str(name).lower())
    if descriptor is None:
        raise ConfigurationError(
            f"Unsupported provider '{name}'. "
            f"Available: {', '.join(sorted(PROVIDER_DESCRIPTORS))}"
        )
    return descriptor


def get_provider_info(name: Optional[str] = None) -> dict:
    """
    Human-facing provider summary.

    Args:
        name: A single provider, or None for all of them.
    """
    if name is not None:
        return get_descriptor(name).info()
    return {key: d.info() for key, d in PROVIDER_DESCRIPTORS.items()}


def create_provider(name: str, config: Any, client: Optional[Any] = None) -> BaseProvider:
    """
    Build the adapter for ``name`` using credentials from ``config``.

    Args:
        name: Provider name (see ``PROVIDER_CLASSES``).
        config: A ``VerigateConfig`` (anything with ``api_key_for`` / ``base_url_for``).
        client: Optional pre-built transport client, forwarded to the adapter.

    Raises:
        ConfigurationError: Unknown provider or missing API key.
    """
    key = str(getattr(name, "value", name)).lower()
    descriptor = get_descriptor(key)
    api_key = config.api_key_for(key)
    if descriptor.requires_api_key and not api_key:
        raise ConfigurationError(
            f"{descriptor.api_key_env} is required for the {descriptor.display_name} provider"
        )

    provider_cls = PROVIDER_CLASSES[key]
    logger.debug(f"Creating {key} provider")
    return provider_cls(api_key=api_key, base_url=config.base_url_for(key), client=client)


__all__ = [
    "PROVIDER_CLASSES",
    "PROVIDER_DESCRIPTORS",
    "AnthropicProvider",
    "BaseProvider",
    "GeminiProvider",
    "HTTPProvider",
    "HuggingFaceProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "create_provider",
    "get_descriptor",
    "get_provider_info",
]
