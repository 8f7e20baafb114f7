"""
VeriGate Error Taxonomy
========================

Only ``ConfigurationError`` is allowed to escape ``verify()`` and
``verify_batch()``. Provider failures are retried and then folded into
the returned ``VerificationResult``; parse failures are resolved by the
free-text fallback and never leave the parser.
"""

from __future__ import annotations

from typing import Optional


class VerigateError(Exception):
    """Base class for all VeriGate errors."""


class ConfigurationError(VerigateError):
    """Unsupported provider, missing credential or out-of-range setting. Never retried."""


class ProviderError(VerigateError):
    """
    Transport or HTTP failure from a provider's completion endpoint.

    Args:
        message: Human-readable description.
        status: HTTP status code, when the endpoint answered.
        code: Transport error code (``ETIMEDOUT``, ``ECONNRESET``, ...).
        provider: Name of the provider that failed.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.provider = provider

    def __repr__(self) -> str:
        return (
            f"ProviderError(message={self.message!r}, status={self.status!r}, "
            f"code={self.code!r}, provider={self.provider!r})"
        )


class ParseError(VerigateError):
    """Model output could not be turned into a JSON object."""
