"""
Provider Interface
===================

Abstract base class for every completion provider. Each provider
implements one capability:

    invoke(prompt, call) → RawProviderResponse

Contract:
    - exactly one network call per ``invoke``; no retries here
      (retrying is the verifier's job)
    - any transport or HTTP failure raises ``ProviderError`` carrying
      the HTTP status and/or a transport error code
    - a timeout raises ``ProviderError(code="ETIMEDOUT")`` so the retry
      classifier treats it as transient

``HTTPProvider`` is the shared implementation for providers reached
with plain JSON-over-HTTP through ``httpx``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

import httpx

from verigate.errors import ProviderError
from verigate.schemas.provider import CallSettings, ProviderDescriptor, RawProviderResponse
from verigate.utils import preview

logger = logging.getLogger("verigate.providers.base")


class BaseProvider(ABC):
    """
    Uniform call contract over one LLM provider.

    Args:
        api_key: Credential for the provider (None for keyless providers).
        base_url: Override for the descriptor's base URL.
    """

    descriptor: ClassVar[ProviderDescriptor]

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key
        self.base_url = (base_url or self.descriptor.base_url).rstrip("/")

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    async def invoke(self, prompt: str, call: CallSettings) -> RawProviderResponse:
        """
        Send ``prompt`` to the provider once.

        Raises:
            ProviderError: On any transport or HTTP failure.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources held by the provider."""

    def _error(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ) -> ProviderError:
        return ProviderError(message, status=status, code=code, provider=self.name)


class HTTPProvider(BaseProvider):
    """
    Provider reached by a single JSON POST through ``httpx.AsyncClient``.

    Subclasses describe the request and response shapes; this class owns
    the client, the timeout and the mapping of httpx failures onto
    ``ProviderError``.

    Args:
        client: Pre-built client (tests pass one with ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key=api_key, base_url=base_url)
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy-initialize the shared connection pool."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ── Provider-specific shape ────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        return {}

    def _url(self, call: CallSettings) -> str:
        return self.base_url + self.descriptor.endpoint.format(model=call.model)

    @abstractmethod
    def _payload(self, prompt: str, call: CallSettings) -> dict[str, Any]:
        ...

    @abstractmethod
    def _parse(self, body: Any, call: CallSettings) -> RawProviderResponse:
        ...

    # ── Call ───────────────────────────────────────────────────────

    async def invoke(self, prompt: str, call: CallSettings) -> RawProviderResponse:
        client = self._get_client()
        url = self._url(call)
        try:
            response = await client.post(
                url,
                json=self._payload(prompt, call),
                headers=self._headers(),
                timeout=call.timeout_s,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise self._error(f"{self.name} request timed out after {call.timeout_s}s", code="ETIMEDOUT") from e
        except httpx.ConnectError as e:
            raise self._error(f"{self.name} connection failed: {e}", code="ECONNREFUSED") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise self._error(
                f"{self.name} returned HTTP {status}: {preview(e.response.text, 300)}",
                status=status,
            ) from e
        except httpx.TransportError as e:
            raise self._error(f"{self.name} transport error: {e}", code="NETWORK_ERROR") from e

        try:
            body = response.json()
        except ValueError as e:
            raise self._error(
                f"{self.name} returned a non-JSON body: {preview(response.text, 200)}",
                status=response.status_code,
            ) from e

        logger.debug(f"{self.name} call to {url} succeeded (HTTP {response.status_code})")
        return self._parse(body, call)
