"""
VeriGate Test Configuration
============================

Shared fixtures, fakes and factories for the entire test suite.

Nothing here touches the network: providers are scripted fakes, HTTP
adapters get an ``httpx.MockTransport``, and sleeps are recorded
instead of awaited.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Callable, Optional, Union

import pytest

from verigate.config import VerigateConfig
from verigate.errors import ProviderError
from verigate.monitoring.metrics import InMemoryMetricsSink
from verigate.monitoring.reporting import RecordingErrorReporter
from verigate.providers.base import BaseProvider
from verigate.providers.openai_provider import OPENAI_DESCRIPTOR
from verigate.schemas.provider import CallSettings, RawProviderResponse, TokenUsage
from verigate.schemas.verification import (
    CANONICAL_CATEGORIES,
    CategoryResult,
    VerificationMetrics,
    VerificationResult,
)
from verigate.verify.verifier import LLMVerifier


# ── Markers ─────────────────────────────────────────────────────

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests")
    config.addinivalue_line("markers", "integration: multi-component tests")


# ── Fakes ───────────────────────────────────────────────────────

_CONTENT_RE = re.compile(r'Content to verify: "(.*?)"\n\n', re.DOTALL)

ScriptItem = Union[RawProviderResponse, BaseException, Callable[[str], Any]]


def content_of(prompt: str) -> str:
    """Recover the quoted content from a rendered verification prompt."""
    match = _CONTENT_RE.search(prompt)
    return match.group(1) if match else prompt


class ScriptedProvider(BaseProvider):
    """
    Provider that replays a script instead of calling a network.

    Each ``invoke`` consumes the next script item: a RawProviderResponse
    is returned, an exception is raised, and a callable is invoked with
    the prompt (it may be async). The last item repeats once the script
    runs out.
    """

    descriptor = OPENAI_DESCRIPTOR

    def __init__(self, script: Optional[list[ScriptItem]] = None, events: Optional[list] = None):
        super().__init__(api_key="sk-test")
        self.script = list(script or [make_response()])
        self.calls: list[tuple[str, CallSettings]] = []
        self.events = events if events is not None else []
        self.closed = False

    async def invoke(self, prompt: str, call: CallSettings) -> RawProviderResponse:
        index = min(len(self.calls), len(self.script) - 1)
        self.calls.append((prompt, call))
        item = self.script[index]
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            result = item(prompt)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        return item

    async def aclose(self) -> None:
        self.closed = True


class RecordingSleep:
    """Drop-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self, events: Optional[list] = None):
        self.delays: list[float] = []
        self.events = events if events is not None else []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.events.append(("sleep", delay))
        await asyncio.sleep(0)


class FailingMetricsSink:
    async def write(self, record) -> None:
        raise OSError("metrics store unavailable")


class FailingErrorReporter:
    def capture_exception(self, error, tags=None, extra=None) -> None:
        raise RuntimeError("reporter down")

    def capture_message(self, message, level="info", tags=None, extra=None) -> None:
        raise RuntimeError("reporter down")


# ── Factories ───────────────────────────────────────────────────

def make_config(**overrides: Any) -> VerigateConfig:
    """Test config isolated from the environment and any .env file."""
    values: dict[str, Any] = {
        "provider": "openai",
        "openai_api_key": "sk-test-key-for-testing",
        "max_retries": 3,
        "retry_base_delay_s": 1.0,
        "batch_delay_s": 1.0,
    }
    values.update(overrides)
    return VerigateConfig(_env_file=None, **values)


def make_verdict(
    is_valid: bool = True,
    confidence: Any = 0.9,
    reason: str = "Content is appropriate",
    issues: Optional[list[str]] = None,
    suggestions: Optional[list[str]] = None,
    categories: Optional[dict[str, dict]] = None,
    **extra: Any,
) -> dict[str, Any]:
    """Model-style JSON verdict; categories default to all seven passing."""
    if categories is None:
        categories = {
            name: {"passed": True, "score": 0.9, "explanation": f"{name} ok"}
            for name in CANONICAL_CATEGORIES
        }
    verdict = {
        "isValid": is_valid,
        "confidence": confidence,
        "reason": reason,
        "issues": issues if issues is not None else [],
        "suggestions": suggestions if suggestions is not None else [],
        "categories": categories,
    }
    verdict.update(extra)
    return verdict


def make_response(
    text: Optional[str] = None,
    prompt_tokens: Optional[int] = 100,
    completion_tokens: int = 50,
    model: Optional[str] = "gpt-4o-mini",
) -> RawProviderResponse:
    """Provider response; ``prompt_tokens=None`` means no usage was reported."""
    if text is None:
        text = json.dumps(make_verdict())
    usage = None
    if prompt_tokens is not None:
        usage = TokenUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )
    return RawProviderResponse(text=text, usage=usage, model=model)


def http_error(status: int, message: str = "provider error") -> ProviderError:
    return ProviderError(f"HTTP {status}: {message}", status=status, provider="openai")


def make_result(
    is_valid: bool = True,
    confidence: float = 0.9,
    error: Optional[str] = None,
    cost: float = 0.001,
    total_tokens: int = 150,
    failed: tuple[str, ...] = (),
    parse_path: str = "json",
) -> VerificationResult:
    """Factory for fully populated verification results."""
    categories = {
        name: CategoryResult(
            passed=name not in failed,
            score=0.2 if name in failed else 0.9,
            explanation="flagged" if name in failed else "ok",
        )
        for name in CANONICAL_CATEGORIES
    }
    return VerificationResult(
        is_valid=is_valid,
        confidence=confidence,
        reason="test",
        categories=categories if parse_path != "free_text" else {},
        metrics=VerificationMetrics(total_tokens=total_tokens, cost=cost),
        error=error,
        metadata={"parse_path": parse_path},
    )


def make_verifier(
    script: Optional[list[ScriptItem]] = None,
    config: Optional[VerigateConfig] = None,
    events: Optional[list] = None,
    **kwargs: Any,
) -> tuple[LLMVerifier, ScriptedProvider, RecordingSleep, InMemoryMetricsSink]:
    """Verifier wired to a scripted provider, a recording sleep and an in-memory sink."""
    events = events if events is not None else []
    provider = ScriptedProvider(script, events=events)
    sleep = RecordingSleep(events=events)
    sink = kwargs.pop("metrics_sink", None) or InMemoryMetricsSink()
    verifier = LLMVerifier(
        config or make_config(),
        provider=provider,
        metrics_sink=sink,
        sleep=sleep,
        **kwargs,
    )
    return verifier, provider, sleep, sink


# ── Fixtures ────────────────────────────────────────────────────

@pytest.fixture
def config() -> VerigateConfig:
    return make_config()


@pytest.fixture
def reporter() -> RecordingErrorReporter:
    return RecordingErrorReporter()


@pytest.fixture
def verdict_json() -> str:
    return json.dumps(make_verdict())
