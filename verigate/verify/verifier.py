"""
LLM Verifier
=============

Drives one verification end to end:

    BUILDING → CALLING → (RETRYING → CALLING)* → PARSING → DONE_OK
                                   └──────────────────→ DONE_ERROR

- BUILDING:   render the prompt (pure, cannot fail)
- CALLING:    one provider call
- RETRYING:   transient failure with attempts left; sleep base·2^attempt
- PARSING:    raw text → VerificationResult (never fails; worst case is
              the free-text fallback)
- DONE_OK:    parsed result plus metrics, provider and model
- DONE_ERROR: terminal provider failure folded into an invalid,
              zero-confidence result

``verify()`` is total: the only exception it lets escape is
``ConfigurationError``. Every call writes exactly one record to the
metrics sink, whichever terminal state it reached.

Usage:
    from verigate.verify import LLMVerifier

    verifier = LLMVerifier(get_config())
    result = await verifier.verify("Some model output", VerificationOptions(context="FAQ answer"))
    if not result.is_valid:
        print(result.issues)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from verigate.config import VerigateConfig, get_config
from verigate.errors import ConfigurationError
from verigate.monitoring.metrics import (
    InMemoryMetricsSink,
    JsonlMetricsSink,
    MetricRecord,
    MetricsSink,
    safe_write,
)
from verigate.monitoring.reporting import (
    ErrorReporter,
    LoggingErrorReporter,
    NullErrorReporter,
    safe_report,
)
from verigate.providers import create_provider
from verigate.providers.base import BaseProvider
from verigate.schemas.provider import CallSettings, ProviderDescriptor, RawProviderResponse
from verigate.schemas.verification import (
    CANONICAL_CATEGORIES,
    BatchVerificationResult,
    CategoryResult,
    VerificationCriteria,
    VerificationMetrics,
    VerificationOptions,
    VerificationResult,
    utc_timestamp,
)
from verigate.utils import estimate_tokens, log_verification, preview
from verigate.verify.parser import parse_free_text, parse_response
from verigate.verify.prompt import build_prompt
from verigate.verify.retry import backoff_delay, is_retryable

logger = logging.getLogger("verigate.verify.verifier")

Sleep = Callable[[float], Awaitable[Any]]

CONNECTION_TEST_PROMPT = 'Hello, please respond with "OK"'


def describe_config(config: VerigateConfig, descriptor: ProviderDescriptor) -> dict[str, Any]:
    """Provider, model, limits, criteria and prices for the given config."""
    return {
        "provider": descriptor.name,
        "provider_name": descriptor.display_name,
        "model": descriptor.resolve_model(config.model),
        "models": descriptor.models.model_dump(exclude_none=True),
        "max_retries": config.max_retries,
        "timeout_ms": config.timeout_ms,
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "batch_size": config.batch_size,
        "criteria": config.criteria.to_criteria().enabled(),
        "cost_per_1k": {
            "input": descriptor.cost_per_1k_input,
            "output": descriptor.cost_per_1k_output,
        },
        "error_reporting_enabled": config.error_reporting_enabled,
        "config_hash": config.config_hash(),
    }


class VerifyState(str, Enum):
    BUILDING = "building"
    CALLING = "calling"
    RETRYING = "retrying"
    PARSING = "parsing"
    DONE_OK = "done_ok"
    DONE_ERROR = "done_error"


@dataclass
class CallOutcome:
    """Result of the bounded retry loop around the provider."""
    response: Optional[RawProviderResponse]
    attempts: int
    error: Optional[BaseException] = None
    retryable: bool = False
    delays: tuple[float, ...] = ()

    @property
    def ok(self) -> bool:
        return self.response is not None


class LLMVerifier:
    """
    Verification orchestrator over one configured provider.

    The config, the provider descriptor and its price table are fixed at
    construction and never mutated; per-call overrides arrive through
    ``VerificationOptions``.

    Args:
        config: Static configuration (loaded from env when omitted).
        provider: Pre-built provider; built from ``config`` when omitted.
        metrics_sink: Outcome sink; JSONL when ``config.metrics_path`` is
            set, in-memory otherwise.
        error_reporter: Error sink; logging-based when error reporting is
            enabled, no-op otherwise.
        sleep: Awaitable used for backoff and batch pacing (tests inject
            a recorder).
        clock: Monotonic clock in seconds, used for latency.

    Raises:
        ConfigurationError: Unsupported provider or missing credential.
    """

    def __init__(
        self,
        config: Optional[VerigateConfig] = None,
        provider: Optional[BaseProvider] = None,
        metrics_sink: Optional[MetricsSink] = None,
        error_reporter: Optional[ErrorReporter] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.config = config or get_config()

        if provider is None:
            problems = self.config.validate_provider_credentials()
            if problems:
                raise ConfigurationError("; ".join(problems))
            provider = create_provider(self.config.provider.value, self.config)
        self.provider = provider
        self.descriptor = provider.descriptor

        if metrics_sink is None:
            if self.config.metrics_path:
                metrics_sink = JsonlMetricsSink(self.config.metrics_path)
            else:
                metrics_sink = InMemoryMetricsSink()
        self.metrics_sink = metrics_sink

        if error_reporter is None:
            error_reporter = (
                LoggingErrorReporter() if self.config.error_reporting_enabled else NullErrorReporter()
            )
        self.error_reporter = error_reporter

        self._sleep = sleep
        self._clock = clock
        self._default_criteria = self.config.criteria.to_criteria()
        self._config_hash = self.config.config_hash()

        logger.info(
            f"LLMVerifier ready: provider={self.descriptor.name} "
            f"model={self.descriptor.resolve_model(self.config.model)} "
            f"max_retries={self.config.max_retries}"
        )

    # ── Option resolution ──────────────────────────────────────────

    def resolve_call(self, options: VerificationOptions) -> CallSettings:
        """Layer per-call options over the static config."""
        timeout_ms = options.timeout_ms if options.timeout_ms is not None else self.config.timeout_ms
        return CallSettings(
            model=self.descriptor.resolve_model(options.model or self.config.model),
            temperature=(
                options.temperature if options.temperature is not None else self.config.temperature
            ),
            max_tokens=options.max_tokens if options.max_tokens is not None else self.config.max_tokens,
            timeout_s=timeout_ms / 1000.0,
        )

    def resolve_criteria(self, options: VerificationOptions) -> VerificationCriteria:
        return self._default_criteria.merged(options.custom_criteria)

    def _max_retries(self, options: VerificationOptions) -> int:
        if options.retry_attempts is not None:
            return options.retry_attempts
        return self.config.max_retries

    # ── Provider call with retries ─────────────────────────────────

    def _enter(self, state: VerifyState, detail: str = "") -> None:
        logger.debug(f"verify → {state.value}{detail}")

    async def call_with_retry(
        self, prompt: str, call: CallSettings, max_retries: int
    ) -> CallOutcome:
        """
        Call the provider at most ``1 + max_retries`` times.

        Only errors the retry classifier accepts are retried; the loop
        sleeps ``retry_base_delay_s · 2^attempt`` between attempts.
        Never raises for provider failures.
        """
        delays: list[float] = []
        attempt = 0
        while True:
            try:
                response = await self.provider.invoke(prompt, call)
                return CallOutcome(response=response, attempts=attempt + 1, delays=tuple(delays))
            except Exception as e:
                retryable = is_retryable(e)
                if not retryable or attempt >= max_retries:
                    if retryable:
                        logger.error(
                            f"{self.descriptor.name} call failed after {attempt + 1} attempts: {e}"
                        )
                    else:
                        logger.error(f"{self.descriptor.name} call failed (not retryable): {e}")
                    return CallOutcome(
                        response=None,
                        attempts=attempt + 1,
                        error=e,
                        retryable=retryable,
                        delays=tuple(delays),
                    )

                delay = backoff_delay(attempt, self.config.retry_base_delay_s)
                logger.warning(
                    f"{self.descriptor.name} call failed (attempt {attempt + 1}/{max_retries + 1}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                self._enter(VerifyState.RETRYING, f" (attempt {attempt + 2} in {delay:.1f}s)")
                delays.append(delay)
                await self._sleep(delay)
                attempt += 1

    # ── Single verification ────────────────────────────────────────

    async def verify(
        self, content: str, options: Optional[VerificationOptions] = None
    ) -> VerificationResult:
        """
        Verify ``content`` against the configured and per-call criteria.

        Returns:
            A fully populated VerificationResult. Provider failures come
            back as ``is_valid=False, confidence=0`` with ``error`` set.

        Raises:
            ConfigurationError: Only for invalid configuration.
        """
        options = options or VerificationOptions()
        started = self._clock()

        try:
            result = await self._run(content, options, started)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected failure during verification: {e}")
            result = self._error_result(
                e,
                options=options,
                criteria=self.resolve_criteria(options),
                model=self.descriptor.resolve_model(options.model or self.config.model),
                attempts=0,
                retryable=False,
                started=started,
            )

        await self._record(result, options)
        log_verification(result, logger)
        return result

    async def _run(
        self, content: str, options: VerificationOptions, started: float
    ) -> VerificationResult:
        self._enter(VerifyState.BUILDING)
        criteria = self.resolve_criteria(options)
        call = self.resolve_call(options)
        prompt = build_prompt(content, criteria, options.context)

        self._enter(VerifyState.CALLING)
        outcome = await self.call_with_retry(prompt, call, self._max_retries(options))

        if not outcome.ok:
            self._enter(VerifyState.DONE_ERROR, f" after {outcome.attempts} attempt(s)")
            result = self._error_result(
                outcome.error,
                options=options,
                criteria=criteria,
                model=call.model,
                attempts=outcome.attempts,
                retryable=outcome.retryable,
                started=started,
            )
            safe_report(
                self.error_reporter,
                outcome.error,
                tags={
                    "provider": self.descriptor.name,
                    "model": call.model,
                    "verification_type": options.type_tag,
                },
                extra={
                    "attempts": outcome.attempts,
                    "retryable": outcome.retryable,
                    "content_length": len(content),
                    "content_preview": preview(content, 100),
                },
            )
            return result

        self._enter(VerifyState.PARSING)
        raw = outcome.response
        try:
            parsed = parse_response(raw.text, content, criteria)
        except Exception as e:
            logger.warning(f"Structured parse raised {type(e).__name__}: {e}; using free-text fallback")
            parsed = parse_free_text(raw.text)

        model = raw.model or call.model
        metrics = self._metrics(prompt, raw, model, started)

        self._enter(VerifyState.DONE_OK, f" after {outcome.attempts} attempt(s)")
        return parsed.model_copy(update={
            "metrics": metrics,
            "provider": self.descriptor.name,
            "model": model,
            "metadata": {
                **options.metadata,
                **parsed.metadata,
                "attempts": outcome.attempts,
                "verification_type": options.type_tag,
                "usage_estimated": raw.usage is None or raw.usage.total_tokens == 0,
                "config_hash": self._config_hash,
                **self._batch_metadata(options),
            },
        })

    def _metrics(
        self, prompt: str, raw: RawProviderResponse, model: str, started: float
    ) -> VerificationMetrics:
        """Token counts from reported usage, or a length estimate when absent."""
        if raw.usage is not None and raw.usage.total_tokens > 0:
            input_tokens = raw.usage.prompt_tokens
            output_tokens = raw.usage.completion_tokens
            total_tokens = raw.usage.total_tokens
        else:
            input_tokens = estimate_tokens(prompt)
            output_tokens = estimate_tokens(raw.text)
            total_tokens = input_tokens + output_tokens

        return VerificationMetrics(
            latency_ms=max(0.0, (self._clock() - started) * 1000.0),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            cost=self.descriptor.cost(input_tokens, output_tokens),
            model=model,
            provider=self.descriptor.name,
        )

    @staticmethod
    def _batch_metadata(options: VerificationOptions) -> dict[str, Any]:
        meta = {}
        if options.batch_index is not None:
            meta["batch_index"] = options.batch_index
        if options.batch_total is not None:
            meta["batch_total"] = options.batch_total
        return meta

    def _error_result(
        self,
        error: Optional[BaseException],
        options: VerificationOptions,
        criteria: VerificationCriteria,
        model: str,
        attempts: int,
        retryable: bool,
        started: float,
    ) -> VerificationResult:
        """DONE_ERROR result: invalid, zero confidence, zero usage, every category not checked."""
        message = str(getattr(error, "message", None) or error or "unknown error")
        names = list(CANONICAL_CATEGORIES) + [
            n for n in criteria.enabled() if n not in CANONICAL_CATEGORIES
        ]
        metrics = VerificationMetrics.zeroed(model=model, provider=self.descriptor.name)
        metrics = metrics.model_copy(
            update={"latency_ms": max(0.0, (self._clock() - started) * 1000.0)}
        )

        return VerificationResult(
            is_valid=False,
            confidence=0.0,
            reason=f"Verification failed: {message}",
            issues=[f"Verification error: {message}"],
            suggestions=["Please try again or contact support"],
            categories={name: CategoryResult.not_checked() for name in names},
            metrics=metrics,
            provider=self.descriptor.name,
            model=model,
            error=message,
            metadata={
                **options.metadata,
                "error_type": type(error).__name__ if error is not None else "UnknownError",
                "error_code": getattr(error, "code", None),
                "error_status": getattr(error, "status", None),
                "retryable": retryable,
                "attempts": attempts,
                "verification_type": options.type_tag,
                "timestamp": utc_timestamp(),
                "config_hash": self._config_hash,
                **self._batch_metadata(options),
            },
        )

    async def _record(self, result: VerificationResult, options: VerificationOptions) -> None:
        record = MetricRecord(
            operation="verify",
            execution_time_ms=result.metrics.latency_ms,
            tokens_used=result.metrics.total_tokens,
            cost=result.metrics.cost,
            success=result.error is None,
            error_message=result.error,
            metadata={
                "provider": result.provider,
                "model": result.model,
                "verification_type": options.type_tag,
                "is_valid": result.is_valid,
                "confidence": result.confidence,
                "attempts": result.metadata.get("attempts"),
                "parse_path": result.metadata.get("parse_path"),
                "config_hash": self._config_hash,
            },
        )
        await safe_write(self.metrics_sink, record)

    # ── Batch ──────────────────────────────────────────────────────

    async def verify_batch(
        self,
        contents: list[str],
        options: Optional[VerificationOptions] = None,
        batch_size: Optional[int] = None,
    ) -> list[VerificationResult]:
        """Verify many inputs; results come back in input order."""
        from verigate.verify.batch import BatchCoordinator

        coordinator = BatchCoordinator(
            self, pacing_delay=self.config.batch_delay_s, sleep=self._sleep
        )
        return await coordinator.run(contents, options, batch_size)

    async def verify_batch_summary(
        self,
        contents: list[str],
        options: Optional[VerificationOptions] = None,
        batch_size: Optional[int] = None,
    ) -> BatchVerificationResult:
        """``verify_batch`` plus the aggregate counts."""
        from verigate.verify.batch import summarize

        return summarize(await self.verify_batch(contents, options, batch_size))

    # ── Introspection ──────────────────────────────────────────────

    def get_stats(self) -> dict[str, Any]:
        """Read-only description of the active configuration."""
        return describe_config(self.config, self.descriptor)

    async def test_connection(self) -> bool:
        """Send a trivial prompt and check the reply contains "OK"."""
        call = self.resolve_call(VerificationOptions(max_tokens=10, temperature=0.0))
        outcome = await self.call_with_retry(CONNECTION_TEST_PROMPT, call, self.config.max_retries)
        if not outcome.ok:
            logger.error(f"Connection test failed for {self.descriptor.name}: {outcome.error}")
            return False

        text = outcome.response.text or ""
        is_ok = "ok" in text.lower()
        logger.info(
            f"Connection test {'passed' if is_ok else 'failed'} for {self.descriptor.name}: "
            f"{preview(text, 50)!r}"
        )
        return is_ok

    async def aclose(self) -> None:
        await self.provider.aclose()

    async def __aenter__(self) -> "LLMVerifier":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
