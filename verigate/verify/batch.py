"""
Batch Coordinator
==================

Runs many verifications in consecutive chunks:

    [a, b, c, d, e], batch_size=2
        chunk 1: a, b   (concurrent)   → pause
        chunk 2: c, d   (concurrent)   → pause
        chunk 3: e                      (no pause after the last chunk)

Each result is written into its own pre-allocated slot, so output order
always matches input order regardless of completion order. An item
that fails for any reason other than bad configuration becomes an
error-shaped result in its slot; it never aborts the batch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from verigate.errors import ConfigurationError
from verigate.schemas.verification import (
    BatchVerificationResult,
    CategoryResult,
    CANONICAL_CATEGORIES,
    VerificationMetrics,
    VerificationOptions,
    VerificationResult,
    utc_timestamp,
)

if TYPE_CHECKING:
    from verigate.verify.verifier import LLMVerifier

logger = logging.getLogger("verigate.verify.batch")

DEFAULT_BATCH_SIZE = 3
DEFAULT_PACING_DELAY_S = 1.0
HIGH_CONFIDENCE = 0.8
LOW_CONFIDENCE = 0.5


class BatchCoordinator:
    """
    Bounded-concurrency driver over ``LLMVerifier.verify``.

    Args:
        verifier: The verifier every item goes through.
        pacing_delay: Seconds to wait between chunks.
        sleep: Awaitable used for pacing (tests inject a recorder).
    """

    def __init__(
        self,
        verifier: "LLMVerifier",
        pacing_delay: float = DEFAULT_PACING_DELAY_S,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.verifier = verifier
        self.pacing_delay = pacing_delay
        self._sleep = sleep

    async def run(
        self,
        contents: list[str],
        options: Optional[VerificationOptions] = None,
        batch_size: Optional[int] = None,
    ) -> list[VerificationResult]:
        """
        Verify ``contents`` chunk by chunk.

        Args:
            contents: Inputs, in order.
            options: Shared options; batch position is stamped per item.
            batch_size: Chunk size; falls back to ``options.batch_size``,
                then the verifier config.

        Returns:
            One result per input, in input order.

        Raises:
            ConfigurationError: Propagated from any item.
        """
        options = options or VerificationOptions()
        size = batch_size or options.batch_size or self.verifier.config.batch_size or DEFAULT_BATCH_SIZE
        if size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {size}")

        total = len(contents)
        results: list[Optional[VerificationResult]] = [None] * total
        n_chunks = (total + size - 1) // size
        logger.info(f"Batch verification: {total} items in {n_chunks} chunk(s) of {size}")

        for chunk_no, start in enumerate(range(0, total, size)):
            indices = range(start, min(start + size, total))
            tasks = [
                asyncio.create_task(self._run_item(results, i, contents[i], options, size, total))
                for i in indices
            ]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                # Siblings still running must not outlive the failed batch.
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
            if chunk_no < n_chunks - 1 and self.pacing_delay > 0:
                await self._sleep(self.pacing_delay)

        return results  # type: ignore[return-value]

    async def _run_item(
        self,
        slots: list[Optional[VerificationResult]],
        index: int,
        content: str,
        options: VerificationOptions,
        size: int,
        total: int,
    ) -> None:
        item_options = options.model_copy(update={
            "batch_size": size,
            "batch_index": index,
            "batch_total": total,
        })
        try:
            slots[index] = await self.verifier.verify(content, item_options)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Batch item {index} failed: {type(e).__name__}: {e}")
            slots[index] = item_error_result(e, index, total, self.verifier.descriptor.name)


def item_error_result(
    error: BaseException, index: int, total: int, provider: str = "unknown"
) -> VerificationResult:
    """Error-shaped result for a batch slot whose verification raised."""
    message = str(error) or type(error).__name__
    return VerificationResult(
        is_valid=False,
        confidence=0.0,
        reason=f"Verification failed: {message}",
        issues=[f"Verification error: {message}"],
        suggestions=["Please try again or contact support"],
        categories={name: CategoryResult.not_checked() for name in CANONICAL_CATEGORIES},
        metrics=VerificationMetrics.zeroed(provider=provider),
        provider=provider,
        error=message,
        metadata={
            "error_type": type(error).__name__,
            "retryable": False,
            "attempts": 0,
            "batch_index": index,
            "batch_total": total,
            "timestamp": utc_timestamp(),
        },
    )


def summarize(results: list[VerificationResult]) -> BatchVerificationResult:
    """
    Aggregate a completed list of results.

    Summary labels:
        valid / invalid / errors      — outcome counts
        fallback_parses               — results from the free-text path
        high_confidence               — confidence >= 0.8
        low_confidence                — confidence < 0.5
        failed:<category>             — per checked category that did not pass
    """
    total = len(results)
    valid = sum(1 for r in results if r.is_valid)

    summary: dict[str, int] = {
        "valid": valid,
        "invalid": total - valid,
        "errors": sum(1 for r in results if r.error is not None),
        "fallback_parses": sum(1 for r in results if r.used_fallback),
        "high_confidence": sum(1 for r in results if r.confidence >= HIGH_CONFIDENCE),
        "low_confidence": sum(1 for r in results if r.confidence < LOW_CONFIDENCE),
    }
    for result in results:
        for name in result.failed_categories:
            key = f"failed:{name}"
            summary[key] = summary.get(key, 0) + 1

    return BatchVerificationResult(
        total=total,
        valid=valid,
        invalid=total - valid,
        average_confidence=min(1.0, sum(r.confidence for r in results) / total) if total else 0.0,
        total_cost=sum(r.metrics.cost for r in results),
        total_tokens=sum(r.metrics.total_tokens for r in results),
        results=list(results),
        summary=summary,
    )
