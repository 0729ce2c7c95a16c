"""Analysis fan-out — run independent passes in parallel with fault tolerance."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping, Sequence

from pinpoint.core.exceptions import PinpointError
from pinpoint.core.logging import get_logger
from pinpoint.core.models import AnalysisOutcome, ConsolidatedReview, FileDiff
from pinpoint.orchestrator.analysis import AnalysisPass
from pinpoint.review.consolidator import consolidate

logger = get_logger(__name__)


def _elapsed_ms(start_ns: int) -> int:
    return (time.perf_counter_ns() - start_ns) // 1_000_000


async def _run_pass(
    analysis: AnalysisPass,
    files: Mapping[str, FileDiff],
    timeout: float,
) -> AnalysisOutcome:
    """Run a single pass with a timeout; failures become an outcome with an error."""
    start = time.perf_counter_ns()
    try:
        findings = await asyncio.wait_for(analysis.analyze(files), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("analysis_timeout", source=analysis.source_tag, timeout=timeout)
        return AnalysisOutcome(
            source_tag=analysis.source_tag,
            duration_ms=_elapsed_ms(start),
            error=f"Timeout after {timeout}s",
        )
    except PinpointError as e:
        logger.error("analysis_failed", source=analysis.source_tag, error=str(e), detail=e.detail)
        return AnalysisOutcome(
            source_tag=analysis.source_tag,
            duration_ms=_elapsed_ms(start),
            error=str(e),
        )

    return AnalysisOutcome(
        source_tag=analysis.source_tag,
        findings=findings,
        duration_ms=_elapsed_ms(start),
    )


async def run_analyses(
    passes: Sequence[AnalysisPass],
    files: Mapping[str, FileDiff],
    max_concurrent: int = 5,
    timeout_per_pass: float = 120.0,
) -> list[AnalysisOutcome]:
    """Fan out every pass over the same immutable diff and wait for all of them.

    A pass that hangs or fails yields an outcome with ``error`` set; the
    others' results are still returned.

    Args:
        passes: Independent analysis passes.
        files: Indexed diff of the pull request.
        max_concurrent: Maximum passes running at once.
        timeout_per_pass: Per-pass timeout in seconds.

    Returns:
        One outcome per pass, in the order the passes were given.
    """
    semaphore = asyncio.Semaphore(max_concurrent)

    async def _bounded(analysis: AnalysisPass) -> AnalysisOutcome:
        async with semaphore:
            return await _run_pass(analysis, files, timeout_per_pass)

    logger.info("analyses_started", passes=len(passes), files=len(files))

    results = await asyncio.gather(*(_bounded(p) for p in passes), return_exceptions=True)

    outcomes: list[AnalysisOutcome] = []
    for analysis, result in zip(passes, results):
        if isinstance(result, Exception):
            logger.error("analysis_exception", source=analysis.source_tag, error=str(result))
            outcomes.append(AnalysisOutcome(source_tag=analysis.source_tag, error=str(result)))
            continue
        outcomes.append(result)

    failed = sum(1 for o in outcomes if not o.succeeded)
    logger.info("analyses_complete", passes=len(outcomes), failed=failed)
    return outcomes


async def run_review(
    passes: Sequence[AnalysisPass],
    files: Mapping[str, FileDiff],
    max_concurrent: int = 5,
    timeout_per_pass: float = 120.0,
) -> ConsolidatedReview:
    """Fan out all passes, then consolidate whatever came back."""
    start = time.perf_counter_ns()
    outcomes = await run_analyses(passes, files, max_concurrent, timeout_per_pass)
    review = consolidate(outcomes)
    logger.info("review_consolidated", duration_ms=_elapsed_ms(start), review_event=review.event.value)
    return review
