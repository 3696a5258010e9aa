"""
Batch Dispatcher

Runs segments through the reviewer oracle in fixed-size windows.

Windows run strictly in order; calls inside a window run concurrently.
A pause between windows keeps the oracle under its rate limits.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence

import structlog

from ..errors import OracleCallError
from .models import Finding, ReviewStrategy, Segment
from .parser import FindingParser

logger = structlog.get_logger(__name__)

DEFAULT_CONCURRENCY = 3
DEFAULT_BATCH_DELAY = 1.5

# More segments than this triggers the large-diff strategy prompt
LARGE_DIFF_THRESHOLD = 5
TOP_SEGMENT_LIMIT = 5

Reviewer = Callable[[str], Awaitable[str]]
StrategyChooser = Callable[[int], Awaitable[ReviewStrategy]]
BatchCallback = Callable[[int, int], None]


def needs_strategy_prompt(segments: Sequence[Segment], interactive: bool) -> bool:
    """Check whether the caller should be asked how to handle a large diff."""
    return interactive and len(segments) > LARGE_DIFF_THRESHOLD


def select_segments(
    segments: Sequence[Segment],
    strategy: ReviewStrategy,
    limit: int = TOP_SEGMENT_LIMIT,
) -> list[Segment]:
    """Apply a large-diff strategy to the segment list."""
    if strategy == ReviewStrategy.SKIP:
        return []
    if strategy == ReviewStrategy.TOP:
        return list(segments[:limit])
    return list(segments)


async def resolve_strategy(
    segments: Sequence[Segment],
    interactive: bool,
    chooser: StrategyChooser | None = None,
) -> ReviewStrategy:
    """
    Decide how much of a large diff to review.

    Unattended runs (or runs without a chooser) always review everything.
    """
    if not needs_strategy_prompt(segments, interactive) or chooser is None:
        return ReviewStrategy.ALL

    strategy = await chooser(len(segments))
    logger.info("Large diff strategy chosen", strategy=strategy.value, segments=len(segments))
    return strategy


class BatchDispatcher:
    """Dispatch segments to a reviewer with a concurrency cap."""

    def __init__(
        self,
        concurrency: int = DEFAULT_CONCURRENCY,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        parser: FindingParser | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            concurrency: Segments reviewed at once (window size)
            batch_delay: Seconds to pause between windows
            parser: Parser for oracle replies
            sleep: Sleep coroutine, injectable for tests
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if batch_delay < 0:
            raise ValueError("batch_delay must not be negative")

        self.concurrency = concurrency
        self.batch_delay = batch_delay
        self.parser = parser or FindingParser()
        self._sleep = sleep or asyncio.sleep

    def windows(self, segments: Sequence[Segment]) -> list[list[Segment]]:
        """Group segments into consecutive windows of `concurrency`."""
        return [
            list(segments[i : i + self.concurrency])
            for i in range(0, len(segments), self.concurrency)
        ]

    async def dispatch(
        self,
        segments: Sequence[Segment],
        reviewer: Reviewer,
        on_batch: BatchCallback | None = None,
    ) -> list[Finding]:
        """
        Review all segments and collect their findings.

        A failing window is fatal only when it is the only window; otherwise
        it is logged and skipped so the run keeps the partial results.

        Args:
            segments: Segments to review, in order
            reviewer: Async callable taking segment text and returning reply text
            on_batch: Optional progress callback (batch number, total batches)

        Returns:
            Findings from all successful windows, in window order

        Raises:
            OracleCallError: The single window failed
        """
        windows = self.windows(segments)
        total = len(windows)
        findings: list[Finding] = []

        for number, window in enumerate(windows, start=1):
            if on_batch:
                on_batch(number, total)

            logger.info(
                "Dispatching batch",
                batch=number,
                total=total,
                segments=[s.index for s in window],
            )

            results = await asyncio.gather(
                *(reviewer(s.content) for s in window),
                return_exceptions=True,
            )

            failure = next((r for r in results if isinstance(r, BaseException)), None)
            if failure is not None:
                if isinstance(failure, asyncio.CancelledError):
                    raise failure
                logger.error(
                    "Batch review failed",
                    batch=number,
                    total=total,
                    error=str(failure),
                )
                if total == 1:
                    raise OracleCallError(
                        f"Review failed: {failure}", batch_index=number, cause=failure
                    ) from failure
            else:
                for reply in results:
                    findings.extend(self.parser.parse(reply))

            if number < total and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

        logger.info("Dispatch complete", batches=total, findings=len(findings))
        return findings


async def dispatch(
    segments: Sequence[Segment],
    reviewer: Reviewer,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[Finding]:
    """Convenience wrapper around BatchDispatcher.dispatch()."""
    return await BatchDispatcher(concurrency=concurrency).dispatch(segments, reviewer)
