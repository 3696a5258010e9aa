"""
Review Pipeline

Wires the stages together:
diff -> segments -> batched oracle review -> aggregation -> report.
"""

import time
from collections.abc import Callable
from pathlib import Path

import structlog

from .. import __version__
from ..config import ReviewConfig
from ..oracle import ReviewerOracle, create_oracle
from ..rules import (
    RulesEngine,
    SecurityScanner,
    Violation,
    build_prompt_enhancement,
    load_rules,
)
from .aggregator import aggregate
from .dispatcher import (
    BatchCallback,
    BatchDispatcher,
    StrategyChooser,
    resolve_strategy,
    select_segments,
)
from .git_diff import DiffMode, GitDiffProvider
from .models import Finding, ReportMetadata, ReviewReport, ReviewStrategy
from .segmenter import DiffSegmenter

logger = structlog.get_logger(__name__)


class ReviewPipeline:
    """
    Change-review orchestration.

    Stages:
    1. Segment: split the diff on file boundaries into size-bounded segments
    2. Dispatch: review segments in paced, concurrent windows
    3. Aggregate: append rule and security violations after oracle findings
    4. Report: build the immutable ReviewReport
    """

    def __init__(
        self,
        config: ReviewConfig,
        oracle: ReviewerOracle | None = None,
        diff_provider: GitDiffProvider | None = None,
        rules_engine: RulesEngine | None = None,
        segmenter: DiffSegmenter | None = None,
        dispatcher: BatchDispatcher | None = None,
        oracle_factory: Callable[[], ReviewerOracle] | None = None,
        security_scanner: SecurityScanner | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Review configuration
            oracle: Reviewer oracle for diff segments
            diff_provider: Source of the diff and file contents
            rules_engine: Optional rule validator
            segmenter: Diff segmenter (built from config if omitted)
            dispatcher: Batch dispatcher (built from config if omitted)
            oracle_factory: Builds the oracle on first use when no oracle is given
            security_scanner: Optional CWE-tagged vulnerability scan
        """
        if oracle is None and oracle_factory is None:
            raise ValueError("Either oracle or oracle_factory is required")

        self.config = config
        self._oracle = oracle
        self._oracle_factory = oracle_factory
        self.diff_provider = diff_provider
        self.rules_engine = rules_engine
        self.security_scanner = security_scanner
        self.segmenter = segmenter or DiffSegmenter(max_size=config.max_segment_size)
        self.dispatcher = dispatcher or BatchDispatcher(
            concurrency=config.concurrency,
            batch_delay=config.batch_delay,
        )

    @property
    def oracle(self) -> ReviewerOracle:
        """The reviewer oracle, created on first access."""
        if self._oracle is None:
            self._oracle = self._oracle_factory()
        return self._oracle

    async def run(
        self,
        interactive: bool = False,
        chooser: StrategyChooser | None = None,
        on_batch: BatchCallback | None = None,
    ) -> ReviewReport:
        """Fetch the diff from the provider and review it."""
        if self.diff_provider is None:
            raise ValueError("No diff provider configured")

        diff = await self.diff_provider.get_diff()
        return await self.review_diff(
            diff,
            interactive=interactive,
            chooser=chooser,
            on_batch=on_batch,
        )

    async def review_diff(
        self,
        diff: str,
        interactive: bool = False,
        chooser: StrategyChooser | None = None,
        on_batch: BatchCallback | None = None,
    ) -> ReviewReport:
        """
        Review a diff.

        Args:
            diff: Unified diff text
            interactive: Whether the large-diff strategy prompt may be shown
            chooser: Async callable asking the user for a ReviewStrategy
            on_batch: Progress callback (batch number, total batches)

        Returns:
            ReviewReport for this run

        Raises:
            OracleCallError: The only dispatch window failed
        """
        start_time = time.monotonic()

        if not diff or not diff.strip():
            logger.info("No changes to review")
            return self._build_report([], start_time)

        segments = self.segmenter.segment(diff)
        strategy = await resolve_strategy(segments, interactive, chooser)
        selected = select_segments(segments, strategy)

        if strategy == ReviewStrategy.SKIP:
            logger.info("Review skipped by strategy", segments=len(segments))
            return self._build_report([], start_time, len(segments), 0, strategy)

        logger.info(
            "Reviewing diff",
            diff_size=len(diff),
            segments=len(segments),
            selected=len(selected),
            provider=self.oracle.provider,
            model=self.oracle.model,
        )

        oracle_findings = await self.dispatcher.dispatch(selected, self.oracle.review, on_batch)
        violations = await self._validate_rules(diff)
        findings = aggregate(oracle_findings, violations)

        return self._build_report(findings, start_time, len(segments), len(selected), strategy)

    async def close(self) -> None:
        """Release oracle resources."""
        if self._oracle is None:
            return
        close = getattr(self._oracle, "close", None)
        if close is not None:
            await close()

    async def _validate_rules(self, diff: str) -> list[Violation]:
        """Run the rule validators over the files touched by the diff."""
        validators = [v for v in (self.rules_engine, self.security_scanner) if v is not None]
        if not validators or self.diff_provider is None:
            return []

        paths = self.diff_provider.changed_files(diff)
        contents = await self.diff_provider.read_files(paths)
        violations: list[Violation] = []
        for validator in validators:
            violations.extend(validator.validate_files(contents))
        logger.info("Rule validation complete", files=len(contents), violations=len(violations))
        return violations

    def _build_report(
        self,
        findings: list[Finding],
        start_time: float,
        segments_total: int = 0,
        segments_reviewed: int = 0,
        strategy: ReviewStrategy = ReviewStrategy.ALL,
    ) -> ReviewReport:
        # An empty or skipped run never builds the oracle
        if self._oracle is None:
            provider, model = self.config.provider, self.config.model
        else:
            provider, model = self._oracle.provider, self._oracle.model

        metadata = ReportMetadata(
            duration_seconds=time.monotonic() - start_time,
            provider_name=provider,
            model_name=model,
            version=__version__,
        )
        return ReviewReport.build(
            findings,
            metadata,
            segments_total=segments_total,
            segments_reviewed=segments_reviewed,
            strategy=strategy,
        )


def create_review_pipeline(
    config: ReviewConfig,
    mode: DiffMode = DiffMode.STAGED,
    base_branch: str = "main",
    use_rules: bool = True,
    oracle: ReviewerOracle | None = None,
    security_scan: bool | None = None,
) -> ReviewPipeline:
    """
    Create a fully-wired pipeline from configuration.

    Team rules (when present) both feed the rule validator and extend the
    oracle's prompt. Unless one is passed in, the oracle is only built once
    there is a non-empty diff to review, so a run with no changes never needs
    provider credentials.
    """
    repo_path = config.repo_path or Path.cwd()
    rules_path = config.rules_path if config.rules_path.is_absolute() else repo_path / config.rules_path
    rules = load_rules(rules_path) if use_rules else None
    scan = config.security_scan if security_scan is None else security_scan

    def build_oracle() -> ReviewerOracle:
        return create_oracle(config, prompt_enhancement=build_prompt_enhancement(rules))

    return ReviewPipeline(
        config=config,
        oracle=oracle,
        oracle_factory=build_oracle,
        diff_provider=GitDiffProvider(repo_path, mode=mode, base_branch=base_branch),
        rules_engine=RulesEngine(rules) if rules else None,
        security_scanner=SecurityScanner() if scan else None,
    )
