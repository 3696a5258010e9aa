"""
Review Pipeline Module

Segment, dispatch, aggregate and report on pending code changes.
"""

from .aggregator import FindingAggregator, aggregate, finding_from_violation
from .dispatcher import BatchDispatcher, resolve_strategy, select_segments
from .formatter import ReportFormatter, exit_code, filter_by_severity, save_report
from .git_diff import DiffMode, GitDiffProvider
from .models import (
    Finding,
    OutputFormat,
    ReportMetadata,
    ReportSummary,
    ReviewReport,
    ReviewStrategy,
    Segment,
    Severity,
)
from .parser import FindingParser
from .pipeline import ReviewPipeline, create_review_pipeline
from .segmenter import DiffSegmenter

__all__ = [
    "BatchDispatcher",
    "DiffMode",
    "DiffSegmenter",
    "Finding",
    "FindingAggregator",
    "FindingParser",
    "GitDiffProvider",
    "OutputFormat",
    "ReportFormatter",
    "ReportMetadata",
    "ReportSummary",
    "ReviewPipeline",
    "ReviewReport",
    "ReviewStrategy",
    "Segment",
    "Severity",
    "aggregate",
    "create_review_pipeline",
    "exit_code",
    "filter_by_severity",
    "finding_from_violation",
    "resolve_strategy",
    "save_report",
    "select_segments",
]
