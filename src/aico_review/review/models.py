"""
Data models for the review pipeline.

Defines all types that flow from the segmenter through to the report.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """How severe is a finding."""

    ERROR = "error"  # Blocks CI when fail-on-error is set
    WARN = "warn"  # Should fix, blocks only with fail-on-warn
    INFO = "info"  # Informational

    @classmethod
    def parse(cls, value: str | None) -> "Severity | None":
        """Normalise free-form severity text, None when unrecognised."""
        if not value:
            return None
        return _SEVERITY_ALIASES.get(value.strip().lower())


_SEVERITY_ALIASES: dict[str, Severity] = {
    "error": Severity.ERROR,
    "blocking": Severity.ERROR,
    "critical": Severity.ERROR,
    "high": Severity.ERROR,
    "warn": Severity.WARN,
    "warning": Severity.WARN,
    "medium": Severity.WARN,
    "moderate": Severity.WARN,
    "info": Severity.INFO,
    "suggestion": Severity.INFO,
    "low": Severity.INFO,
}


class ReviewStrategy(str, Enum):
    """What to do when a diff produces many segments."""

    ALL = "all"  # Review every segment
    TOP = "top"  # Review only the first few segments
    SKIP = "skip"  # Skip the review entirely


class OutputFormat(str, Enum):
    """Report encodings."""

    JSON = "json"
    XML = "xml"  # JUnit compatible
    GITHUB = "github"  # GitHub Actions annotations
    TEXT = "text"


@dataclass(frozen=True)
class Segment:
    """A size-bounded run of whole file patches."""

    index: int
    content: str
    files: tuple[str, ...] = ()
    oversized: bool = False

    @property
    def size(self) -> int:
        """Length of the segment in characters."""
        return len(self.content)


@dataclass(frozen=True)
class Finding:
    """A single issue reported by the oracle or a rule validator."""

    file: str
    message: str
    suggestion: str = ""
    severity: Severity = Severity.WARN
    corrected_content: str | None = None
    rule: str | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "file": self.file,
            "line": self.line,
            "severity": self.severity.value,
            "message": self.message,
            "suggestion": self.suggestion or None,
            "rule": self.rule or "ai-review",
        }


@dataclass(frozen=True)
class ReportSummary:
    """Severity tally over a set of findings."""

    total: int = 0
    errors: int = 0
    warnings: int = 0
    info: int = 0

    @classmethod
    def from_findings(cls, findings: list[Finding]) -> "ReportSummary":
        errors = sum(1 for f in findings if f.severity == Severity.ERROR)
        warnings = sum(1 for f in findings if f.severity == Severity.WARN)
        info = sum(1 for f in findings if f.severity == Severity.INFO)
        return cls(total=len(findings), errors=errors, warnings=warnings, info=info)

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "errors": self.errors,
            "warnings": self.warnings,
            "info": self.info,
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ReportMetadata:
    """Run-specific metadata. The only place a timestamp appears."""

    timestamp: str = field(default_factory=_utc_now)
    duration_seconds: float | None = None
    provider_name: str | None = None
    model_name: str | None = None
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "durationSeconds": (
                round(self.duration_seconds, 3) if self.duration_seconds is not None else None
            ),
            "providerName": self.provider_name,
            "modelName": self.model_name,
            "version": self.version,
        }


@dataclass(frozen=True)
class ReviewReport:
    """Complete review output for one pipeline run."""

    summary: ReportSummary
    findings: tuple[Finding, ...]
    metadata: ReportMetadata

    # Pipeline bookkeeping
    segments_total: int = 0
    segments_reviewed: int = 0
    strategy: ReviewStrategy = ReviewStrategy.ALL

    @classmethod
    def build(
        cls,
        findings: list[Finding],
        metadata: ReportMetadata,
        segments_total: int = 0,
        segments_reviewed: int = 0,
        strategy: ReviewStrategy = ReviewStrategy.ALL,
    ) -> "ReviewReport":
        """Construct the report, deriving the summary from the findings."""
        return cls(
            summary=ReportSummary.from_findings(findings),
            findings=tuple(findings),
            metadata=metadata,
            segments_total=segments_total,
            segments_reviewed=segments_reviewed,
            strategy=strategy,
        )

    @property
    def skipped(self) -> bool:
        """True when the review was skipped by policy."""
        return self.strategy == ReviewStrategy.SKIP

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "summary": self.summary.to_dict(),
            "findings": [f.to_dict() for f in self.findings],
            "metadata": self.metadata.to_dict(),
        }
