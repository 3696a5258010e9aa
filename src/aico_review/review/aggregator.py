"""
Finding Aggregator

Merges oracle findings and rule violations into one ordered collection.
"""

from collections.abc import Iterable

from ..rules.models import Violation
from .models import Finding, ReportSummary, Severity


def finding_from_violation(violation: Violation) -> Finding:
    """Map a rule violation 1:1 onto the Finding shape."""
    message = violation.message
    if violation.occurrences and violation.occurrences > 1:
        message = f"{message} ({violation.occurrences} occurrences)"

    return Finding(
        file=violation.file,
        message=message,
        suggestion="",
        severity=Severity.parse(violation.severity) or Severity.ERROR,
        rule=violation.type,
        line=violation.line,
    )


def aggregate(
    oracle_findings: Iterable[Finding],
    rule_violations: Iterable[Violation | Finding] = (),
) -> list[Finding]:
    """
    Concatenate oracle findings and rule violations.

    Oracle findings come first. Nothing is deduplicated.
    """
    merged = list(oracle_findings)
    for violation in rule_violations:
        if isinstance(violation, Finding):
            merged.append(violation)
        else:
            merged.append(finding_from_violation(violation))
    return merged


class FindingAggregator:
    """Run-scoped, append-only finding accumulator."""

    def __init__(self) -> None:
        self._oracle: list[Finding] = []
        self._rules: list[Finding] = []

    def add_oracle_findings(self, findings: Iterable[Finding]) -> None:
        self._oracle.extend(findings)

    def add_rule_violations(self, violations: Iterable[Violation | Finding]) -> None:
        self._rules.extend(aggregate((), violations))

    @property
    def findings(self) -> list[Finding]:
        """All findings, oracle first."""
        return self._oracle + self._rules

    def summary(self) -> ReportSummary:
        return ReportSummary.from_findings(self.findings)
