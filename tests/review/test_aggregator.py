"""
Unit tests for finding aggregation.
"""

from aico_review.review.aggregator import FindingAggregator, aggregate, finding_from_violation
from aico_review.review.models import Finding, Severity
from aico_review.rules.models import Violation


def oracle_finding(file: str, message: str = "issue") -> Finding:
    return Finding(file=file, message=message, suggestion="fix it")


class TestFindingFromViolation:
    """Tests for mapping violations onto findings."""

    def test_maps_fields(self):
        violation = Violation(
            type="forbidden",
            severity="error",
            message="console.log is not allowed",
            file="src/app.js",
            pattern="console\\.log",
            line=7,
        )

        finding = finding_from_violation(violation)

        assert finding.file == "src/app.js"
        assert finding.message == "console.log is not allowed"
        assert finding.severity == Severity.ERROR
        assert finding.rule == "forbidden"
        assert finding.line == 7
        assert finding.suggestion == ""

    def test_occurrence_count_in_message(self):
        violation = Violation(
            type="forbidden", severity="warn", message="No TODOs", file="a.py", occurrences=3
        )
        assert finding_from_violation(violation).message == "No TODOs (3 occurrences)"

    def test_single_occurrence_not_annotated(self):
        violation = Violation(
            type="forbidden", severity="warn", message="No TODOs", file="a.py", occurrences=1
        )
        assert finding_from_violation(violation).message == "No TODOs"

    def test_warning_spelling_maps_to_warn(self):
        violation = Violation(type="standard", severity="warning", message="m", file="a.js")
        assert finding_from_violation(violation).severity == Severity.WARN

    def test_unknown_severity_defaults_to_error(self):
        violation = Violation(type="security", severity="", message="m", file="a.js")
        assert finding_from_violation(violation).severity == Severity.ERROR


class TestAggregate:
    """Tests for merging oracle findings and rule violations."""

    def test_oracle_findings_come_first(self):
        violations = [Violation(type="security", severity="error", message="eval", file="x.js")]
        merged = aggregate([oracle_finding("a.py"), oracle_finding("b.py")], violations)

        assert [f.file for f in merged] == ["a.py", "b.py", "x.js"]
        assert merged[2].rule == "security"

    def test_no_deduplication(self):
        same = oracle_finding("a.py", "dup")
        assert len(aggregate([same, same])) == 2

    def test_accepts_prebuilt_findings_as_violations(self):
        rule_finding = Finding(file="r.py", message="m", rule="standard")
        assert aggregate([], [rule_finding]) == [rule_finding]

    def test_empty(self):
        assert aggregate([], []) == []


class TestFindingAggregator:
    """Tests for the run-scoped accumulator."""

    def test_order_independent_of_call_order(self):
        aggregator = FindingAggregator()
        aggregator.add_rule_violations(
            [Violation(type="forbidden", severity="warn", message="m", file="rule.py")]
        )
        aggregator.add_oracle_findings([oracle_finding("oracle.py")])

        assert [f.file for f in aggregator.findings] == ["oracle.py", "rule.py"]

    def test_summary(self, mixed_findings):
        aggregator = FindingAggregator()
        aggregator.add_oracle_findings(mixed_findings)

        summary = aggregator.summary()

        assert (summary.total, summary.errors, summary.warnings, summary.info) == (3, 1, 1, 1)
