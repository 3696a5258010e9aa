"""
Report Formatter

Renders findings for CI consumption and computes the process exit code.

Encodings:
- json: summary + findings + metadata
- xml: JUnit test report (errors are failures, warnings are skipped)
- github: GitHub Actions workflow annotations
- text: human-readable summary grouped by file
"""

import json
import os
import tempfile
from collections.abc import Iterable, Sequence
from pathlib import Path

import structlog

from ..errors import ReportWriteError
from .models import Finding, OutputFormat, ReportMetadata, ReportSummary, Severity

logger = structlog.get_logger(__name__)

SUITE_NAME = "aico-review"

_XML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}

_ANNOTATION_LEVEL = {
    Severity.ERROR: "error",
    Severity.WARN: "warning",
    Severity.INFO: "notice",
}

_TEXT_LABEL = {
    Severity.ERROR: "[ERROR]",
    Severity.WARN: "[WARN]",
    Severity.INFO: "[INFO]",
}


def escape_xml(value: object) -> str:
    """Escape the five XML special characters."""
    if value is None:
        return ""
    return "".join(_XML_ESCAPES.get(ch, ch) for ch in str(value))


def _escape_annotation_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_annotation_property(value: str) -> str:
    return _escape_annotation_data(value).replace(":", "%3A").replace(",", "%2C")


def filter_by_severity(
    findings: Iterable[Finding], severity: Severity | str | None
) -> list[Finding]:
    """Keep only findings of one severity class (all when severity is None)."""
    findings = list(findings)
    if severity is None:
        return findings

    wanted = severity if isinstance(severity, Severity) else Severity.parse(severity)
    if wanted is None:
        raise ValueError(f"Unknown severity: {severity}")
    return [f for f in findings if f.severity == wanted]


def group_by_file(findings: Iterable[Finding]) -> dict[str, list[Finding]]:
    """Group findings by file, preserving first-seen order."""
    grouped: dict[str, list[Finding]] = {}
    for finding in findings:
        grouped.setdefault(finding.file or "unknown", []).append(finding)
    return grouped


def exit_code(
    findings: Sequence[Finding],
    fail_on_error: bool = False,
    fail_on_warn: bool = False,
    severity_filter: Severity | str | None = None,
) -> int:
    """
    Compute the process exit code.

    Precedence:
    1. severity filter "error" and any error -> 1
    2. severity filter "warn" and any warning -> 1
    3. fail_on_error and any error -> 1
    4. fail_on_warn and any warning or error -> 1
    5. otherwise 0 (report-only mode)

    The severity filter narrows the findings considered by every rule.
    """
    considered = filter_by_severity(findings, severity_filter)
    summary = ReportSummary.from_findings(considered)
    wanted = (
        severity_filter
        if isinstance(severity_filter, Severity) or severity_filter is None
        else Severity.parse(severity_filter)
    )

    if wanted == Severity.ERROR and summary.errors > 0:
        return 1
    if wanted == Severity.WARN and summary.warnings > 0:
        return 1
    if fail_on_error and summary.errors > 0:
        return 1
    if fail_on_warn and (summary.warnings > 0 or summary.errors > 0):
        return 1
    return 0


class ReportFormatter:
    """Render findings into one of the supported encodings."""

    def format(
        self,
        findings: Sequence[Finding],
        metadata: ReportMetadata,
        output_format: OutputFormat | str = OutputFormat.TEXT,
        severity_filter: Severity | str | None = None,
    ) -> str:
        """
        Render findings.

        Args:
            findings: Aggregated findings
            metadata: Run metadata
            output_format: Encoding to produce
            severity_filter: Restricts the rendered set for json and text

        Returns:
            The rendered report
        """
        fmt = OutputFormat(output_format)

        if fmt == OutputFormat.JSON:
            return self.format_json(filter_by_severity(findings, severity_filter), metadata)
        if fmt == OutputFormat.XML:
            return self.format_xml(findings, metadata)
        if fmt == OutputFormat.GITHUB:
            return self.format_github(findings)
        return self.format_text(filter_by_severity(findings, severity_filter), metadata)

    def format_json(self, findings: Sequence[Finding], metadata: ReportMetadata) -> str:
        output = {
            "summary": ReportSummary.from_findings(list(findings)).to_dict(),
            "findings": [f.to_dict() for f in findings],
            "metadata": metadata.to_dict(),
        }
        return json.dumps(output, indent=2, ensure_ascii=False)

    def format_xml(self, findings: Sequence[Finding], metadata: ReportMetadata) -> str:
        summary = ReportSummary.from_findings(list(findings))
        duration = metadata.duration_seconds or 0

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            "<testsuites>",
            f'  <testsuite name="{SUITE_NAME}" tests="{summary.total}" '
            f'failures="{summary.errors}" errors="0" skipped="{summary.warnings}" '
            f'time="{duration:.3f}">',
        ]

        for file_path, file_findings in group_by_file(findings).items():
            for finding in file_findings:
                name = escape_xml(file_path)
                message = escape_xml(finding.message)
                lines.append(f'    <testcase name="{name}" classname="code-review">')

                if finding.severity == Severity.ERROR:
                    rule = escape_xml(finding.rule or "error")
                    lines.append(f'      <failure message="{message}" type="{rule}">')
                    lines.append(f"        File: {name}")
                    if finding.line:
                        lines.append(f"        Line: {finding.line}")
                    lines.append(f"        {message}")
                    if finding.suggestion:
                        lines.append(f"        Suggestion: {escape_xml(finding.suggestion)}")
                    lines.append("      </failure>")
                elif finding.severity == Severity.WARN:
                    lines.append(f'      <skipped message="{message}" />')

                lines.append("    </testcase>")

        lines.append("  </testsuite>")
        lines.append("</testsuites>")
        return "\n".join(lines) + "\n"

    def format_github(self, findings: Sequence[Finding]) -> str:
        lines = []
        for finding in findings:
            level = _ANNOTATION_LEVEL[finding.severity]
            file_path = _escape_annotation_property(finding.file or "unknown")
            line = finding.line or 1
            message = _escape_annotation_data(finding.message)
            lines.append(f"::{level} file={file_path},line={line}::{message}")
        return "".join(f"{line}\n" for line in lines)

    def format_text(self, findings: Sequence[Finding], metadata: ReportMetadata) -> str:
        summary = ReportSummary.from_findings(list(findings))
        lines = [
            "",
            "=== Aico Code Review Summary ===",
            "",
            f"Total Issues: {summary.total}",
            f"  Errors: {summary.errors}",
            f"  Warnings: {summary.warnings}",
            f"  Info: {summary.info}",
            "",
        ]

        if findings:
            lines.extend(["=== Issues ===", ""])
            for file_path, file_findings in group_by_file(findings).items():
                lines.append(f"{file_path}:")
                for finding in file_findings:
                    location = f" (line {finding.line})" if finding.line else ""
                    lines.append(f"  {_TEXT_LABEL[finding.severity]} {finding.message}{location}")
                    if finding.suggestion:
                        lines.append(f"    Suggestion: {finding.suggestion}")
                lines.append("")

        if metadata.duration_seconds:
            lines.append(f"Duration: {metadata.duration_seconds:.2f}s")

        return "\n".join(lines) + "\n"


def save_report(content: str, path: str | Path) -> Path:
    """
    Write a rendered report atomically as UTF-8.

    Raises:
        ReportWriteError: The file could not be written
    """
    target = Path(path)
    directory = target.parent if str(target.parent) else Path(".")

    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        logger.error("Failed to save report", path=str(target), error=str(e))
        raise ReportWriteError(str(target), str(e)) from e

    logger.info("Report saved", path=str(target), size=len(content))
    return target
