"""
Finding Parser

Turns the oracle's free-form reply into structured findings.

The reply is a sequence of tagged blocks, each introduced by a file marker:

    [FILE] src/app.js
    [SEVERITY] error
    [ISSUE] description
    [SUGGESTION] how to fix
    [CORRECTED_CODE]
    ```
    full file content
    ```

The plain `File: / Issue: / Suggestion:` spelling is accepted as well.
Blocks missing a file, issue or suggestion are dropped.
"""

import re

import structlog

from .models import Finding, Severity

logger = structlog.get_logger(__name__)

MARKER = re.compile(
    r"^\s*(?:[-*]\s+)?(?:\d+[.)]\s*)?\**\s*"
    r"(?:\[(FILE|ISSUE|SUGGESTION|SEVERITY|LINE|CORRECTED[_ ]CODE)\]"
    r"|(File|Issue|Suggestion|Severity|Line|Corrected[_ ]?Code)\s*\**\s*:)"
    r"\**\s*(.*)$",
    re.IGNORECASE,
)
FENCE = re.compile(r"^\s*```")
LINE_NUMBER = re.compile(r"\d+")

# Fields whose text may wrap onto following lines
TEXT_FIELDS = ("issue", "suggestion")


def _field_name(raw: str) -> str:
    name = raw.lower().replace(" ", "_")
    if name == "correctedcode":
        return "corrected_code"
    return name


def _clean_path(value: str) -> str:
    return value.strip().strip("`*\"'").strip()


class FindingParser:
    """Parse oracle replies into Finding objects."""

    def __init__(self, default_severity: Severity = Severity.WARN):
        self.default_severity = default_severity

    def parse(self, raw_text: str) -> list[Finding]:
        """
        Parse a raw oracle reply.

        Never raises; malformed blocks are skipped.

        Args:
            raw_text: Reply text from the oracle

        Returns:
            Findings in the order their blocks appeared
        """
        if not isinstance(raw_text, str) or not raw_text.strip():
            return []

        findings: list[Finding] = []
        block: dict[str, str | list[str]] | None = None
        field: str | None = None
        in_fence = False

        for line in raw_text.splitlines():
            if in_fence:
                if FENCE.match(line):
                    in_fence = False
                    field = None
                elif block is not None:
                    block["corrected_code"].append(line)  # type: ignore[union-attr]
                continue

            match = MARKER.match(line)
            if match:
                name = _field_name(match.group(1) or match.group(2))
                value = match.group(3).strip()

                if name == "file":
                    self._flush(block, findings)
                    block = {"file": value}
                    field = "file"
                    continue

                if block is None:
                    continue

                if name == "corrected_code":
                    block["corrected_code"] = []
                    field = "corrected_code"
                    if FENCE.match(value):
                        in_fence = True
                    elif value:
                        block["corrected_code"].append(value)  # type: ignore[union-attr]
                    continue

                block[name] = value
                field = name
                continue

            if block is None or field is None:
                continue

            if field == "corrected_code":
                code = block["corrected_code"]
                if not code and FENCE.match(line):
                    in_fence = True
                elif line.strip() or code:
                    code.append(line)  # type: ignore[union-attr]
                continue

            if not line.strip():
                # Blank line ends a wrapped text field
                field = None
                continue

            if field in TEXT_FIELDS:
                block[field] = f"{block[field]} {line.strip()}".strip()

        self._flush(block, findings)
        return findings

    def _flush(
        self,
        block: dict[str, str | list[str]] | None,
        findings: list[Finding],
    ) -> None:
        """Convert a finished block into a Finding if it is complete."""
        if block is None:
            return

        file_path = _clean_path(str(block.get("file", "")))
        issue = str(block.get("issue", "")).strip()
        suggestion = str(block.get("suggestion", "")).strip()

        if not (file_path and issue and suggestion):
            logger.debug(
                "Dropping incomplete block",
                file=file_path or None,
                has_issue=bool(issue),
                has_suggestion=bool(suggestion),
            )
            return

        severity = Severity.parse(str(block.get("severity", ""))) or self.default_severity

        line_number = None
        line_match = LINE_NUMBER.search(str(block.get("line", "")))
        if line_match:
            line_number = int(line_match.group(0))

        corrected = None
        code_lines = block.get("corrected_code")
        if isinstance(code_lines, list) and code_lines:
            corrected = "\n".join(code_lines).rstrip() + "\n"

        findings.append(
            Finding(
                file=file_path,
                message=issue,
                suggestion=suggestion,
                severity=severity,
                corrected_content=corrected,
                line=line_number,
            )
        )


def parse(raw_text: str) -> list[Finding]:
    """Convenience wrapper around FindingParser.parse()."""
    return FindingParser().parse(raw_text)
