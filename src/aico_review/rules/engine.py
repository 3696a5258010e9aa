"""
Rules Engine

Regex-based static checks of whole-file contents against team rules.
Plugs into the pipeline as the optional rule validator.
"""

import fnmatch
import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from .models import TeamRules, Violation

logger = structlog.get_logger(__name__)

DEFAULT_RULES_PATH = Path(".aico") / "rules.json"

DEFAULT_RULES_TEMPLATE: dict[str, Any] = {
    "version": "1.0",
    "description": "Aico team rules configuration - Define your team's code quality standards",
    "rules": {
        "naming": {
            "functions": "camelCase",
            "classes": "PascalCase",
            "constants": "UPPER_SNAKE_CASE",
            "variables": "camelCase",
        },
        "complexity": {
            "maxFunctionLength": 50,
            "maxCyclomaticComplexity": 10,
            "maxNestingDepth": 4,
            "maxFileLength": 500,
        },
        "forbidden": [
            {
                "pattern": r"console\.log",
                "severity": "warn",
                "message": "Remove console.log before committing. Use a proper logging library instead.",
                "exclude": ["*.test.js", "*.spec.ts"],
            },
            {
                "pattern": "debugger",
                "severity": "error",
                "message": "Remove debugger statement before committing",
            },
            {
                "pattern": "TODO:|FIXME:",
                "severity": "warn",
                "message": "Unresolved TODO/FIXME found. Please create a ticket or resolve it.",
            },
        ],
        "required": [
            {
                "pattern": r"^/\*\*[\s\S]*?\*/\s*(export\s+)?(async\s+)?function",
                "severity": "warn",
                "message": "Public functions should have JSDoc comments",
                "filePattern": "*.js",
            }
        ],
        "security": {
            "noHardcodedSecrets": True,
            "noEval": True,
            "noInnerHTML": True,
            "requireInputValidation": True,
        },
    },
    "ignore": [
        "*.test.js",
        "*.spec.ts",
        "*.test.tsx",
        "*.spec.jsx",
        "dist/**",
        "build/**",
        "coverage/**",
        "node_modules/**",
        "*.min.js",
        "*.bundle.js",
    ],
    "teamStandards": {
        "requireErrorHandling": True,
        "requireTypeAnnotations": False,
        "preferConst": True,
        "noVarKeyword": True,
        "requireStrictMode": False,
    },
    "aiPromptEnhancement": {
        "enabled": True,
        "customInstructions": (
            "Focus on code maintainability, security, and performance. "
            "Follow our team's naming conventions and complexity limits."
        ),
    },
}

SECRET_PATTERNS = [
    re.compile(r"api[_-]?key\s*=\s*['\"][^'\"]+['\"]", re.IGNORECASE),
    re.compile(r"password\s*=\s*['\"][^'\"]+['\"]", re.IGNORECASE),
    re.compile(r"secret\s*=\s*['\"][^'\"]+['\"]", re.IGNORECASE),
    re.compile(r"token\s*=\s*['\"][^'\"]+['\"]", re.IGNORECASE),
    re.compile(r"aws[_-]?access[_-]?key", re.IGNORECASE),
    re.compile(r"private[_-]?key", re.IGNORECASE),
]
EVAL_CALL = re.compile(r"\beval\s*\(")
INNER_HTML = re.compile(r"\.innerHTML\s*=")
VAR_KEYWORD = re.compile(r"\bvar\s+")
LET_ASSIGN = re.compile(r"\blet\s+\w+\s*=")
FUNCTION_BODY = re.compile(r"function\s+\w+\s*\([^)]*\)\s*\{[\s\S]*?\n\}")


def matches_pattern(file_path: str, pattern: str) -> bool:
    """Glob match where `*` also crosses directory separators."""
    return fnmatch.fnmatchcase(file_path, pattern)


def should_ignore(file_path: str, patterns: Iterable[str]) -> bool:
    return any(matches_pattern(file_path, p) for p in patterns)


def _line_of(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def load_rules(path: str | Path = DEFAULT_RULES_PATH) -> TeamRules | None:
    """
    Load team rules from disk.

    Returns None when the file is missing or invalid; an invalid file is
    logged rather than raised so a broken rules file never blocks a review.
    """
    rules_path = Path(path)
    if not rules_path.exists():
        return None

    try:
        data = json.loads(rules_path.read_text(encoding="utf-8"))
        return TeamRules.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("Failed to load team rules", path=str(rules_path), error=str(e))
        return None


def save_rules(rules: TeamRules | Mapping[str, Any], path: str | Path = DEFAULT_RULES_PATH) -> Path:
    """Write team rules as pretty-printed JSON."""
    rules_path = Path(path)
    rules_path.parent.mkdir(parents=True, exist_ok=True)

    if isinstance(rules, TeamRules):
        data = rules.model_dump(by_alias=True, exclude_none=True)
    else:
        data = dict(rules)

    rules_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return rules_path


@dataclass
class InitResult:
    """Outcome of initialize_rules()."""

    path: Path
    created: bool


def initialize_rules(path: str | Path = DEFAULT_RULES_PATH) -> InitResult:
    """Create the rules file from the default template unless it exists."""
    rules_path = Path(path)
    if rules_path.exists():
        return InitResult(path=rules_path, created=False)

    save_rules(DEFAULT_RULES_TEMPLATE, rules_path)
    logger.info("Initialized team rules", path=str(rules_path))
    return InitResult(path=rules_path, created=True)


def summarize_rules(rules: TeamRules) -> dict[str, Any]:
    """Count active rules per category."""
    categories: dict[str, int] = {}
    section = rules.rules

    if section.forbidden:
        categories["forbidden"] = len(section.forbidden)
    if section.required:
        categories["required"] = len(section.required)
    if section.complexity:
        categories["complexity"] = len(section.complexity.model_dump(exclude_none=True))
    if section.security:
        categories["security"] = sum(1 for v in section.security.model_dump().values() if v)
    if rules.team_standards:
        categories["teamStandards"] = sum(
            1 for v in rules.team_standards.model_dump().values() if v
        )

    return {
        "version": rules.version,
        "description": rules.description,
        "totalRules": sum(categories.values()),
        "categories": categories,
    }


def build_prompt_enhancement(rules: TeamRules | None) -> str:
    """Render team rules as extra instructions for the review prompt."""
    if not rules or not rules.ai_prompt_enhancement or not rules.ai_prompt_enhancement.enabled:
        return ""

    parts = ["", "", "TEAM-SPECIFIC RULES:"]
    if rules.ai_prompt_enhancement.custom_instructions:
        parts.extend([rules.ai_prompt_enhancement.custom_instructions, ""])

    if rules.rules.naming:
        parts.append("Naming Conventions:")
        parts.extend(f"- {kind}: {style}" for kind, style in rules.rules.naming.items())
        parts.append("")

    if rules.rules.complexity:
        limits = rules.rules.complexity.model_dump(by_alias=True, exclude_none=True)
        if limits:
            parts.append("Complexity Limits:")
            parts.extend(f"- {name}: {value}" for name, value in limits.items())
            parts.append("")

    if rules.rules.forbidden:
        parts.append("Forbidden Patterns:")
        parts.extend(f"- {r.pattern}: {r.message}" for r in rules.rules.forbidden)
        parts.append("")

    if rules.team_standards:
        enabled = [
            name
            for name, value in rules.team_standards.model_dump(by_alias=True).items()
            if value
        ]
        if enabled:
            parts.append("Team Standards:")
            parts.extend(f"- {name}: enabled" for name in enabled)

    return "\n".join(parts)


class RulesEngine:
    """Validate file contents against team rules."""

    def __init__(self, rules: TeamRules):
        self.rules = rules

    @classmethod
    def from_path(cls, path: str | Path = DEFAULT_RULES_PATH) -> "RulesEngine | None":
        """Build an engine from a rules file, None when there are no rules."""
        rules = load_rules(path)
        return cls(rules) if rules else None

    def validate(self, file_path: str, content: str) -> list[Violation]:
        """
        Check one file.

        Args:
            file_path: Repository-relative path
            content: Full file content

        Returns:
            Violations in check order (forbidden, required, complexity,
            security, standards)
        """
        if should_ignore(file_path, self.rules.ignore):
            return []

        violations: list[Violation] = []
        violations.extend(self._check_forbidden(file_path, content))
        violations.extend(self._check_required(file_path, content))
        violations.extend(self._check_complexity(file_path, content))
        violations.extend(self._check_security(file_path, content))
        violations.extend(self._check_standards(file_path, content))
        return violations

    def validate_files(self, files: Mapping[str, str]) -> list[Violation]:
        """Check several files, in mapping order."""
        violations: list[Violation] = []
        for file_path, content in files.items():
            violations.extend(self.validate(file_path, content))
        return violations

    def _compile(self, pattern: str, flags: int = 0) -> re.Pattern[str] | None:
        try:
            return re.compile(pattern, flags)
        except re.error as e:
            logger.warning("Invalid rule pattern", pattern=pattern, error=str(e))
            return None

    def _check_forbidden(self, file_path: str, content: str) -> list[Violation]:
        violations = []
        for rule in self.rules.rules.forbidden:
            if rule.exclude and should_ignore(file_path, rule.exclude):
                continue

            regex = self._compile(rule.pattern)
            if regex is None:
                continue

            matches = list(regex.finditer(content))
            if matches:
                violations.append(
                    Violation(
                        type="forbidden",
                        severity=rule.severity or "error",
                        message=rule.message,
                        file=file_path,
                        pattern=rule.pattern,
                        occurrences=len(matches),
                        line=_line_of(content, matches[0].start()),
                    )
                )
        return violations

    def _check_required(self, file_path: str, content: str) -> list[Violation]:
        violations = []
        for rule in self.rules.rules.required:
            if rule.file_pattern and not matches_pattern(file_path, rule.file_pattern):
                continue

            regex = self._compile(rule.pattern, re.MULTILINE)
            if regex is None:
                continue

            # Only meaningful for files that declare functions at all
            if not regex.search(content) and "function" in content:
                violations.append(
                    Violation(
                        type="required",
                        severity=rule.severity or "warn",
                        message=rule.message,
                        file=file_path,
                        pattern=rule.pattern,
                    )
                )
        return violations

    def _check_complexity(self, file_path: str, content: str) -> list[Violation]:
        limits = self.rules.rules.complexity
        if not limits:
            return []

        violations = []

        if limits.max_file_length:
            lines = len(content.split("\n"))
            if lines > limits.max_file_length:
                violations.append(
                    Violation(
                        type="complexity",
                        severity="warn",
                        message=(
                            f"File exceeds maximum length of {limits.max_file_length} "
                            f"lines (current: {lines})"
                        ),
                        file=file_path,
                    )
                )

        if limits.max_function_length:
            for match in FUNCTION_BODY.finditer(content):
                lines = len(match.group(0).split("\n"))
                if lines > limits.max_function_length:
                    violations.append(
                        Violation(
                            type="complexity",
                            severity="warn",
                            message=(
                                f"Function exceeds maximum length of "
                                f"{limits.max_function_length} lines (current: {lines})"
                            ),
                            file=file_path,
                            line=_line_of(content, match.start()),
                        )
                    )

        if limits.max_nesting_depth:
            depth = 0
            max_depth = 0
            for line in content.split("\n"):
                depth += line.count("{") - line.count("}")
                max_depth = max(max_depth, depth)

            if max_depth > limits.max_nesting_depth:
                violations.append(
                    Violation(
                        type="complexity",
                        severity="warn",
                        message=(
                            f"Code exceeds maximum nesting depth of "
                            f"{limits.max_nesting_depth} (current: {max_depth})"
                        ),
                        file=file_path,
                    )
                )

        return violations

    def _check_security(self, file_path: str, content: str) -> list[Violation]:
        security = self.rules.rules.security
        if not security:
            return []

        violations = []

        if security.no_hardcoded_secrets:
            for pattern in SECRET_PATTERNS:
                match = pattern.search(content)
                if match:
                    violations.append(
                        Violation(
                            type="security",
                            severity="error",
                            message="Potential hardcoded secret detected. Use environment variables instead.",
                            file=file_path,
                            line=_line_of(content, match.start()),
                        )
                    )
                    break

        if security.no_eval:
            match = EVAL_CALL.search(content)
            if match:
                violations.append(
                    Violation(
                        type="security",
                        severity="error",
                        message="Usage of eval() detected. This is a security risk.",
                        file=file_path,
                        line=_line_of(content, match.start()),
                    )
                )

        if security.no_inner_html:
            match = INNER_HTML.search(content)
            if match:
                violations.append(
                    Violation(
                        type="security",
                        severity="warn",
                        message=(
                            "Usage of innerHTML detected. Consider using textContent "
                            "or a sanitization library to prevent XSS."
                        ),
                        file=file_path,
                        line=_line_of(content, match.start()),
                    )
                )

        return violations

    def _check_standards(self, file_path: str, content: str) -> list[Violation]:
        standards = self.rules.team_standards
        if not standards:
            return []

        violations = []

        if standards.no_var_keyword:
            match = VAR_KEYWORD.search(content)
            if match:
                violations.append(
                    Violation(
                        type="standard",
                        severity="warn",
                        message='Usage of "var" keyword detected. Use "const" or "let" instead.',
                        file=file_path,
                        line=_line_of(content, match.start()),
                    )
                )

        if standards.prefer_const and LET_ASSIGN.search(content):
            violations.append(
                Violation(
                    type="standard",
                    severity="info",
                    message='Consider using "const" instead of "let" for variables that are not reassigned.',
                    file=file_path,
                )
            )

        return violations
