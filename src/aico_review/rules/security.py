"""
Security Scanner

Line-based regex checks for common vulnerability patterns (hardcoded
secrets, injection, XSS, weak crypto and friends). Each hit is reported as a
`code-vulnerability` violation tagged with its CWE identifier.

Dependency auditing (npm/yarn/pnpm audit) is out of scope.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass

import structlog

from .models import Violation

logger = structlog.get_logger(__name__)

VULNERABILITY_TYPE = "code-vulnerability"


@dataclass(frozen=True)
class SecurityPattern:
    """One vulnerability signature."""

    regex: re.Pattern[str]
    message: str
    severity: str  # critical, high, moderate, low
    cwe: str


def _sig(pattern: str, message: str, severity: str, cwe: str) -> SecurityPattern:
    return SecurityPattern(re.compile(pattern, re.IGNORECASE), message, severity, cwe)


SECURITY_PATTERNS: tuple[SecurityPattern, ...] = (
    # Hardcoded secrets
    _sig(
        r"(?:api[_-]?key|apikey|api[_-]?secret|access[_-]?token|auth[_-]?token|secret[_-]?key)"
        r"\s*[=:]\s*['\"]([^'\"]{20,})['\"]|['\"]([A-Za-z0-9_\-]{32,})['\"](?=\s*[;,)])",
        "Potential hardcoded API key or secret detected",
        "critical",
        "CWE-798",
    ),
    _sig(
        r"password\s*[=:]\s*['\"](?!.*\$\{|.*process\.env)[^'\"]{3,}['\"]",
        "Hardcoded password detected",
        "critical",
        "CWE-798",
    ),
    _sig(
        r"(?:private[_-]?key|secret[_-]?key)\s*[=:]\s*['\"][^'\"]{20,}['\"]",
        "Hardcoded private key detected",
        "critical",
        "CWE-798",
    ),
    # SQL injection
    _sig(
        r"(?:execute|query|exec)\s*\(\s*['\"`].*?\$\{|(?:execute|query|exec)\s*\(\s*.*?\+\s*.*?\)",
        "Potential SQL injection vulnerability - use parameterized queries",
        "high",
        "CWE-89",
    ),
    _sig(
        r"(?:SELECT|INSERT|UPDATE|DELETE|DROP|CREATE).*?(?:\$\{|`\$\{|\+\s*\w+)",
        "SQL query with string concatenation - potential SQL injection",
        "high",
        "CWE-89",
    ),
    # XSS
    _sig(
        r"\.innerHTML\s*=\s*(?!['\"`])[^;]+",
        "Potential XSS vulnerability - innerHTML with dynamic content",
        "high",
        "CWE-79",
    ),
    _sig(
        r"dangerouslySetInnerHTML\s*=\s*\{\{",
        "Using dangerouslySetInnerHTML - ensure content is sanitized",
        "moderate",
        "CWE-79",
    ),
    _sig(
        r"document\.write\s*\(",
        "document.write() can lead to XSS vulnerabilities",
        "moderate",
        "CWE-79",
    ),
    # Command injection
    _sig(
        r"(?:exec|spawn|execSync|spawnSync)\s*\([^)]*(?:\$\{|`\$\{|\+)",
        "Potential command injection - avoid dynamic command execution",
        "critical",
        "CWE-78",
    ),
    _sig(
        r"child_process\.exec\([^)]*\+",
        "Command injection risk with string concatenation",
        "critical",
        "CWE-78",
    ),
    # Path traversal
    _sig(
        r"(?:readFile|writeFile|unlink|rmdir|mkdir)\s*\([^)]*(?:\$\{|`\$\{|\+).*?\.\./"
        r"|(?:readFile|writeFile|unlink|rmdir|mkdir)\s*\([^)]*req\.",
        "Potential path traversal vulnerability",
        "high",
        "CWE-22",
    ),
    # Weak cryptography
    _sig(
        r"crypto\.createCipher\(",
        "Deprecated crypto.createCipher() - use crypto.createCipheriv() instead",
        "moderate",
        "CWE-327",
    ),
    _sig(
        r"md5|sha1(?!.*hmac)",
        "Weak cryptographic algorithm (MD5/SHA1) - use SHA-256 or better",
        "moderate",
        "CWE-327",
    ),
    # Insecure randomness
    _sig(
        r"Math\.random\(\)",
        "Math.random() is not cryptographically secure - use crypto.randomBytes()",
        "low",
        "CWE-338",
    ),
    # Dynamic code evaluation
    _sig(
        r"\beval\s*\(",
        "eval() usage detected - major security risk",
        "critical",
        "CWE-95",
    ),
    _sig(
        r"new\s+Function\s*\(",
        "new Function() is similar to eval() - security risk",
        "high",
        "CWE-95",
    ),
    # Insecure deserialization
    _sig(
        r"JSON\.parse\([^)]*req\.",
        "Parsing user input directly - validate before parsing",
        "moderate",
        "CWE-502",
    ),
    # SSRF
    _sig(
        r"(?:fetch|axios|request|http\.get|https\.get)\s*\([^)]*(?:\$\{|`\$\{|req\.)",
        "Potential SSRF vulnerability - validate URLs before making requests",
        "high",
        "CWE-918",
    ),
)


class SecurityScanner:
    """Scan file contents line by line for vulnerability signatures."""

    def __init__(self, patterns: tuple[SecurityPattern, ...] = SECURITY_PATTERNS):
        self.patterns = patterns

    def validate(self, file_path: str, content: str) -> list[Violation]:
        """
        Check one file.

        Every matching signature on every line yields one violation, so a
        line can be reported more than once under different CWEs.
        """
        violations: list[Violation] = []
        for number, line in enumerate(content.split("\n"), start=1):
            for sig in self.patterns:
                if sig.regex.search(line):
                    violations.append(
                        Violation(
                            type=VULNERABILITY_TYPE,
                            severity=sig.severity,
                            message=f"{sig.message} ({sig.cwe})",
                            file=file_path,
                            line=number,
                            cwe=sig.cwe,
                        )
                    )
        return violations

    def validate_files(self, files: Mapping[str, str]) -> list[Violation]:
        """Check several files, in mapping order."""
        violations: list[Violation] = []
        for file_path, content in files.items():
            violations.extend(self.validate(file_path, content))

        if violations:
            logger.info("Security scan found issues", files=len(files), issues=len(violations))
        return violations


def scan_code(file_path: str, content: str) -> list[Violation]:
    """Convenience wrapper around SecurityScanner.validate()."""
    return SecurityScanner().validate(file_path, content)
