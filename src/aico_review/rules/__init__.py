"""
Team Rules Module

Regex-based validation of changed files against `.aico/rules.json`, plus an
optional CWE-tagged security scan.
"""

from .engine import (
    DEFAULT_RULES_PATH,
    DEFAULT_RULES_TEMPLATE,
    RulesEngine,
    build_prompt_enhancement,
    initialize_rules,
    load_rules,
    save_rules,
    summarize_rules,
)
from .models import TeamRules, Violation
from .security import SecurityScanner, scan_code

__all__ = [
    "DEFAULT_RULES_PATH",
    "DEFAULT_RULES_TEMPLATE",
    "RulesEngine",
    "SecurityScanner",
    "TeamRules",
    "Violation",
    "build_prompt_enhancement",
    "initialize_rules",
    "load_rules",
    "save_rules",
    "scan_code",
    "summarize_rules",
]
