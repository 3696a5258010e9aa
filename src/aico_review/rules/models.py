"""Pydantic models for team rules (`.aico/rules.json`)."""

from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = structlog.get_logger(__name__)


class _RulesModel(BaseModel):
    """Base model accepting both camelCase (file) and snake_case names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PatternRule(_RulesModel):
    """A forbidden or required regex pattern."""

    pattern: str
    message: str
    severity: str | None = None
    exclude: list[str] = Field(default_factory=list)
    file_pattern: str | None = Field(default=None, alias="filePattern")

    @field_validator("severity", mode="before")
    @classmethod
    def _normalise_severity(cls, value: Any) -> str | None:
        """Map severity aliases onto error/warn/info; unknown text falls back to the rule default."""
        if value is None:
            return None

        from ..review.models import Severity

        parsed = Severity.parse(str(value))
        if parsed is None:
            logger.warning("Unknown rule severity, using default", severity=value)
            return None
        return parsed.value


class ComplexityRules(_RulesModel):
    """Size and nesting limits."""

    max_function_length: int | None = Field(default=None, alias="maxFunctionLength", gt=0)
    max_cyclomatic_complexity: int | None = Field(
        default=None, alias="maxCyclomaticComplexity", gt=0
    )
    max_nesting_depth: int | None = Field(default=None, alias="maxNestingDepth", gt=0)
    max_file_length: int | None = Field(default=None, alias="maxFileLength", gt=0)


class SecurityRules(_RulesModel):
    """Built-in security checks."""

    no_hardcoded_secrets: bool = Field(default=False, alias="noHardcodedSecrets")
    no_eval: bool = Field(default=False, alias="noEval")
    no_inner_html: bool = Field(default=False, alias="noInnerHTML")
    require_input_validation: bool = Field(default=False, alias="requireInputValidation")


class TeamStandards(_RulesModel):
    """Style standards enforced across the team."""

    require_error_handling: bool = Field(default=False, alias="requireErrorHandling")
    require_type_annotations: bool = Field(default=False, alias="requireTypeAnnotations")
    prefer_const: bool = Field(default=False, alias="preferConst")
    no_var_keyword: bool = Field(default=False, alias="noVarKeyword")
    require_strict_mode: bool = Field(default=False, alias="requireStrictMode")


class PromptEnhancement(_RulesModel):
    """Extra instructions appended to the review prompt."""

    enabled: bool = False
    custom_instructions: str = Field(default="", alias="customInstructions")


class RuleSet(_RulesModel):
    """The `rules` section of the rules file."""

    naming: dict[str, str] = Field(default_factory=dict)
    complexity: ComplexityRules | None = None
    forbidden: list[PatternRule] = Field(default_factory=list)
    required: list[PatternRule] = Field(default_factory=list)
    security: SecurityRules | None = None


class TeamRules(_RulesModel):
    """Complete team rules document."""

    version: str = "1.0"
    description: str = ""
    rules: RuleSet = Field(default_factory=RuleSet)
    ignore: list[str] = Field(default_factory=list)
    team_standards: TeamStandards | None = Field(default=None, alias="teamStandards")
    ai_prompt_enhancement: PromptEnhancement | None = Field(
        default=None, alias="aiPromptEnhancement"
    )


@dataclass(frozen=True)
class Violation:
    """A rule violation produced by the rules engine."""

    type: str  # forbidden, required, complexity, security, standard, code-vulnerability
    severity: str
    message: str
    file: str
    pattern: str | None = None
    occurrences: int | None = None
    line: int | None = None
    cwe: str | None = None
