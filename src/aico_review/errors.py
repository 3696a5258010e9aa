"""Exception hierarchy for aico-review."""


class AicoReviewError(Exception):
    """Base class for all aico-review errors."""


class ConfigError(AicoReviewError):
    """Configuration is missing or invalid (e.g. no API key)."""


class GitCommandError(AicoReviewError):
    """A git command failed fatally."""


class OracleError(AicoReviewError):
    """The reviewer oracle could not produce a reply."""


class OracleCallError(OracleError):
    """A batch of oracle calls failed and no partial result exists."""

    def __init__(self, message: str, batch_index: int, cause: BaseException | None = None):
        super().__init__(message)
        self.batch_index = batch_index
        self.cause = cause


class ReportWriteError(AicoReviewError):
    """The rendered report could not be persisted."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not write report to {path}: {reason}")
        self.path = path
        self.reason = reason
