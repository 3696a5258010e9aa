"""Configuration management for aico-review.

Settings come from the global JSON config (`~/.aicorc`) with environment
variables taking priority. The resulting `ReviewConfig` is passed explicitly
into the pipeline; nothing downstream reads the environment.
"""

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from .errors import ConfigError

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".aicorc"

DEFAULT_MODELS: dict[str, str] = {
    "groq": "llama-3.3-70b-versatile",
    "openai": "gpt-4o-mini",
    "deepseek": "deepseek-chat",
    "ollama": "llama3",
}

DEFAULT_BASE_URLS: dict[str, str] = {
    "groq": "https://api.groq.com/openai/v1",
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com",
    "ollama": "http://localhost:11434/v1",
}

API_KEY_ENV: dict[str, str] = {
    "groq": "GROQ_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

# Providers that run locally and need no key
KEYLESS_PROVIDERS = frozenset({"ollama"})


def load_global_config(path: Path | None = None) -> dict[str, Any]:
    """Load the global JSON config, empty when missing or unreadable."""
    config_path = path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        return {}

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable config file", path=str(config_path), error=str(e))
        return {}

    return data if isinstance(data, dict) else {}


def _int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from e


def _bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if not raw:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from e


@dataclass
class ReviewConfig:
    """Review pipeline configuration."""

    # Reviewer oracle
    provider: str = "groq"
    api_key: str | None = None
    model: str | None = None
    base_url: str | None = None
    request_timeout: float = 60.0

    # Segmentation and dispatch
    max_segment_size: int = 15000
    concurrency: int = 3
    batch_delay: float = 1.5

    # Rule validators
    rules_path: Path = field(default_factory=lambda: Path(".aico") / "rules.json")
    security_scan: bool = False

    # Repository
    repo_path: Path | None = None

    def __post_init__(self) -> None:
        if not self.model:
            self.model = DEFAULT_MODELS.get(self.provider, "gpt-3.5-turbo")
        if self.max_segment_size < 1:
            raise ConfigError("max_segment_size must be positive")
        if self.concurrency < 1:
            raise ConfigError("concurrency must be at least 1")
        if self.batch_delay < 0:
            raise ConfigError("batch_delay must not be negative")

    @property
    def requires_api_key(self) -> bool:
        return self.provider not in KEYLESS_PROVIDERS

    @property
    def resolved_base_url(self) -> str:
        """Base URL for the provider's OpenAI-compatible API."""
        if self.base_url:
            return self.base_url.rstrip("/")
        try:
            return DEFAULT_BASE_URLS[self.provider]
        except KeyError:
            raise ConfigError(
                f"No base URL known for provider {self.provider!r}; set AICO_BASE_URL"
            ) from None

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        config_path: Path | None = None,
    ) -> "ReviewConfig":
        """Create configuration from environment variables and ~/.aicorc.

        Priority: environment > global config file > defaults.
        """
        env = os.environ if environ is None else environ
        path = config_path or (Path(env["AICO_CONFIG_PATH"]) if env.get("AICO_CONFIG_PATH") else None)
        file_config = load_global_config(path)

        provider = env.get("AICO_PROVIDER") or file_config.get("provider") or "groq"
        providers = file_config.get("providers") or {}
        provider_config = providers.get(provider) or {}

        key_env = API_KEY_ENV.get(provider)
        api_key = (env.get(key_env) if key_env else None) or provider_config.get("apiKey")

        return cls(
            provider=provider,
            api_key=api_key,
            model=env.get("AICO_MODEL") or provider_config.get("model"),
            base_url=env.get("AICO_BASE_URL") or provider_config.get("baseUrl"),
            request_timeout=_float(env, "AICO_REQUEST_TIMEOUT", 60.0),
            max_segment_size=_int(env, "AICO_MAX_SEGMENT_SIZE", 15000),
            concurrency=_int(env, "AICO_CONCURRENCY", 3),
            batch_delay=_float(env, "AICO_BATCH_DELAY", 1.5),
            rules_path=Path(env.get("AICO_RULES_PATH", str(Path(".aico") / "rules.json"))),
            security_scan=_bool(
                env, "AICO_SECURITY_SCAN", bool(file_config.get("securityScan", False))
            ),
        )
