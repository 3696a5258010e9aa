"""
OpenAI-compatible reviewer oracle.

Talks to any chat-completions endpoint (Groq, OpenAI, DeepSeek, Ollama)
over a shared `httpx.AsyncClient`.
"""

from typing import Any

import httpx
import structlog

from ..config import ReviewConfig
from ..errors import ConfigError, OracleError
from .prompts import build_system_prompt, build_user_prompt

logger = structlog.get_logger(__name__)

NO_FEEDBACK = "No feedback provided."


def normalize_base_url(base_url: str, provider: str) -> str:
    """Ollama's native URL lacks the /v1 suffix its compat API needs."""
    normalized = base_url.rstrip("/")
    if provider == "ollama" and not normalized.endswith("/v1"):
        return f"{normalized}/v1"
    return normalized


class OpenAICompatibleOracle:
    """Reviewer oracle backed by an OpenAI-compatible chat API."""

    def __init__(
        self,
        config: ReviewConfig,
        http_client: httpx.AsyncClient | None = None,
        prompt_enhancement: str = "",
    ):
        """
        Initialize the oracle.

        Args:
            config: Review configuration (provider, key, model, base URL)
            http_client: Shared client; one is created (and owned) if omitted
            prompt_enhancement: Team rules appended to the system prompt

        Raises:
            ConfigError: Provider needs an API key and none is configured
        """
        if config.requires_api_key and not config.api_key:
            raise ConfigError(
                f"API key for {config.provider} is not set. "
                f"Set it in the environment or in ~/.aicorc."
            )

        self.provider = config.provider
        self.model = config.model or ""
        self._api_key = config.api_key
        self._base_url = normalize_base_url(config.resolved_base_url, config.provider)
        self._system_prompt = build_system_prompt(prompt_enhancement)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.request_timeout)

    async def __aenter__(self) -> "OpenAICompatibleOracle":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this oracle created it."""
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def review(self, text: str) -> str:
        """
        Ask the model to review one diff segment.

        Raises:
            OracleError: Transport failure, non-2xx reply or malformed payload
        """
        if not text or not text.strip():
            raise OracleError("No diff provided for review.")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": build_user_prompt(text)},
            ],
        }

        logger.debug("Oracle request", provider=self.provider, model=self.model, chars=len(text))

        try:
            response = await self._client.post(
                f"{self._base_url}/chat/completions",
                json=payload,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            logger.error("Oracle HTTP error", provider=self.provider, error=str(e))
            raise OracleError(f"{self.provider} request failed: {e}") from e

        if response.is_error:
            message = self._error_message(response)
            logger.error(
                "Oracle API error",
                provider=self.provider,
                status=response.status_code,
                error=message,
            )
            raise OracleError(f"{self.provider} API error ({response.status_code}): {message}")

        try:
            data = response.json()
        except ValueError as e:
            raise OracleError(f"{self.provider} returned invalid JSON") from e

        content = self._extract_content(data)
        logger.debug("Oracle response", provider=self.provider, chars=len(content))
        return content

    def _extract_content(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return NO_FEEDBACK
        return content or NO_FEEDBACK

    def _error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or "AI API Error"
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str):
                return error
        return "AI API Error"
