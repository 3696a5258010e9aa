"""
Reviewer Oracle Module

Backends that turn a diff segment into free-form review text.
"""

import httpx

from ..config import ReviewConfig
from .base import CallableOracle, ReviewerOracle
from .openai_compat import OpenAICompatibleOracle


def create_oracle(
    config: ReviewConfig,
    http_client: httpx.AsyncClient | None = None,
    prompt_enhancement: str = "",
) -> OpenAICompatibleOracle:
    """Create the oracle for the configured provider."""
    return OpenAICompatibleOracle(
        config,
        http_client=http_client,
        prompt_enhancement=prompt_enhancement,
    )


__all__ = [
    "CallableOracle",
    "OpenAICompatibleOracle",
    "ReviewerOracle",
    "create_oracle",
]
