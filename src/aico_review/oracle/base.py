"""Reviewer oracle interface."""

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class ReviewerOracle(Protocol):
    """Anything that can review a chunk of diff text."""

    provider: str
    model: str

    async def review(self, text: str) -> str:
        """Return free-form findings for a diff segment."""
        ...


class CallableOracle:
    """Adapt a plain async function to the ReviewerOracle interface."""

    def __init__(
        self,
        func: Callable[[str], Awaitable[str]],
        provider: str = "custom",
        model: str = "custom",
    ):
        self._func = func
        self.provider = provider
        self.model = model

    async def review(self, text: str) -> str:
        return await self._func(text)
