"""
Unit tests for BatchDispatcher.

Uses fake reviewers to observe concurrency, pacing and failure handling.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from aico_review.errors import OracleCallError
from aico_review.review.dispatcher import (
    BatchDispatcher,
    needs_strategy_prompt,
    resolve_strategy,
    select_segments,
)
from aico_review.review.models import ReviewStrategy, Segment


def make_segments(count: int) -> list[Segment]:
    """Segments whose content names their index."""
    return [
        Segment(index=i, content=f"diff --git a/f{i}.py b/f{i}.py\n", files=(f"f{i}.py",))
        for i in range(count)
    ]


def reply_for(content: str) -> str:
    """Oracle reply echoing the file from the segment header."""
    name = content.split(" b/")[1].strip()
    return f"[FILE] {name}\n[ISSUE] issue in {name}\n[SUGGESTION] fix {name}\n"


class ConcurrencyRecorder:
    """Reviewer that records the maximum number of simultaneous calls."""

    def __init__(self, delay: float = 0.01):
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.calls = 0

    async def __call__(self, content: str) -> str:
        self.active += 1
        self.calls += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        return reply_for(content)


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock()


# =============================================================================
# UNIT TESTS: windows
# =============================================================================

class TestWindows:
    """Tests for window grouping."""

    def test_groups_by_concurrency(self):
        windows = BatchDispatcher(concurrency=3).windows(make_segments(7))
        assert [len(w) for w in windows] == [3, 3, 1]

    def test_empty(self):
        assert BatchDispatcher().windows([]) == []

    @pytest.mark.parametrize("bad", [0, -1])
    def test_rejects_bad_concurrency(self, bad):
        with pytest.raises(ValueError):
            BatchDispatcher(concurrency=bad)

    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            BatchDispatcher(batch_delay=-1)


# =============================================================================
# UNIT TESTS: dispatch()
# =============================================================================

class TestDispatch:
    """Tests for concurrent, paced dispatch."""

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_cap(self, no_sleep):
        recorder = ConcurrencyRecorder()
        dispatcher = BatchDispatcher(concurrency=3, sleep=no_sleep)

        await dispatcher.dispatch(make_segments(10), recorder)

        assert recorder.calls == 10
        assert recorder.max_active <= 3
        assert recorder.max_active == 3

    @pytest.mark.asyncio
    async def test_concurrency_of_one_is_sequential(self, no_sleep):
        recorder = ConcurrencyRecorder()
        await BatchDispatcher(concurrency=1, sleep=no_sleep).dispatch(make_segments(4), recorder)

        assert recorder.max_active == 1

    @pytest.mark.asyncio
    async def test_findings_in_window_order(self, no_sleep):
        async def reviewer(content: str) -> str:
            return reply_for(content)

        findings = await BatchDispatcher(concurrency=2, sleep=no_sleep).dispatch(
            make_segments(5), reviewer
        )

        assert [f.file for f in findings] == [f"f{i}.py" for i in range(5)]

    @pytest.mark.asyncio
    async def test_pacing_delay_between_windows_only(self, no_sleep):
        dispatcher = BatchDispatcher(concurrency=2, batch_delay=1.5, sleep=no_sleep)

        await dispatcher.dispatch(make_segments(5), AsyncMock(return_value=""))

        # 3 windows -> 2 pauses
        assert no_sleep.await_count == 2
        no_sleep.assert_awaited_with(1.5)

    @pytest.mark.asyncio
    async def test_no_pause_for_single_window(self, no_sleep):
        dispatcher = BatchDispatcher(concurrency=3, batch_delay=1.5, sleep=no_sleep)

        await dispatcher.dispatch(make_segments(3), AsyncMock(return_value=""))

        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_windows_run_strictly_in_order(self, no_sleep):
        events: list[str] = []

        async def reviewer(content: str) -> str:
            name = content.split(" b/")[1].strip()
            events.append(f"start {name}")
            await asyncio.sleep(0.01 if name == "f0.py" else 0)
            events.append(f"end {name}")
            return ""

        await BatchDispatcher(concurrency=2, sleep=no_sleep).dispatch(make_segments(3), reviewer)

        # f2 (second window) starts only after both f0 and f1 finished
        assert events.index("start f2.py") > events.index("end f0.py")
        assert events.index("start f2.py") > events.index("end f1.py")

    @pytest.mark.asyncio
    async def test_empty_segments(self, no_sleep):
        reviewer = AsyncMock()
        assert await BatchDispatcher(sleep=no_sleep).dispatch([], reviewer) == []
        reviewer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_progress_callback(self, no_sleep):
        seen: list[tuple[int, int]] = []
        await BatchDispatcher(concurrency=2, sleep=no_sleep).dispatch(
            make_segments(3),
            AsyncMock(return_value=""),
            on_batch=lambda batch, total: seen.append((batch, total)),
        )
        assert seen == [(1, 2), (2, 2)]

    @pytest.mark.asyncio
    async def test_malformed_replies_yield_no_findings(self, no_sleep):
        reviewer = AsyncMock(return_value="[FILE] a.py\n[ISSUE] no suggestion")
        findings = await BatchDispatcher(sleep=no_sleep).dispatch(make_segments(2), reviewer)
        assert findings == []


# =============================================================================
# UNIT TESTS: failure handling
# =============================================================================

class TestFailures:
    """A failing window is fatal only when it is the only window."""

    @pytest.mark.asyncio
    async def test_single_window_failure_propagates(self, no_sleep):
        reviewer = AsyncMock(side_effect=RuntimeError("401 Unauthorized"))

        with pytest.raises(OracleCallError) as exc_info:
            await BatchDispatcher(concurrency=3, sleep=no_sleep).dispatch(
                make_segments(2), reviewer
            )

        assert "401 Unauthorized" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_later_windows(self, no_sleep):
        async def reviewer(content: str) -> str:
            name = content.split(" b/")[1].strip()
            if name in ("f0.py", "f1.py"):
                raise ConnectionError("rate limited")
            return reply_for(content)

        findings = await BatchDispatcher(concurrency=2, sleep=no_sleep).dispatch(
            make_segments(4), reviewer
        )

        assert [f.file for f in findings] == ["f2.py", "f3.py"]

    @pytest.mark.asyncio
    async def test_one_failing_call_discards_its_window(self, no_sleep):
        async def reviewer(content: str) -> str:
            if "f1.py" in content:
                raise TimeoutError("slow")
            return reply_for(content)

        findings = await BatchDispatcher(concurrency=2, sleep=no_sleep).dispatch(
            make_segments(4), reviewer
        )

        assert [f.file for f in findings] == ["f2.py", "f3.py"]

    @pytest.mark.asyncio
    async def test_all_windows_failing_returns_empty(self, no_sleep):
        reviewer = AsyncMock(side_effect=RuntimeError("down"))

        findings = await BatchDispatcher(concurrency=1, sleep=no_sleep).dispatch(
            make_segments(3), reviewer
        )

        assert findings == []
        assert reviewer.await_count == 3


# =============================================================================
# UNIT TESTS: large-diff strategy
# =============================================================================

class TestStrategy:
    """Tests for the large-diff review policies."""

    def test_prompt_only_when_interactive_and_large(self):
        assert needs_strategy_prompt(make_segments(6), interactive=True) is True
        assert needs_strategy_prompt(make_segments(5), interactive=True) is False
        assert needs_strategy_prompt(make_segments(20), interactive=False) is False

    def test_select_all(self):
        assert len(select_segments(make_segments(8), ReviewStrategy.ALL)) == 8

    def test_select_top(self):
        selected = select_segments(make_segments(8), ReviewStrategy.TOP)
        assert [s.index for s in selected] == [0, 1, 2, 3, 4]

    def test_select_skip(self):
        assert select_segments(make_segments(8), ReviewStrategy.SKIP) == []

    @pytest.mark.asyncio
    async def test_chooser_consulted_for_large_interactive_diff(self):
        chooser = AsyncMock(return_value=ReviewStrategy.TOP)

        strategy = await resolve_strategy(make_segments(9), True, chooser)

        assert strategy == ReviewStrategy.TOP
        chooser.assert_awaited_once_with(9)

    @pytest.mark.asyncio
    async def test_unattended_assumes_all(self):
        chooser = AsyncMock(return_value=ReviewStrategy.SKIP)

        strategy = await resolve_strategy(make_segments(9), False, chooser)

        assert strategy == ReviewStrategy.ALL
        chooser.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_small_diff_never_prompts(self):
        chooser = AsyncMock(return_value=ReviewStrategy.SKIP)

        assert await resolve_strategy(make_segments(3), True, chooser) == ReviewStrategy.ALL
        chooser.assert_not_awaited()
