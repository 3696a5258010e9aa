"""
Diff Segmenter

Splits large diffs into provider-safe segments without ever splitting a
single file's patch across two segments.
"""

import re

import structlog

from .models import Segment

logger = structlog.get_logger(__name__)

# Canonical per-file header emitted by `git diff`
FILE_HEADER = re.compile(r"^diff --git ", re.MULTILINE)
FILE_PATH = re.compile(r"^diff --git a/(.+?) b/(.+)$", re.MULTILINE)

DEFAULT_MAX_SEGMENT_SIZE = 15000


def split_file_patches(diff: str) -> list[str]:
    """
    Split a diff into atomic per-file patches.

    Text before the first header (if any) is folded into the first patch so
    that it never forms a unit of its own. Joining the result always
    reproduces the input exactly.
    """
    if not diff:
        return []

    starts = [m.start() for m in FILE_HEADER.finditer(diff)]
    if not starts:
        return [diff]

    starts[0] = 0

    bounds = starts + [len(diff)]
    return [diff[bounds[i] : bounds[i + 1]] for i in range(len(starts))]


def file_path_of(patch: str) -> str | None:
    """Return the new-side path of a file patch, or None for headerless text."""
    match = FILE_PATH.search(patch)
    if not match:
        return None
    return match.group(2).strip()


class DiffSegmenter:
    """Pack whole file patches into size-bounded segments."""

    def __init__(self, max_size: int = DEFAULT_MAX_SEGMENT_SIZE):
        """
        Initialize segmenter.

        Args:
            max_size: Soft upper bound on segment length in characters
        """
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size

    def segment(self, diff: str, max_size: int | None = None) -> list[Segment]:
        """
        Split a diff into segments.

        Strategy:
        1. Split on file headers (one unit per file)
        2. Greedily pack consecutive units while they fit
        3. A unit larger than the limit becomes its own segment

        Args:
            diff: Full unified diff text
            max_size: Override for this call

        Returns:
            Ordered list of segments; empty for an empty diff
        """
        limit = self.max_size if max_size is None else max_size
        if limit < 1:
            raise ValueError("max_size must be positive")

        if not diff or not diff.strip():
            return []

        segments: list[Segment] = []
        current: list[str] = []
        current_size = 0

        for unit in split_file_patches(diff):
            if current and current_size + len(unit) > limit:
                segments.append(self._seal(len(segments), current, limit))
                current = []
                current_size = 0

            current.append(unit)
            current_size += len(unit)

        if current:
            segments.append(self._seal(len(segments), current, limit))

        oversized = sum(1 for s in segments if s.oversized)
        logger.debug(
            "Segmented diff",
            diff_size=len(diff),
            segments=len(segments),
            oversized=oversized,
            max_size=limit,
        )
        return segments

    def _seal(self, index: int, units: list[str], limit: int) -> Segment:
        """Create a segment from accumulated units."""
        content = "".join(units)
        files = tuple(p for p in (file_path_of(u) for u in units) if p)
        return Segment(
            index=index,
            content=content,
            files=files,
            oversized=len(units) == 1 and len(content) > limit,
        )


def segment(diff: str, max_size: int = DEFAULT_MAX_SEGMENT_SIZE) -> list[Segment]:
    """Convenience wrapper around DiffSegmenter.segment()."""
    return DiffSegmenter(max_size).segment(diff)
