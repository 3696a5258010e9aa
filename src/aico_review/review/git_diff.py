"""
Git Diff Provider

Fetches the diff of pending changes and the file contents the rule
validator needs.
"""

import asyncio
import os
import re
import tempfile
from enum import Enum
from pathlib import Path

import structlog

from ..errors import GitCommandError
from .segmenter import file_path_of, split_file_patches

logger = structlog.get_logger(__name__)


class DiffMode(str, Enum):
    """What changes to review."""

    STAGED = "staged"  # git diff --cached
    PUSH = "push"  # git diff @{u}..HEAD
    BRANCH = "branch"  # git diff <base>..HEAD


class GitDiffProvider:
    """Read diffs and file contents from a git repository."""

    DELETED_FILE = re.compile(r"^deleted file mode", re.MULTILINE)
    BINARY_FILE = re.compile(r"^Binary files", re.MULTILINE)

    def __init__(
        self,
        repo_path: str | Path | None = None,
        mode: DiffMode = DiffMode.STAGED,
        base_branch: str = "main",
    ):
        """Initialize provider with optional repo path."""
        self.repo_path = Path(repo_path) if repo_path else Path.cwd()
        self.mode = mode
        self.base_branch = base_branch

    async def get_diff(self) -> str:
        """
        Get the full diff for the configured mode.

        Returns an empty string when there are no changes.
        """
        if self.mode == DiffMode.PUSH:
            try:
                return await self._run_git(["diff", "@{u}..HEAD"])
            except GitCommandError:
                logger.warning("No upstream branch found, falling back to staged changes")
                return await self._run_git(["diff", "--cached"])

        if self.mode == DiffMode.BRANCH:
            return await self._run_git(["diff", f"{self.base_branch}..HEAD"])

        return await self._run_git(["diff", "--cached"])

    def changed_files(self, diff: str) -> list[str]:
        """List paths touched by a diff, excluding deleted and binary files."""
        files: list[str] = []
        for patch in split_file_patches(diff):
            path = file_path_of(patch)
            if not path:
                continue
            if self.DELETED_FILE.search(patch) or self.BINARY_FILE.search(patch):
                continue
            if path not in files:
                files.append(path)
        return files

    async def read_file(self, path: str) -> str | None:
        """
        Read the content of a changed file.

        Staged reviews read the index version; other modes read the working tree.
        Returns None when the file cannot be read.
        """
        if self.mode == DiffMode.STAGED:
            try:
                return await self._run_git(["show", f":{path}"])
            except GitCommandError as e:
                logger.debug("Could not read staged file", path=path, error=str(e))
                return None

        try:
            return (self.repo_path / path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Could not read file", path=path, error=str(e))
            return None

    async def read_files(self, paths: list[str]) -> dict[str, str]:
        """Read several files, skipping unreadable ones."""
        contents: dict[str, str] = {}
        for path in paths:
            content = await self.read_file(path)
            if content is not None:
                contents[path] = content
        return contents

    def apply_fix(self, path: str, corrected_content: str) -> Path:
        """
        Replace a working-tree file with corrected content.

        The write is atomic: a temp file in the same directory is renamed
        over the target.
        """
        target = (self.repo_path / path).resolve()
        if self.repo_path.resolve() not in target.parents:
            raise ValueError(f"Refusing to write outside the repository: {path}")

        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(corrected_content)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Applied fix", path=path)
        return target

    async def _run_git(self, args: list[str]) -> str:
        """Run git command and return output."""
        cmd = ["git", "-C", str(self.repo_path)] + args

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        stdout, stderr = await proc.communicate()

        if proc.returncode != 0:
            error_msg = stderr.decode(errors="replace").strip()
            # Don't raise for empty diffs
            if "fatal" not in error_msg.lower():
                return ""
            raise GitCommandError(f"Git command failed: {error_msg}")

        return stdout.decode(errors="replace")
