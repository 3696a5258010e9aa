"""
Integration tests for GitDiffProvider.

These tests run real git commands against a temporary repository.
"""

import pytest

from aico_review.errors import GitCommandError
from aico_review.review.git_diff import DiffMode, GitDiffProvider

pytestmark = pytest.mark.integration


DELETED_AND_BINARY_DIFF = """\
diff --git a/kept.py b/kept.py
index 1111111..2222222 100644
--- a/kept.py
+++ b/kept.py
@@ -1 +1,2 @@
 x = 1
+y = 2
diff --git a/gone.py b/gone.py
deleted file mode 100644
index 3333333..0000000
--- a/gone.py
+++ /dev/null
@@ -1 +0,0 @@
-z = 3
diff --git a/logo.png b/logo.png
index 4444444..5555555 100644
Binary files a/logo.png and b/logo.png differ
"""


class TestGetDiff:
    """Tests for diff retrieval in each mode."""

    @pytest.mark.asyncio
    async def test_staged_diff(self, temp_git_repo, git):
        (temp_git_repo / "new_file.py").write_text("def hello():\n    pass\n")
        git(temp_git_repo, "add", "new_file.py")

        diff = await GitDiffProvider(temp_git_repo).get_diff()

        assert "diff --git a/new_file.py b/new_file.py" in diff
        assert "+def hello():" in diff

    @pytest.mark.asyncio
    async def test_nothing_staged_is_empty(self, temp_git_repo):
        (temp_git_repo / "untracked.py").write_text("x = 1\n")

        assert await GitDiffProvider(temp_git_repo).get_diff() == ""

    @pytest.mark.asyncio
    async def test_push_mode_without_upstream_falls_back_to_staged(self, temp_git_repo, git):
        (temp_git_repo / "staged.py").write_text("x = 1\n")
        git(temp_git_repo, "add", "staged.py")

        diff = await GitDiffProvider(temp_git_repo, mode=DiffMode.PUSH).get_diff()

        assert "staged.py" in diff

    @pytest.mark.asyncio
    async def test_branch_mode(self, temp_git_repo, git):
        git(temp_git_repo, "branch", "-M", "main")
        git(temp_git_repo, "checkout", "-b", "feature")
        (temp_git_repo / "feature.py").write_text("FEATURE = True\n")
        git(temp_git_repo, "add", "feature.py")
        git(temp_git_repo, "commit", "-m", "Add feature")

        diff = await GitDiffProvider(
            temp_git_repo, mode=DiffMode.BRANCH, base_branch="main"
        ).get_diff()

        assert "+FEATURE = True" in diff

    @pytest.mark.asyncio
    async def test_unknown_base_branch_is_fatal(self, temp_git_repo):
        provider = GitDiffProvider(temp_git_repo, mode=DiffMode.BRANCH, base_branch="no-such")

        with pytest.raises(GitCommandError):
            await provider.get_diff()


class TestChangedFiles:
    """Tests for listing reviewable files."""

    def test_excludes_deleted_and_binary(self, tmp_path):
        provider = GitDiffProvider(tmp_path)
        assert provider.changed_files(DELETED_AND_BINARY_DIFF) == ["kept.py"]

    def test_empty_diff(self, tmp_path):
        assert GitDiffProvider(tmp_path).changed_files("") == []


class TestReadFile:
    """Tests for reading changed file contents."""

    @pytest.mark.asyncio
    async def test_staged_mode_reads_index_version(self, temp_git_repo, git):
        target = temp_git_repo / "module.py"
        target.write_text("STAGED = 1\n")
        git(temp_git_repo, "add", "module.py")
        target.write_text("WORKING_TREE = 1\n")

        content = await GitDiffProvider(temp_git_repo).read_file("module.py")

        assert content == "STAGED = 1\n"

    @pytest.mark.asyncio
    async def test_branch_mode_reads_working_tree(self, temp_git_repo):
        (temp_git_repo / "module.py").write_text("WORKING_TREE = 1\n")
        provider = GitDiffProvider(temp_git_repo, mode=DiffMode.BRANCH)

        assert await provider.read_file("module.py") == "WORKING_TREE = 1\n"

    @pytest.mark.asyncio
    async def test_missing_file_returns_none(self, temp_git_repo):
        assert await GitDiffProvider(temp_git_repo).read_file("missing.py") is None

    @pytest.mark.asyncio
    async def test_read_files_skips_unreadable(self, temp_git_repo, git):
        (temp_git_repo / "a.py").write_text("A = 1\n")
        git(temp_git_repo, "add", "a.py")

        contents = await GitDiffProvider(temp_git_repo).read_files(["a.py", "missing.py"])

        assert contents == {"a.py": "A = 1\n"}


class TestApplyFix:
    """Tests for writing corrected content back to the working tree."""

    def test_replaces_file(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "app.py").write_text("broken\n")

        written = GitDiffProvider(tmp_path).apply_fix("src/app.py", "fixed\n")

        assert written.read_text() == "fixed\n"
        assert sorted(p.name for p in (tmp_path / "src").iterdir()) == ["app.py"]

    def test_refuses_paths_outside_repo(self, tmp_path):
        repo = tmp_path / "repo"
        repo.mkdir()

        with pytest.raises(ValueError):
            GitDiffProvider(repo).apply_fix("../escape.py", "x")

        assert not (tmp_path / "escape.py").exists()
