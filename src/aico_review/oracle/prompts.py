"""Prompt text sent to the reviewer oracle."""

REVIEW_SYSTEM_PROMPT = """
You are a senior code reviewer. Analyze the git diff and identify potential bugs, security issues, or performance bottlenecks.
For each issue, provide:
1. File: The filename.
2. Severity: error, warn or info.
3. Line: The line number in the new file, if known.
4. Issue: A concise description of the problem.
5. Suggestion: How to fix it.
6. CorrectedCode: The FULL corrected content of the file. This is CRITICAL.

Format your response as a list of issues. Use the following markers:
[FILE] filename
[SEVERITY] error|warn|info
[LINE] line number
[ISSUE] description
[SUGGESTION] how to fix
[CORRECTED_CODE]
```
full file content here
```
"""


def build_system_prompt(enhancement: str = "") -> str:
    """System prompt with optional team-specific rules appended."""
    return REVIEW_SYSTEM_PROMPT + enhancement


def build_user_prompt(diff: str) -> str:
    return f"Review this diff:\n\n{diff}"
