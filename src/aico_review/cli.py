"""
Command-line entry point.

Commands:
- review: interactive review of pending changes (pre-push gatekeeper)
- ci: unattended review with machine-readable output and exit codes
- rules: create or inspect the team rules file
"""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

import structlog

from . import __version__
from .config import ReviewConfig
from .errors import AicoReviewError, ConfigError, GitCommandError, OracleError, ReportWriteError
from .logging_setup import configure_logging
from .review.formatter import ReportFormatter, exit_code, filter_by_severity, save_report
from .review.git_diff import DiffMode
from .review.models import (
    Finding,
    OutputFormat,
    ReportSummary,
    ReviewReport,
    ReviewStrategy,
    Severity,
)
from .review.pipeline import ReviewPipeline, create_review_pipeline
from .rules import initialize_rules, load_rules, summarize_rules

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _ask(prompt: str) -> str:
    try:
        return input(prompt).strip().lower()
    except EOFError:
        return ""


def _err(message: str) -> None:
    print(message, file=sys.stderr)


def _confirm(prompt: str, default: bool = True) -> bool:
    hint = "[Y/n]" if default else "[y/N]"
    answer = _ask(f"{prompt} {hint}: ")
    if not answer:
        return default
    return answer in ("y", "yes")


def choose_strategy(segment_count: int) -> ReviewStrategy:
    """Ask how to handle a large diff."""
    print(f"\nWarning: Giant diff detected ({segment_count} segments).")
    print(f"  1) Review everything (parallel, ~{segment_count * 2}s)")
    print("  2) Review only the first 5 segments (faster)")
    print("  3) Skip review and proceed")

    choices = {
        "1": ReviewStrategy.ALL,
        "all": ReviewStrategy.ALL,
        "2": ReviewStrategy.TOP,
        "top": ReviewStrategy.TOP,
        "3": ReviewStrategy.SKIP,
        "skip": ReviewStrategy.SKIP,
    }
    while True:
        answer = _ask("Choice [1-3]: ")
        if not answer:
            return ReviewStrategy.ALL
        if answer in choices:
            return choices[answer]
        print("  Invalid choice. Enter 1, 2 or 3.")


async def _choose_strategy_async(segment_count: int) -> ReviewStrategy:
    return await asyncio.to_thread(choose_strategy, segment_count)


def _print_progress(batch: int, total: int) -> None:
    if total > 1:
        _err(f"Analyzing changes (Batch {batch}/{total})...")
    else:
        _err("Analyzing your changes...")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aico-review",
        description="Aico AI - Gatekeeper for your code",
    )
    parser.add_argument("--version", action="version", version=f"aico-review {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--repo", type=Path, default=None, help="Path to git repository")

    sub = parser.add_subparsers(dest="command")

    def add_diff_options(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--mode",
            choices=[m.value for m in DiffMode],
            default=DiffMode.STAGED.value,
            help="Which changes to review (default: staged)",
        )
        p.add_argument("--base", default="main", help="Base branch for branch mode")
        p.add_argument("--no-rules", action="store_true", help="Skip team rule validation")
        p.add_argument(
            "--security-scan",
            action="store_true",
            help="Also scan changed files for common vulnerability patterns",
        )

    review = sub.add_parser("review", help="Analyze changes and suggest improvements (default)")
    review.add_argument(
        "-s", "--silent", action="store_true", help="Run without prompts and never block"
    )
    add_diff_options(review)

    ci = sub.add_parser("ci", help="Unattended review for CI pipelines")
    ci.add_argument(
        "--format",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.TEXT.value,
        help="Output encoding",
    )
    ci.add_argument("--output", type=Path, default=None, help="Write the report to this file")
    ci.add_argument("--fail-on-error", action="store_true", help="Exit 1 when errors are found")
    ci.add_argument(
        "--fail-on-warn", action="store_true", help="Exit 1 when warnings or errors are found"
    )
    ci.add_argument(
        "--severity",
        choices=[s.value for s in Severity],
        default=None,
        help="Only consider findings of this severity",
    )
    add_diff_options(ci)

    rules = sub.add_parser("rules", help="Manage team rules")
    rules.add_argument("action", choices=["init", "list"])

    return parser


def _load_config(args: argparse.Namespace) -> ReviewConfig:
    config = ReviewConfig.from_env()
    if args.repo:
        config.repo_path = args.repo
    return config


def _build_pipeline(args: argparse.Namespace, config: ReviewConfig) -> ReviewPipeline:
    return create_review_pipeline(
        config,
        mode=DiffMode(args.mode),
        base_branch=args.base,
        use_rules=not args.no_rules,
        security_scan=True if args.security_scan else None,
    )


def _triage_findings(findings: Sequence[Finding], pipeline: ReviewPipeline) -> bool:
    """Walk findings offering fixes. Returns False when the user aborts."""
    for finding in findings:
        print(f"\nReviewing issue in {finding.file}...")
        print(f"Issue: {finding.message}")

        options = "[s]kip, [a]bort"
        if finding.corrected_content:
            options = "[f]ix, " + options
        answer = _ask(f"What would you like to do? {options}: ")

        if answer in ("f", "fix") and finding.corrected_content and pipeline.diff_provider:
            try:
                pipeline.diff_provider.apply_fix(finding.file, finding.corrected_content)
                print(f"Applied fix to {finding.file}")
            except (OSError, ValueError) as e:
                _err(f"Could not apply fix to {finding.file}: {e}")
        elif answer in ("a", "abort"):
            return False

    return True


async def run_review(args: argparse.Namespace) -> int:
    """Interactive review; exits 0 unless the user aborts or the run fails."""
    interactive = not args.silent
    config = _load_config(args)
    pipeline = _build_pipeline(args, config)

    print("Aico: Analyzing your changes...")
    try:
        report = await pipeline.run(
            interactive=interactive,
            chooser=_choose_strategy_async,
            on_batch=_print_progress,
        )
    finally:
        await pipeline.close()

    if report.segments_total == 0:
        print("No changes found to review.")
        return EXIT_OK

    if report.skipped:
        print("Skipping review. Proceeding with push...")
        return EXIT_OK

    formatter = ReportFormatter()
    print(formatter.format_text(report.findings, report.metadata))

    if not report.findings:
        print("No issues found. Good job!")

    if interactive:
        if report.findings and not _triage_findings(report.findings, pipeline):
            _err("Push aborted by user.")
            return EXIT_FAILURE
        if not _confirm("Would you like to proceed?"):
            _err("Aborted by user.")
            return EXIT_FAILURE
    elif report.findings:
        print("Review completed with issues, but proceeding anyway (Silent Mode).")

    print("Done!")
    return EXIT_OK


def _emit(content: str, output: Path | None) -> None:
    """Persist or print the rendered report, printing as a fallback."""
    if output is None:
        sys.stdout.write(content)
        return

    try:
        save_report(content, output)
        _err(f"Report saved to {output}")
    except ReportWriteError as e:
        _err(f"Error: {e}. Printing report to stdout instead.")
        sys.stdout.write(content)


async def run_ci(args: argparse.Namespace) -> int:
    """Unattended review with deterministic exit codes."""
    config = _load_config(args)
    pipeline = _build_pipeline(args, config)

    try:
        report: ReviewReport = await pipeline.run(interactive=False)
    finally:
        await pipeline.close()

    if report.segments_total == 0:
        _err("No changes found to review.")

    formatter = ReportFormatter()
    rendered = formatter.format(
        report.findings,
        report.metadata,
        OutputFormat(args.format),
        severity_filter=args.severity,
    )
    _emit(rendered, args.output)

    code = exit_code(
        report.findings,
        fail_on_error=args.fail_on_error,
        fail_on_warn=args.fail_on_warn,
        severity_filter=args.severity,
    )
    if code != EXIT_OK:
        summary = ReportSummary.from_findings(filter_by_severity(report.findings, args.severity))
        _err(
            f"Exit status {code}: failure thresholds exceeded "
            f"({summary.errors} error(s), {summary.warnings} warning(s))."
        )
    return code


def run_rules(args: argparse.Namespace) -> int:
    config = _load_config(args)
    base = config.repo_path or Path.cwd()
    path = config.rules_path if config.rules_path.is_absolute() else base / config.rules_path

    if args.action == "init":
        result = initialize_rules(path)
        if result.created:
            print(f"Created team rules at {result.path}")
        else:
            print(f"Team rules already exist at {result.path}")
        return EXIT_OK

    rules = load_rules(path)
    if rules is None:
        print(f"No team rules found at {path}. Run 'aico-review rules init' to create them.")
        return EXIT_OK

    summary = summarize_rules(rules)
    print(f"Team rules v{summary['version']}: {summary['description']}")
    print(f"Total active rules: {summary['totalRules']}")
    for category, count in summary["categories"].items():
        print(f"  {category}: {count}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    argv = list(argv) if argv is not None else sys.argv[1:]
    args = parser.parse_args(argv)

    if args.command is None:
        # Bare invocation behaves like `aico-review review`
        args = parser.parse_args([*argv, "review"])
    command = args.command

    configure_logging(verbose=args.verbose, json_logs=command == "ci")

    try:
        if command == "rules":
            return run_rules(args)
        if command == "ci":
            return asyncio.run(run_ci(args))
        return asyncio.run(run_review(args))
    except KeyboardInterrupt:
        _err("Interrupted.")
        return EXIT_INTERRUPTED
    except ConfigError as e:
        _err(f"Configuration error: {e}")
        return EXIT_FAILURE
    except (OracleError, GitCommandError) as e:
        _err(f"Review failed (hard failure, not a policy decision): {e}")
        return EXIT_FAILURE
    except AicoReviewError as e:
        logger.error("Unexpected review error", error=str(e))
        _err(f"Error during review: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
