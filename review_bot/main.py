"""
Command line entrypoint for the code review bot.

Commands:
    analyze        Analyze a commit, branch, staged changes or explicit files
    setup          Write a configuration file
    stats          Show repository statistics
    install-hooks  Install the git pre-commit hook
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from review_bot import __version__
from review_bot.bot import AnalysisOptions, CodeReviewBot
from review_bot.config import CONFIG_FILENAME, KNOWN_ANALYZERS, OutputFormat, Settings, load_settings
from review_bot.exceptions import ConfigurationError, VCSError
from review_bot.observability.logging import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BLOCKED = 2

FORMAT_CHOICES = [f.value for f in OutputFormat]


def _add_verbose_option(parser: argparse.ArgumentParser, *, suppress_default: bool = False) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Enable debug logging.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="review-bot",
        description="Automated code review for commits, branches and staged changes.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to the JSON config file (defaults to ./{CONFIG_FILENAME}).",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser("analyze", help="Analyze code for issues.")
    _add_verbose_option(analyze_parser, suppress_default=True)
    selection = analyze_parser.add_mutually_exclusive_group()
    selection.add_argument("-c", "--commit", help="Analyze a specific commit.")
    selection.add_argument("-b", "--branch", help="Analyze changes on a branch.")
    selection.add_argument("-s", "--staged", action="store_true", help="Analyze staged changes only.")
    selection.add_argument("--files", nargs="+", metavar="PATH", help="Analyze these files as they are on disk.")
    analyze_parser.add_argument("--base", default=None, help="Base branch for --branch (default: main).")
    analyze_parser.add_argument("-f", "--format", choices=FORMAT_CHOICES, help="Output format.")
    analyze_parser.add_argument("-o", "--output", help="Write the report to this file.")
    analyze_parser.add_argument(
        "--no-snippets",
        dest="snippets",
        action="store_false",
        default=None,
        help="Disable code snippets in output.",
    )

    setup_parser = subparsers.add_parser("setup", help="Create or update the configuration file.")
    _add_verbose_option(setup_parser, suppress_default=True)
    setup_parser.add_argument(
        "--analyzers",
        help=f"Comma-separated analyzers to enable ({', '.join(KNOWN_ANALYZERS)}).",
    )
    blocking = setup_parser.add_mutually_exclusive_group()
    blocking.add_argument("--blocking", dest="blocking", action="store_true", default=None,
                          help="Block commits with critical issues.")
    blocking.add_argument("--no-blocking", dest="blocking", action="store_false",
                          help="Never block commits.")
    setup_parser.add_argument("--format", dest="report_format", choices=FORMAT_CHOICES,
                              help="Default output format.")

    stats_parser = subparsers.add_parser("stats", help="Show repository statistics.")
    _add_verbose_option(stats_parser, suppress_default=True)

    hooks_parser = subparsers.add_parser("install-hooks", help="Install the pre-commit hook.")
    _add_verbose_option(hooks_parser, suppress_default=True)
    hooks_parser.add_argument("--force", action="store_true", help="Replace an existing hook.")

    return parser


def _run_analyze(bot: CodeReviewBot, args: argparse.Namespace) -> int:
    options = AnalysisOptions(
        commit=args.commit,
        branch=args.branch,
        staged=args.staged,
        files=args.files or [],
        base_branch=args.base,
        format=args.format,
        output_file=args.output,
        include_snippets=args.snippets,
    )

    result = asyncio.run(bot.run_analysis(options))

    if result.write_error is not None:
        print(result.write_error.message, file=sys.stderr)
    elif args.output:
        print(f"Report saved to {args.output}")

    # Blocking outranks a failed write so hooks still stop the commit
    if bot.should_block(result):
        print("Critical issues found; commit blocked.", file=sys.stderr)
        return EXIT_BLOCKED
    return EXIT_FAILURE if result.write_error is not None else EXIT_OK


def _prompt(question: str, default: str) -> str:
    answer = input(f"{question} [{default}]: ").strip()
    return answer or default


def _run_setup(bot: CodeReviewBot, args: argparse.Namespace, config_path: Optional[str]) -> int:
    analyzers = args.analyzers
    blocking = args.blocking
    report_format = args.report_format

    # Interactive wizard when no values were given on the command line
    if analyzers is None and blocking is None and report_format is None:
        current = bot.settings
        analyzers = _prompt(
            f"Analyzers to enable ({', '.join(KNOWN_ANALYZERS)})",
            ",".join(current.analysis.enabled_analyzers),
        )
        blocking_answer = _prompt(
            "Block commits with critical issues? (y/n)",
            "y" if current.integrations.precommit.blocking else "n",
        )
        blocking = blocking_answer.lower().startswith("y")
        report_format = _prompt(
            f"Default output format ({'|'.join(FORMAT_CHOICES)})",
            current.output.format.value,
        )

    analyzer_names = None
    if analyzers is not None:
        analyzer_names = [name.strip() for name in analyzers.split(",") if name.strip()]

    try:
        path = bot.setup_configuration(
            analyzers=analyzer_names,
            blocking=blocking,
            report_format=report_format,
            config_path=config_path,
        )
    except ConfigurationError as e:
        print(f"Configuration not saved: {e.message}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"Configuration saved to {path}")
    return EXIT_OK


def _run_stats(bot: CodeReviewBot) -> int:
    try:
        stats = bot.get_stats()
    except VCSError as e:
        print(f"Failed to gather statistics: {e.message}", file=sys.stderr)
        return EXIT_FAILURE

    total_issues = asyncio.run(bot.get_total_issues_count())

    print("📈 Repository Statistics")
    print("─" * 50)
    print(f"Current Branch:  {stats.current_branch}")
    print(f"Total Commits:   {stats.total_commits}")
    print(f"Files Modified:  {stats.modified}")
    print(f"Files Staged:    {stats.staged}")
    print(f"Untracked Files: {stats.untracked}")
    print(f"Issues Found:    {total_issues}")
    return EXIT_OK


def _run_install_hooks(bot: CodeReviewBot, args: argparse.Namespace) -> int:
    if not bot.settings.integrations.precommit.enabled:
        print("Pre-commit integration is disabled (integrations.precommit.enabled)", file=sys.stderr)
        return EXIT_FAILURE

    try:
        hook_path = bot.git.install_pre_commit_hook(force=args.force)
    except VCSError as e:
        print(f"Failed to install hooks: {e.message}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"Pre-commit hook installed at {hook_path}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None, bot: Optional[CodeReviewBot] = None) -> int:
    """
    CLI entrypoint.

    Args:
        argv: Arguments (defaults to ``sys.argv[1:]``)
        bot: Pre-built bot, used instead of one built from loaded settings

    Returns:
        int: Process exit code
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if bot is None:
        try:
            settings: Settings = load_settings(args.config)
        except ConfigurationError as e:
            print(f"Failed to initialize: {e.message}", file=sys.stderr)
            return EXIT_FAILURE
        bot = CodeReviewBot(settings)

    setup_logging(bot.settings, verbose=bool(args.verbose))
    bot.initialize()

    if args.command == "analyze":
        code = _run_analyze(bot, args)
    elif args.command == "setup":
        code = _run_setup(bot, args, args.config)
    elif args.command == "stats":
        code = _run_stats(bot)
    elif args.command == "install-hooks":
        code = _run_install_hooks(bot, args)
    else:  # pragma: no cover - argparse enforces choices
        parser.error(f"Unknown command {args.command}")

    if bot.metrics.enabled:
        logger.debug("Run metrics", extra={"metrics": bot.metrics.get_metric_summary()})
    errors = bot.error_tracker.get_error_summary()
    if errors.get("total_errors"):
        logger.info("Errors captured during run", extra={"errors": errors})

    return code


if __name__ == "__main__":
    sys.exit(main())
