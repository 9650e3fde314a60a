"""
CLI Application - Command line interface for emverify.

Modes:
  --record / --record-deletion   note edited or deleted files
  --pending                      list what the next sync will push
  --sync                         push recorded changes to the shadow branch
  --verify FILE                  sync, then run a verifier command remotely
  --lint FILE                    sync the file, then lint it
  --format FILE                  sync the file, then format it
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from emverify import __version__
from emverify.adapters import (
    EnvironmentConfigProvider,
    GitHubAdapter,
    JobServerClient,
    LocalWorkspace,
)
from emverify.application import (
    ChangeTracker,
    DiagnosticsReporter,
    SyncEngine,
    VerificationSession,
)
from emverify.core.domain.enums import VerifierCommand
from emverify.core.exceptions import ConfigFileError, EmverifyError, ServerJobError
from emverify.core.ports.config_provider import AppConfig

from .exit_codes import ExitCode
from .logging import setup_logging
from .output import Console


def create_parser() -> argparse.ArgumentParser:
    """
    Create the command-line argument parser for emverify.

    Returns:
        Configured ArgumentParser instance.
    """
    commands = ", ".join(c.value for c in VerifierCommand)
    parser = argparse.ArgumentParser(
        prog="emverify",
        description="Mirror a workspace to a shadow branch and verify files remotely",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Note an edited file (e.g., from an editor save hook)
  emverify --record src/article.miz

  # Show what the next sync will push
  emverify --pending

  # Verify a file (syncs recorded changes first)
  emverify --verify src/article.miz

  # Find irrelevant theorems instead
  emverify --verify src/article.miz --command irrths

  # Format a file in place, or print the result
  emverify --format src/article.miz
  emverify --format src/article.miz --stdout

Commands for --command: {commands}
        """,
    )

    modes = parser.add_mutually_exclusive_group(required=True)
    modes.add_argument(
        "--record", nargs="+", metavar="PATH", help="Record created or modified files"
    )
    modes.add_argument(
        "--record-deletion", nargs="+", metavar="PATH", help="Record deleted files"
    )
    modes.add_argument(
        "--pending", action="store_true", help="List recorded changes not yet synced"
    )
    modes.add_argument(
        "--sync", action="store_true", help="Push recorded changes to the shadow branch"
    )
    modes.add_argument("--verify", metavar="FILE", help="Sync, then run a command on FILE")
    modes.add_argument("--lint", metavar="FILE", help="Sync FILE, then lint it")
    modes.add_argument("--format", metavar="FILE", help="Sync FILE, then format it")
    modes.add_argument("--version", action="version", version=f"emverify {__version__}")

    parser.add_argument(
        "--command",
        "-c",
        default="verifier",
        help="Command to run with --verify (default: verifier)",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="With --format, print the result instead of writing the file",
    )

    # Configuration
    parser.add_argument("--config", metavar="FILE", help="Config file (.yaml, .toml)")
    parser.add_argument("--workspace", "-w", metavar="DIR", help="Workspace root")
    parser.add_argument("--repository", metavar="OWNER/REPO", help="Repository to sync to")
    parser.add_argument("--branch", help="Shadow branch name (default: verifier)")
    parser.add_argument("--server-url", metavar="URL", help="Job server base URL")
    parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be synced without writing"
    )

    # Output
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only print errors")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log format (default: text)",
    )
    parser.add_argument("--log-file", metavar="FILE", help="Also write logs to FILE")

    return parser


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Configuration values given on the command line."""
    return {
        "workspace": args.workspace,
        "repository": args.repository,
        "branch": args.branch,
        "server_url": args.server_url,
        "dry_run": True if args.dry_run else None,
    }


def load_config(args: argparse.Namespace) -> tuple[EnvironmentConfigProvider, AppConfig]:
    """
    Load configuration from all sources.

    Raises:
        ConfigFileError: If an explicit --config file does not exist.
    """
    config_file = Path(args.config) if args.config else None
    if config_file is not None and not config_file.is_file():
        raise ConfigFileError(str(config_file), "config file not found")

    provider = EnvironmentConfigProvider(config_file=config_file, cli_overrides=cli_overrides(args))
    return provider, provider.load()


# -------------------------------------------------------------------------
# Local modes
# -------------------------------------------------------------------------


def run_record(console: Console, args: argparse.Namespace, config: AppConfig) -> int:
    """Record changed or deleted files for the next sync."""
    tracker = ChangeTracker(config.state_file)
    if args.record:
        for path in args.record:
            tracker.record_change(path)
        console.success(f"Recorded {len(args.record)} changed file(s)")
    else:
        for path in args.record_deletion:
            tracker.record_deletion(path)
        console.success(f"Recorded {len(args.record_deletion)} deleted file(s)")
    console.detail(f"{len(tracker)} change(s) pending")
    return ExitCode.SUCCESS


def run_pending(console: Console, config: AppConfig) -> int:
    """List recorded changes."""
    tracker = ChangeTracker(config.state_file)
    if not len(tracker):
        console.info("No pending changes")
        return ExitCode.SUCCESS

    console.section(f"Pending changes ({len(tracker)})")
    for path in tracker:
        marker = "M" if Path(path).exists() else "D"
        console.print(f"  {marker} {path}", force=True)
    return ExitCode.SUCCESS


# -------------------------------------------------------------------------
# Remote modes
# -------------------------------------------------------------------------


def run_sync(console: Console, provider: EnvironmentConfigProvider, config: AppConfig) -> int:
    """Push recorded changes to the shadow branch."""
    errors = provider.validate()
    if errors:
        console.config_errors(errors)
        return ExitCode.CONFIG_ERROR

    if config.sync.dry_run:
        console.dry_run_banner()

    host = GitHubAdapter(config.github)
    try:
        engine = SyncEngine(host, LocalWorkspace(config.workspace_root), config.sync)
        result = engine.sync_tracked(ChangeTracker(config.state_file))
    finally:
        host.close()

    console.sync_result(result)
    for path in result.skipped:
        console.warning(f"Skipped {path}: outside workspace")
    return ExitCode.SUCCESS


def build_session(config: AppConfig, console: Console) -> VerificationSession:
    """Wire a session to GitHub, the job server and the console."""
    reporter = DiagnosticsReporter(on_update=console.diagnostics)
    return VerificationSession(
        config,
        host=GitHubAdapter(config.github),
        server=JobServerClient(config.job_server),
        sink=console,
        reporter=reporter,
    )


async def _verify(session: VerificationSession, console: Console, args: argparse.Namespace) -> int:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.cancel)
        handles_sigint = True
    except (NotImplementedError, RuntimeError):
        # Not available on this platform; Ctrl+C raises KeyboardInterrupt
        handles_sigint = False

    try:
        outcome = await session.verify(args.verify, args.command)
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)
        await session.close()

    console.job_outcome(outcome)
    if outcome.cancelled:
        return ExitCode.CANCELLED
    try:
        outcome.raise_for_failure()
    except ServerJobError as e:
        return ExitCode.from_exception(e)
    return ExitCode.SUCCESS


async def _lint(session: VerificationSession, console: Console, path: str) -> int:
    try:
        diagnostics = await session.lint(path)
    finally:
        await session.close()

    if not diagnostics:
        console.success("No errors detected.")
    return ExitCode.SUCCESS


async def _format(session: VerificationSession, console: Console, args: argparse.Namespace) -> int:
    try:
        formatted = await session.format(args.format, write=not args.stdout)
    finally:
        await session.close()

    if args.stdout:
        sys.stdout.write(formatted)
    else:
        console.success(f"Formatted {args.format}")
    return ExitCode.SUCCESS


def run_remote(
    console: Console,
    args: argparse.Namespace,
    provider: EnvironmentConfigProvider,
    config: AppConfig,
) -> int:
    """Run --verify, --lint or --format."""
    errors = provider.validate()
    if errors:
        console.config_errors(errors)
        return ExitCode.CONFIG_ERROR

    if config.sync.dry_run:
        console.warning("--dry-run only applies to --sync; the job server needs synced files")
        config.sync.dry_run = False

    session = build_session(config, console)
    if args.verify:
        return asyncio.run(_verify(session, console, args))
    if args.lint:
        return asyncio.run(_lint(session, console, args.lint))
    return asyncio.run(_format(session, console, args))


def dispatch(args: argparse.Namespace, console: Console) -> int:
    """Dispatch to the selected mode."""
    provider, config = load_config(args)
    logging.getLogger("emverify.cli").debug(f"Configuration from {provider.name}")

    if args.record or args.record_deletion:
        return run_record(console, args, config)
    if args.pending:
        return run_pending(console, config)
    if args.sync:
        return run_sync(console, provider, config)
    return run_remote(console, args, provider, config)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the emverify CLI.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.WARNING
    setup_logging(level=log_level, log_format=args.log_format, log_file=args.log_file)

    console = Console(color=not args.no_color, verbose=args.verbose, quiet=args.quiet)

    try:
        return dispatch(args, console)

    except KeyboardInterrupt:
        console.print()
        console.warning("Interrupted by user")
        return ExitCode.SIGINT

    except EmverifyError as e:
        console.error(str(e))
        return ExitCode.from_exception(e)

    except Exception as e:
        console.error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        return ExitCode.from_exception(e)


def run() -> None:
    """
    Entry point for the console script.

    Calls main() and exits with its return code.
    """
    sys.exit(main())


if __name__ == "__main__":
    run()
