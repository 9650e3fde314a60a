"""
Output - Console output formatting.

Provides pretty-printed output with colors and formatting, and acts as the
append-only sink job progress is streamed to.
"""

import sys
from typing import TextIO

from emverify.application.sync import SyncResult
from emverify.core.domain.entities import Diagnostic, JobOutcome
from emverify.core.domain.enums import DiagnosticSeverity, JobState


class Colors:
    """
    ANSI color codes for terminal output.

    Attributes:
        RESET: Reset all formatting to default.
        BOLD: Make text bold.
        DIM: Make text dimmed/faded.
        RED: Red text color.
        GREEN: Green text color.
        YELLOW: Yellow text color.
        BLUE: Blue text color.
        CYAN: Cyan text color.
        BG_YELLOW: Yellow background color.
    """

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"

    BG_YELLOW = "\033[43m"


class Symbols:
    """Unicode symbols for terminal output."""

    CHECK = "✓"
    CROSS = "✗"
    ARROW = "→"
    DOT = "•"
    WARN = "⚠"
    INFO = "ℹ"
    GEAR = "⚙"

    BOX_H = "─"


# Colors per diagnostic severity
_SEVERITY_COLORS = {
    DiagnosticSeverity.ERROR: Colors.RED,
    DiagnosticSeverity.WARNING: Colors.YELLOW,
    DiagnosticSeverity.INFORMATION: Colors.CYAN,
    DiagnosticSeverity.HINT: Colors.DIM,
}


class Console:
    """
    Console output helper with colors and formatting.

    Attributes:
        color: Whether to use ANSI color codes.
        verbose: Whether to print debug messages.
        quiet: Whether to suppress most output (for CI/scripting).
    """

    def __init__(
        self,
        color: bool = True,
        verbose: bool = False,
        quiet: bool = False,
        stream: TextIO | None = None,
    ):
        """
        Initialize the console output helper.

        Args:
            color: Enable colored output. Automatically disabled if stdout is not a TTY.
            verbose: Enable verbose debug output.
            quiet: Suppress most output, only show errors and final summary.
            stream: Where to write (default: stdout)
        """
        self.stream = stream or sys.stdout
        self.color = color and self.stream.isatty()
        self.verbose = verbose
        self.quiet = quiet

        # Quiet mode overrides verbose
        if self.quiet:
            self.verbose = False

    def _c(self, text: str, *codes: str) -> str:
        """Apply color codes to text, or return it unchanged if color is off."""
        if not self.color:
            return text
        return "".join(codes) + text + Colors.RESET

    def print(self, text: str = "", force: bool = False) -> None:
        """
        Print a line.

        Args:
            text: Text to print. Defaults to empty string for blank line.
            force: Print even in quiet mode.
        """
        if self.quiet and not force:
            return
        print(text, file=self.stream)

    def append(self, text: str) -> None:
        """
        Append raw text with no added newline.

        This is the sink job progress is written to, so partial lines
        (a run of progress markers) show up as they arrive.
        """
        if self.quiet:
            return
        self.stream.write(text)
        self.stream.flush()

    def header(self, text: str) -> None:
        """Print a prominent header with borders."""
        if self.quiet:
            return
        width = max(len(text) + 4, 50)
        border = Colors.CYAN + Symbols.BOX_H * width + Colors.RESET if self.color else "-" * width

        self.print()
        self.print(border)
        self.print(self._c(f"  {text}", Colors.BOLD, Colors.CYAN))
        self.print(border)
        self.print()

    def section(self, text: str) -> None:
        """Print a section header."""
        if self.quiet:
            return
        self.print()
        self.print(self._c(f"{Symbols.ARROW} {text}", Colors.BOLD, Colors.BLUE))

    def success(self, text: str) -> None:
        """Print a success message with checkmark."""
        if self.quiet:
            return
        self.print(self._c(f"  {Symbols.CHECK} {text}", Colors.GREEN))

    def error(self, text: str) -> None:
        """
        Print an error message with cross symbol.

        Always prints, even in quiet mode.
        """
        print(self._c(f"  {Symbols.CROSS} {text}", Colors.RED), file=self.stream)

    def config_errors(self, errors: list[str]) -> None:
        """Print configuration errors with a pointer to the config sources."""
        self.error("Configuration errors:")
        for error in errors:
            print(self._c(f"    {Symbols.DOT} {error}", Colors.RED), file=self.stream)
        print(
            "    Configure via .emverify.yaml, environment variables or a .env file.",
            file=self.stream,
        )

    def warning(self, text: str) -> None:
        """Print a warning message with warning symbol."""
        if self.quiet:
            return
        self.print(self._c(f"  {Symbols.WARN} {text}", Colors.YELLOW))

    def info(self, text: str) -> None:
        """Print an info message with info symbol."""
        if self.quiet:
            return
        self.print(self._c(f"  {Symbols.INFO} {text}", Colors.CYAN))

    def detail(self, text: str) -> None:
        """Print detail text in dimmed color with extra indentation."""
        if self.quiet:
            return
        self.print(self._c(f"    {text}", Colors.DIM))

    def debug(self, text: str) -> None:
        """Print debug message (only visible in verbose mode)."""
        if self.verbose:
            self.print(self._c(f"  [DEBUG] {text}", Colors.DIM))

    def dry_run_banner(self) -> None:
        """Print a prominent dry-run mode banner."""
        if self.quiet:
            return
        self.print()
        banner = f"  {Symbols.GEAR} DRY-RUN MODE - No changes will be made"
        if self.color:
            self.print(f"{Colors.BG_YELLOW}{Colors.BOLD}{banner}{Colors.RESET}")
        else:
            self.print(f"*** {banner} ***")
        self.print()

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    def sync_result(self, result: SyncResult) -> None:
        """
        Print a sync result.

        In quiet mode, prints a single line suitable for CI/scripting.
        """
        if self.quiet:
            mode = "dry-run" if result.dry_run else "executed"
            parts = [
                f"mode={mode}",
                f"branch={result.branch}",
                f"uploaded={len(result.uploaded)}",
                f"unchanged={len(result.unchanged)}",
                f"deleted={len(result.deleted)}",
            ]
            if result.commit_sha:
                parts.append(f"commit={result.commit_sha}")
            print(" ".join(parts), file=self.stream)
            return

        self.section("Sync Complete")
        for line in result.summary().splitlines():
            self.print(f"  {line}")
        if self.verbose:
            for path in result.uploaded:
                self.detail(f"+ {path}")
            for path in result.deleted:
                self.detail(f"- {path}")

    def diagnostic(self, document: str, diagnostic: Diagnostic) -> None:
        """Print one diagnostic as ``path:line:col: severity: message``."""
        color = _SEVERITY_COLORS.get(diagnostic.severity, Colors.RESET)
        print(self._c(diagnostic.format(document), color), file=self.stream)

    def diagnostics(self, document: str, diagnostics: list[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.diagnostic(document, diagnostic)

    def job_outcome(self, outcome: JobOutcome) -> None:
        """Print the final status line of a job."""
        if outcome.state is JobState.SUCCEEDED:
            self.success(str(outcome))
        elif outcome.state is JobState.CANCELLED:
            self.warning(str(outcome))
        else:
            self.error(str(outcome))
