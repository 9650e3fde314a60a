"""
Progress Renderer - text progress bars for the analysis phases of a job.

The server reports an ordered list of phase names (Parser, MSM, Analyzer,
...) and the percent complete of the newest one. Each phase gets one line:

    Parser   :##################################################
    MSM      :##################################################
    Analyzer :###############

Output is append-only: text is only ever added at the end of the sink, so
the same renderer works for a terminal, a log file or an editor channel.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from emverify.core.domain.entities import JobSnapshot


# Markers per completed phase
MAX_OUTPUT = 50

MARKER = "#"
LABEL_WIDTH = 9


class TextSink(Protocol):
    """Anything text can be appended to."""

    def append(self, text: str) -> None: ...


@dataclass(frozen=True)
class ProgressState:
    """
    What has been rendered so far for one job.

    Attributes:
        phases: Phase names with a line already opened, in report order.
        emitted: Markers emitted on the open (last) line.
        closed: Whether the open line has been finished.
    """

    phases: tuple[str, ...] = ()
    emitted: int = 0
    closed: bool = False

    @property
    def current(self) -> str | None:
        return self.phases[-1] if self.phases else None


def calculate_progress_diff(percent: float, emitted: int, width: int = MAX_OUTPUT) -> int:
    """
    Markers to add so a line reflects ``percent``, never exceeding ``width``.

    Never negative: a line does not shrink if the server reports less.
    """
    target = int(width * percent // 100)
    return max(0, min(target - emitted, width - emitted))


def phase_label(phase: str) -> str:
    return f"{phase:<{LABEL_WIDTH}}:"


def close_line(emitted: int, num_errors: int, width: int = MAX_OUTPUT) -> str:
    """Pad a line to full width, note the error count, end the line."""
    text = MARKER * max(0, width - emitted)
    if num_errors:
        text += f" *{num_errors}"
    return text + "\n"


def header(width: int = MAX_OUTPUT) -> str:
    """The ruler printed above the phase lines."""
    return "   Start |" + "-" * (width - 1) + ">| End"


def advance(
    state: ProgressState,
    phases: tuple[str, ...] | list[str],
    percent: float,
    num_errors: int,
    width: int = MAX_OUTPUT,
) -> tuple[ProgressState, str]:
    """
    Compute the text to append for one snapshot.

    Args:
        state: What has been rendered so far
        phases: Phase names reported by the server, oldest first
        percent: Percent complete of the newest phase
        num_errors: Errors reported so far
        width: Markers per completed line

    Returns:
        (new state, text to append)
    """
    if not phases or state.closed:
        return state, ""

    # Same phase as last time: extend the open line
    if state.current == phases[-1]:
        delta = calculate_progress_diff(percent, state.emitted, width)
        return ProgressState(state.phases, state.emitted + delta), MARKER * delta

    parts = []
    if state.phases:
        parts.append(close_line(state.emitted, num_errors, width))

    tracked = list(state.phases)
    emitted = 0
    last = len(phases) - 1
    for i, phase in enumerate(phases):
        if i < len(tracked) and tracked[i] == phase:
            continue
        parts.append(phase_label(phase))
        tracked.append(phase)
        if i == last:
            emitted = calculate_progress_diff(percent, 0, width)
            parts.append(MARKER * emitted)
        else:
            # Finished between two polls
            parts.append(MARKER * width + "\n")

    return ProgressState(tuple(tracked), emitted), "".join(parts)


def finish(
    state: ProgressState, num_errors: int, width: int = MAX_OUTPUT
) -> tuple[ProgressState, str]:
    """Close the open line at the end of the job."""
    if not state.phases or state.closed:
        return state, ""
    return (
        ProgressState(state.phases, width, closed=True),
        close_line(state.emitted, num_errors, width),
    )


class ProgressRenderer:
    """
    Stateful wrapper feeding snapshots through ``advance`` into a sink.
    """

    def __init__(self, sink: TextSink | None = None, width: int = MAX_OUTPUT):
        self.sink = sink
        self.width = width
        self.state = ProgressState()

    def reset(self) -> None:
        self.state = ProgressState()

    def header(self) -> str:
        return header(self.width)

    def _emit(self, text: str) -> str:
        if text and self.sink is not None:
            self.sink.append(text)
        return text

    def update(self, snapshot: JobSnapshot) -> str:
        """Render one analysis snapshot and return the appended text."""
        self.state, text = advance(
            self.state,
            snapshot.progress_phases,
            snapshot.progress_percent,
            snapshot.num_of_errors,
            self.width,
        )
        return self._emit(text)

    def finish(self, num_errors: int) -> str:
        self.state, text = finish(self.state, num_errors, self.width)
        return self._emit(text)
