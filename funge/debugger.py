"""
Textual TUI debugger for the funge machine.

Tick-stepping debugger that loads a program, runs it on the machine, and
repaints the program space, pointer, stack and output after every step.
The app only ever drives the machine through ProgramRunner.step(), i.e.
run_for(1), and draws from the snapshot the machine publishes.

Usage:
    python -m funge.debugger examples/hello.bf
    python -m funge.debugger --run --fps 60 examples/countdown.bf
    python -m funge --debug examples/hello.bf
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import ScrollableContainer
from textual.timer import Timer
from textual.widgets import Static, Footer
from textual import work
from textual.worker import Worker, WorkerState, get_current_worker

from funge.code import decode
from funge.machine import MachineState, FungeError, FOREVER
from funge.runner import INPUT_HELP, ProgramRunner, debugger_input, load_file
from funge.space import DIRECTION_NAMES, DIRECTION_ARROWS, cell_char


# ---------------------------------------------------------------------------
# Rendering helpers (pure: snapshot in, rich Text out)
# ---------------------------------------------------------------------------

def render_grid(state: MachineState,
                breakpoints: set[tuple[int, int]] | None = None) -> Text:
    """Program space with the pointer cell reversed and breakpoints in red."""
    breakpoints = breakpoints or set()
    px, py = state.location
    text = Text()
    for y, row in enumerate(state.cells):
        for x, value in enumerate(row):
            ch = cell_char(value)
            if (x, y) == (px, py):
                text.append(ch, style="bold reverse")
            elif (x, y) in breakpoints:
                text.append(ch, style="bold red")
            else:
                text.append(ch)
        if y < state.height - 1:
            text.append("\n")
    return text


def render_stack(state: MachineState, limit: int = 64) -> Text:
    """Stack top-down, value plus its character when printable."""
    if not state.stack:
        return Text("(empty)")
    lines = []
    depth = len(state.stack)
    for i in range(depth - 1, max(depth - 1 - limit, -1), -1):
        value = state.stack[i]
        ch = cell_char(value)
        lines.append(f"[{i:3d}] {value:>20d}  {ch}")
    if depth > limit:
        lines.append(f"... {depth - limit} more")
    return Text("\n".join(lines))


def render_state(state: MachineState, counted: int, phase: str) -> Text:
    x, y = state.location
    cell = state.cells[y][x]
    ins = decode(cell, state.string_mode)
    arrow = DIRECTION_ARROWS.get(state.delta, "?")
    direction = DIRECTION_NAMES.get(state.delta, f"?({state.delta})")
    text = Text()
    text.append("Pointer: ", style="bold")
    text.append(f"({x}, {y})  ")
    text.append("Delta: ", style="bold")
    text.append(f"{direction} {arrow}\n")
    text.append("Cell: ", style="bold")
    text.append(f"{cell} {cell_char(cell)!r} → {ins}\n")
    text.append("String mode: ", style="bold")
    text.append(f"{'on' if state.string_mode else 'off'}  ")
    text.append("Space: ", style="bold")
    text.append(f"{state.width}x{state.height}\n")
    text.append("Cycles: ", style="bold")
    text.append(f"{state.ticks}  ")
    text.append("Counted: ", style="bold")
    text.append(f"{counted}\n")
    text.append("Phase: ", style="bold")
    text.append("stopped" if state.stopped else phase)
    return text


# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------

DEBUGGER_CSS = """
Screen {
    layout: grid;
    grid-size: 2 3;
    grid-columns: 2fr 1fr;
    grid-rows: 2fr 1fr auto;
}

.panel {
    border: solid $accent;
    border-title-align: left;
    overflow-y: auto;
    height: 100%;
}

#space-panel  { column-span: 1; }
#stack-panel  { column-span: 1; }
#state-panel  { column-span: 1; }
#output-panel { column-span: 1; }

Footer {
    column-span: 2;
}
"""


# ---------------------------------------------------------------------------
# Panel widgets
# ---------------------------------------------------------------------------

class SpacePanel(ScrollableContainer):
    """Program space with the instruction pointer highlighted."""
    BORDER_TITLE = "Space"

    def compose(self) -> ComposeResult:
        yield Static("", id="space-content")


class StackPanel(ScrollableContainer):
    """Stack contents, top-down."""
    BORDER_TITLE = "Stack"

    def compose(self) -> ComposeResult:
        yield Static("", id="stack-content")


class StatePanel(ScrollableContainer):
    """Pointer, direction, mode, counters."""
    BORDER_TITLE = "Machine State"

    def compose(self) -> ComposeResult:
        yield Static("", id="state-content")


class OutputPanel(ScrollableContainer):
    """Accumulated program output."""
    BORDER_TITLE = "Output"

    def compose(self) -> ComposeResult:
        yield Static("", id="output-content")


# ---------------------------------------------------------------------------
# Main debugger app
# ---------------------------------------------------------------------------

class FungeDebugger(App):
    """Textual TUI debugger for the funge machine."""

    CSS = DEBUGGER_CSS
    TITLE = "Funge Debugger"

    BINDINGS = [
        Binding("s", "step_1", "Step"),
        Binding("space", "step_1", "Step", show=False),
        Binding("n", "step_10", "x10"),
        Binding("f", "step_100", "x100"),
        Binding("p", "toggle_play", "Play/Pause"),
        Binding("r", "run_to_end", "Run"),
        Binding("b", "toggle_breakpoint", "Break"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, runner: ProgramRunner, fps: float = 20.0,
                 auto_run: bool = False, tick_limit: int = FOREVER):
        super().__init__()
        self.runner = runner
        self.fps = fps
        self.auto_run = auto_run
        self.tick_limit = tick_limit
        self.breakpoints: set[tuple[int, int]] = set()
        self._errors: list[str] = []
        self._play_timer: Timer | None = None
        self._playing = False
        self._running_worker: Worker | None = None

    @property
    def _busy(self) -> bool:
        """True while the run-to-end worker owns the machine."""
        return self._running_worker is not None

    def compose(self) -> ComposeResult:
        yield SpacePanel(id="space-panel", classes="panel")
        yield StackPanel(id="stack-panel", classes="panel")
        yield StatePanel(id="state-panel", classes="panel")
        yield OutputPanel(id="output-panel", classes="panel")
        yield Footer()

    def on_mount(self) -> None:
        self._play_timer = self.set_interval(
            1.0 / self.fps, self._play_frame, pause=True)
        self.refresh_panels()
        if self.auto_run:
            self.action_toggle_play()

    # -------------------------------------------------------------------
    # Panel refresh
    # -------------------------------------------------------------------

    def refresh_panels(self) -> None:
        state = self.runner.last_state
        self.query_one("#space-content", Static).update(
            render_grid(state, self.breakpoints))
        self.query_one("#stack-content", Static).update(render_stack(state))
        self.query_one("#state-content", Static).update(
            render_state(state, self.runner.counted_ticks, self.runner.phase))
        self._refresh_output()

    def _refresh_output(self) -> None:
        text = Text(self.runner.output_text())
        for line in self._errors:
            text.append(f"\n[ERROR] {line}", style="bold red")
        self.query_one("#output-content", Static).update(text)

    # -------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------

    def _report_error(self, err: Exception) -> None:
        """Show an error in the output panel and stop playback."""
        self._pause()
        self._errors.append(str(err))
        self.refresh_panels()

    def _limit_reached(self) -> bool:
        return (self.tick_limit != FOREVER
                and self.runner.counted_ticks >= self.tick_limit)

    def _do_steps(self, count: int) -> None:
        if self._busy:
            return
        if self._limit_reached():
            count = 0
        elif self.tick_limit != FOREVER:
            count = min(count, self.tick_limit - self.runner.counted_ticks)
        try:
            for _ in range(count):
                if not self.runner.step(1):
                    break
                if self.runner.last_state.location in self.breakpoints:
                    self._pause()
                    break
        except FungeError as e:
            self._report_error(e)
            return
        if self.runner.done or self._limit_reached():
            self._pause()
        self.refresh_panels()

    def _play_frame(self) -> None:
        self._do_steps(1)

    def _pause(self) -> None:
        self._playing = False
        if self._play_timer is not None:
            self._play_timer.pause()

    def action_step_1(self) -> None:
        self._do_steps(1)

    def action_step_10(self) -> None:
        self._do_steps(10)

    def action_step_100(self) -> None:
        self._do_steps(100)

    def action_toggle_play(self) -> None:
        if self._playing:
            self._pause()
        elif not self.runner.done and self._play_timer is not None:
            self._playing = True
            self._play_timer.resume()

    def action_toggle_breakpoint(self) -> None:
        loc = self.runner.last_state.location
        if loc in self.breakpoints:
            self.breakpoints.discard(loc)
        else:
            self.breakpoints.add(loc)
        self.refresh_panels()

    def action_run_to_end(self) -> None:
        if self._running_worker is not None or self.runner.done:
            return
        self._pause()
        self._running_worker = self._run_to_end()

    @work(thread=True, name="run-to-end")
    def _run_to_end(self) -> None:
        """Run until '@', a breakpoint or the tick limit, off the UI thread."""
        worker = get_current_worker()
        tick = 0
        try:
            while not worker.is_cancelled and not self._limit_reached():
                if not self.runner.step(1):
                    break
                tick += 1
                if self.runner.last_state.location in self.breakpoints:
                    break
                if tick % 500 == 0:
                    self.call_from_thread(self.refresh_panels)
        except FungeError as e:
            self.call_from_thread(self._report_error, e)

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        # the machine is released only once the worker has left the running state
        if event.worker is not self._running_worker:
            return
        if event.state in (WorkerState.SUCCESS, WorkerState.ERROR,
                           WorkerState.CANCELLED):
            self._running_worker = None
            self.refresh_panels()


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="Funge machine TUI debugger",
        prog="python -m funge.debugger",
    )
    parser.add_argument("file", help="Path to the program source")
    parser.add_argument("--run", action="store_true",
                        help="Start playing immediately")
    parser.add_argument("--fps", type=float, default=20.0,
                        help="Ticks per second while playing")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the '?' random direction source")
    parser.add_argument("-n", "--limit", type=int, default=FOREVER,
                        help="Stop after N ticks (0 = no limit)")
    parser.add_argument("--input", default=None, metavar="FILE",
                        help=INPUT_HELP)
    args = parser.parse_args()

    if args.fps <= 0:
        parser.error("--fps must be > 0")

    path = Path(args.file)
    try:
        code = load_file(path)
        runner = ProgramRunner(code, seed=args.seed,
                               stdin=debugger_input(args.input))
    except OSError as e:
        print(f"Error: cannot read {e.filename or path}: {e.strerror or e}",
              file=sys.stderr)
        sys.exit(1)
    except FungeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    app = FungeDebugger(runner, fps=args.fps, auto_run=args.run,
                        tick_limit=args.limit)
    app.run()


if __name__ == "__main__":
    main()
