"""
runner — load funge programs from disk and run them headless.

Usage:
    python -m funge examples/hello.bf
    python -m funge examples/countdown.bf --limit 500 --stats
    python -m funge examples/coin.bf --debug --fps 30
"""

from __future__ import annotations

import argparse
import io
import random
import sys
from pathlib import Path
from typing import TextIO

from .machine import FungeMachine, MachineState, FungeError, EmptyRun, FOREVER


def load_file(path: str | Path) -> str:
    """Read program source. OSError propagates to the caller."""
    return Path(path).read_text(encoding="utf-8")


INPUT_HELP = ("File fed to '&' and '~' in the debugger "
              "(default: empty input, so '&' reads 0 and '~' reads EOF)")


def debugger_input(path: str | Path | None) -> io.StringIO:
    """Input stream for the TUI, which owns the terminal's real stdin."""
    if path is None:
        return io.StringIO("")
    return io.StringIO(load_file(path))


# ---------------------------------------------------------------------------
# ProgramRunner
# ---------------------------------------------------------------------------

class ProgramRunner:
    """Owns one machine plus the bookkeeping a front end needs.

    Output is captured into a buffer (and optionally echoed to `echo`) so
    the debugger can show it; `last_state` holds the most recent snapshot
    the machine published.
    """

    def __init__(self, code: str, seed: int | None = None,
                 stdin: TextIO | None = None, echo: TextIO | None = None):
        self.output = io.StringIO()
        self.machine = FungeMachine(
            code,
            rng=random.Random(seed),
            stdin=stdin,
            stdout=_Tee(self.output, echo) if echo is not None else self.output,
            observer=self,
        )
        self.last_state: MachineState = self.machine.get_state()
        self.counted_ticks = 0
        self.phase = "idle"  # "idle" | "running" | "done"
        self.error: Exception | None = None

    @classmethod
    def from_file(cls, path: str | Path, **kwargs) -> ProgramRunner:
        return cls(load_file(path), **kwargs)

    # Observer interface
    def on_tick(self, state: MachineState) -> None:
        self.last_state = state

    def output_text(self) -> str:
        return self.output.getvalue()

    @property
    def done(self) -> bool:
        return self.phase == "done"

    def step(self, count: int = 1) -> int:
        """Run up to `count` counted ticks; returns how many ran.

        Returns 0 once the program has stopped. Errors stop the runner and
        are re-raised to the caller.
        """
        if self.done:
            return 0
        self.phase = "running"
        ran = 0
        try:
            for _ in range(count):
                ran += self.machine.run_for(1)
        except EmptyRun:
            pass
        except FungeError as e:
            self.error = e
            self.phase = "done"
            raise
        finally:
            self.counted_ticks += ran
            self.last_state = self.machine.get_state()
        if self.machine.stopped:
            self.phase = "done"
        return ran

    def run(self, limit: int = FOREVER) -> int:
        """Run headless; `limit` counts ticks the way run_for does.

        No per-tick snapshots are taken. Counted ticks come from the
        machine's cycle counter, less the tick that stopped it.
        """
        if self.done:
            return 0
        self.phase = "running"
        start = self.machine.cycles
        self.machine.set_observer(None)
        try:
            self.machine.run_for(limit)
        except EmptyRun:
            pass
        except FungeError as e:
            self.error = e
            self.phase = "done"
            raise
        finally:
            self.machine.set_observer(self)
            ticks = self.machine.cycles - start
            if self.machine.stopped:
                ticks -= 1
            self.counted_ticks += ticks
            self.last_state = self.machine.get_state()
        if self.machine.stopped:
            self.phase = "done"
        return ticks


class _Tee:
    """Write-through to two text streams."""

    def __init__(self, primary: TextIO, secondary: TextIO):
        self.primary = primary
        self.secondary = secondary

    def write(self, text: str) -> int:
        self.secondary.write(text)
        return self.primary.write(text)

    def flush(self):
        self.primary.flush()
        self.secondary.flush()


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a funge program",
        prog="python -m funge",
    )
    parser.add_argument("file", help="Path to the program source")
    parser.add_argument("-n", "--limit", type=int, default=FOREVER,
                        help="Stop after N ticks (0 = run until '@')")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the '?' random direction source")
    parser.add_argument("--stats", action="store_true",
                        help="Print machine counters to stderr after the run")
    parser.add_argument("--debug", action="store_true",
                        help="Open the TUI debugger instead of running headless")
    parser.add_argument("--fps", type=float, default=20.0,
                        help="Debugger run speed in ticks per second")
    parser.add_argument("--input", default=None, metavar="FILE",
                        help=INPUT_HELP)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.limit < 0:
        parser.error("--limit must be >= 0")
    if args.fps <= 0:
        parser.error("--fps must be > 0")

    try:
        code = load_file(args.file)
        stdin = debugger_input(args.input) if args.debug else None
    except OSError as e:
        print(f"Error: cannot read {e.filename or args.file}: "
              f"{e.strerror or e}", file=sys.stderr)
        return 1

    if args.debug:
        from .debugger import FungeDebugger
        try:
            runner = ProgramRunner(code, seed=args.seed, stdin=stdin)
        except FungeError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        FungeDebugger(runner, fps=args.fps, tick_limit=args.limit).run()
        return 0

    try:
        runner = ProgramRunner(code, seed=args.seed, echo=sys.stdout)
        ticks = runner.run(args.limit)
    except FungeError as e:
        sys.stdout.flush()
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    sys.stdout.flush()
    if args.stats:
        print(f"\nTicks: {ticks}", file=sys.stderr)
        print(runner.machine.stats_summary(), file=sys.stderr, flush=True)
    return 0
