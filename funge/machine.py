"""
Funge machine — executor and step scheduler for the 2D stack language.

Each tick reads the cell under the instruction pointer, decodes it,
applies the instruction to the stack / space / pointer, and advances the
pointer one cell (toroidally) unless the program halted.
"""

from __future__ import annotations

import random
import sys
from dataclasses import dataclass
from typing import Protocol, TextIO

from .code import (
    decode, Instruction,
    OP_PUSH, OP_NOP, OP_STOP, OP_SKIP, OP_STRING_MODE, OP_MOVE,
    OP_EAST_WEST, OP_NORTH_SOUTH, OP_RANDOM, OP_DUPLICATE, OP_SWAP, OP_POP,
    OP_ADD, OP_SUB, OP_MUL, OP_DIV, OP_MOD, OP_GREATER, OP_NOT,
    OP_PRINT_INT, OP_PRINT_CHR, OP_READ_INT, OP_READ_CHR, OP_PUT, OP_GET,
)
from .space import (
    Space, Location, FungeError, SpaceWriteError, EmptyProgramError,
    NORTH, EAST, SOUTH, WEST, DIRECTIONS,
)
from .stack import (
    Stack, WORD_MASK,
    op_add, op_sub, op_mul, op_div, op_mod, op_gt, op_not,
)

__all__ = [
    "FungeMachine", "MachineState", "Observer",
    "FungeError", "EmptyRun", "SpaceWriteError", "EmptyProgramError",
    "FOREVER",
]

FOREVER = 0  # run_for limit meaning "until the program stops"

BINARY_OPS = {
    OP_ADD: op_add,
    OP_SUB: op_sub,
    OP_MUL: op_mul,
    OP_DIV: op_div,
    OP_MOD: op_mod,
    OP_GREATER: op_gt,
}


class EmptyRun(FungeError):
    """run_for() finished without a single counted tick."""


@dataclass(frozen=True)
class MachineState:
    """Immutable snapshot handed to observers after each counted tick."""
    width: int
    height: int
    cells: tuple[tuple[int, ...], ...]
    stack: tuple[int, ...]
    location: tuple[int, int]
    delta: int
    string_mode: bool = False
    stopped: bool = False
    ticks: int = 0


class Observer(Protocol):
    def on_tick(self, state: MachineState) -> None: ...


# ---------------------------------------------------------------------------
# Machine
# ---------------------------------------------------------------------------

class FungeMachine:
    """Single-pointer, single-stack funge interpreter.

    Args:
        code: Program source text.
        rng: Random source for '?'. Anything with a ``choice`` method;
            defaults to a fresh ``random.Random()``.
        stdin: Text stream read by '&' and '~'. Defaults to ``sys.stdin``.
        stdout: Text stream written by '.' and ','. Defaults to ``sys.stdout``.
        observer: Receives a MachineState after every counted tick.
    """

    FOREVER = FOREVER

    def __init__(self, code: str,
                 rng: random.Random | None = None,
                 stdin: TextIO | None = None,
                 stdout: TextIO | None = None,
                 observer: Observer | None = None):
        self.space = Space.from_source(code)
        self.stack = Stack()
        self.location = Location(0, 0)
        self.delta = EAST
        self.string_mode = False
        self.stopped = False

        self.rng = rng if rng is not None else random.Random()
        self.stdin = stdin
        self.stdout = stdout
        self.observer = observer

        # --- Counters ---
        self.cycles = 0
        self.pushes = 0
        self.space_writes = 0
        self.io_ops = 0

    # -------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------

    def set_observer(self, observer: Observer | None):
        self.observer = observer

    def current_cell(self) -> int:
        return self.space.get(self.location)

    def current_instruction(self) -> Instruction:
        return decode(self.current_cell(), self.string_mode)

    def get_state(self) -> MachineState:
        w, h = self.space.dims()
        return MachineState(
            width=w,
            height=h,
            cells=self.space.rows(),
            stack=self.stack.items(),
            location=self.location.as_tuple(),
            delta=self.delta,
            string_mode=self.string_mode,
            stopped=self.stopped,
            ticks=self.cycles,
        )

    # -------------------------------------------------------------------
    # Scheduler
    # -------------------------------------------------------------------

    def next_location(self):
        self.location.go(self.delta)
        self.location.constrain(*self.space.dims())

    def tick(self) -> bool:
        """Execute one instruction. Returns True once the machine is stopped."""
        if self.stopped:
            return True

        self.cycles += 1
        self.consume(self.current_instruction())

        if not self.stopped:
            self.next_location()
        return self.stopped

    def run_for(self, tick_limit: int = FOREVER) -> int:
        """Run up to `tick_limit` non-halting ticks (FOREVER = no limit).

        The tick that stops the machine runs but is neither counted nor
        observed. Raises EmptyRun when no tick was counted.
        """
        ticks = 0
        while not self.tick():
            if self.observer is not None:
                self.observer.on_tick(self.get_state())
            ticks += 1
            if tick_limit != FOREVER and ticks >= tick_limit:
                break

        if ticks == 0:
            raise EmptyRun("machine stopped before completing a tick")
        return ticks

    # -------------------------------------------------------------------
    # Executor
    # -------------------------------------------------------------------

    def _push(self, val: int):
        self.pushes += 1
        self.stack.push(val)

    def consume(self, ins: Instruction):
        op = ins.op

        if op == OP_PUSH:
            self._push(ins.value)

        elif op == OP_NOP:
            pass

        elif op == OP_STOP:
            self.stopped = True

        elif op == OP_SKIP:
            # extra step; the scheduler's advance wraps both
            self.location.go(self.delta)

        elif op == OP_STRING_MODE:
            self.string_mode = not self.string_mode

        elif op == OP_MOVE:
            self.delta = ins.value

        elif op == OP_EAST_WEST:
            self.delta = EAST if self.stack.pop() == 0 else WEST

        elif op == OP_NORTH_SOUTH:
            self.delta = NORTH if self.stack.pop() == 0 else SOUTH

        elif op == OP_RANDOM:
            self.delta = self.rng.choice(DIRECTIONS)

        elif op == OP_DUPLICATE:
            self.stack.duplicate()

        elif op == OP_SWAP:
            self.stack.swap()

        elif op == OP_POP:
            self.stack.pop()

        elif op in BINARY_OPS:
            self.stack.apply(BINARY_OPS[op], 2)

        elif op == OP_NOT:
            self.stack.apply(op_not, 1)

        elif op == OP_PRINT_INT:
            self._write(str(self.stack.pop()))

        elif op == OP_PRINT_CHR:
            self._write(chr(self.stack.pop() & 0xFF))

        elif op == OP_READ_INT:
            self._push(self._read_digit())

        elif op == OP_READ_CHR:
            self._push(self._read_char())

        elif op == OP_PUT:
            y, x, v = self.stack.pop(), self.stack.pop(), self.stack.pop()
            try:
                self.space.set(v, Location(x, y))
            except SpaceWriteError:
                self.stopped = True
                raise
            self.space_writes += 1

        elif op == OP_GET:
            y, x = self.stack.pop(), self.stack.pop()
            self._push(self.space.get(Location(x, y)))

        else:
            raise FungeError(f"unknown opcode {op}")

    # -------------------------------------------------------------------
    # IO
    # -------------------------------------------------------------------

    def _out(self) -> TextIO:
        return self.stdout if self.stdout is not None else sys.stdout

    def _in(self) -> TextIO:
        return self.stdin if self.stdin is not None else sys.stdin

    def _write(self, text: str):
        self.io_ops += 1
        out = self._out()
        out.write(text)
        out.flush()

    def _read_digit(self) -> int:
        """Read all remaining input; its last character as a digit in [0, 9]."""
        self.io_ops += 1
        buf = self._in().read()
        if not buf:
            return 0
        return min(max(ord(buf[-1]) - ord("0"), 0), 9)

    def _read_char(self) -> int:
        """Read one character; end of input reads as -1 (all ones)."""
        self.io_ops += 1
        ch = self._in().read(1)
        if not ch:
            return WORD_MASK
        return ord(ch)

    # -------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------

    def reset_counters(self):
        self.cycles = 0
        self.pushes = 0
        self.space_writes = 0
        self.io_ops = 0
        self.stack.peak = len(self.stack)

    def stats(self) -> dict:
        w, h = self.space.dims()
        return {
            "cycles": self.cycles,
            "pushes": self.pushes,
            "space_writes": self.space_writes,
            "io_ops": self.io_ops,
            "stack_depth": len(self.stack),
            "stack_peak": self.stack.peak,
            "space": f"{w}x{h}",
        }

    def stats_summary(self) -> str:
        s = self.stats()
        return (
            f"Cycles: {s['cycles']}\n"
            f"Pushes: {s['pushes']}\n"
            f"Space: {s['space']} ({s['space_writes']} writes)\n"
            f"IO: {s['io_ops']} operations\n"
            f"Stack: {s['stack_depth']} deep (peak {s['stack_peak']})"
        )
