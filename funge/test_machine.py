"""
Verification suite for the funge machine: executor semantics and the
tick / run_for scheduler.
"""

from __future__ import annotations

import dataclasses
import io
import random

import pytest

from funge.machine import (
    FungeMachine, MachineState, EmptyRun, SpaceWriteError, FOREVER,
)
from funge.space import NORTH, EAST, SOUTH, WEST, BLANK
from funge.stack import WORD_MASK


def run(code: str, stdin: str = "", limit: int = FOREVER, **kwargs):
    """Run a program to completion, return (machine, output, counted ticks)."""
    out = io.StringIO()
    m = FungeMachine(code, stdin=io.StringIO(stdin), stdout=out, **kwargs)
    try:
        ticks = m.run_for(limit)
    except EmptyRun:
        ticks = 0
    return m, out.getvalue(), ticks


class Recorder:
    def __init__(self):
        self.states: list[MachineState] = []

    def on_tick(self, state: MachineState) -> None:
        self.states.append(state)


class FixedChoice:
    """Stand-in random source that always picks the same direction."""

    def __init__(self, direction: int):
        self.direction = direction
        self.calls = 0

    def choice(self, seq):
        self.calls += 1
        assert self.direction in seq
        return self.direction


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

def test_add_and_print():
    m, out, ticks = run("94+.@")
    assert out == "13"
    assert ticks == 4
    assert m.stopped
    assert m.cycles == 5
    # halting tick leaves the pointer on '@'
    assert m.location.as_tuple() == (4, 0)


def test_halt_on_first_instruction_is_empty_run():
    m = FungeMachine("@", stdout=io.StringIO())
    with pytest.raises(EmptyRun):
        m.run_for(FOREVER)
    assert m.stopped


def test_stopped_machine_is_inert():
    m, _, _ = run("1@")
    cycles = m.cycles
    assert m.tick() is True
    assert m.cycles == cycles
    with pytest.raises(EmptyRun):
        m.run_for(10)


def test_tick_reports_stop():
    m = FungeMachine("1@", stdout=io.StringIO())
    assert m.tick() is False
    assert m.tick() is True
    assert m.stack.items() == (1,)


def test_run_for_limit_on_endless_loop():
    m = FungeMachine(">1$<", stdout=io.StringIO())
    assert m.run_for(7) == 7
    assert m.cycles == 7
    assert not m.stopped
    assert m.run_for(3) == 3


def test_observer_sees_counted_ticks_only():
    rec = Recorder()
    m = FungeMachine("94+.@", stdout=io.StringIO(), observer=rec)
    assert m.run_for(FOREVER) == 4
    assert len(rec.states) == 4
    assert [s.stack for s in rec.states] == [(9,), (9, 4), (13,), ()]
    assert [s.location for s in rec.states] == [(1, 0), (2, 0), (3, 0), (4, 0)]
    assert all(s.delta == EAST for s in rec.states)
    assert not any(s.stopped for s in rec.states)


def test_snapshot_is_immutable_copy():
    rec = Recorder()
    m = FungeMachine("5@", stdout=io.StringIO(), observer=rec)
    m.run_for(FOREVER)
    state = rec.states[0]
    with pytest.raises(dataclasses.FrozenInstanceError):
        state.delta = NORTH
    assert isinstance(state.cells, tuple) and isinstance(state.cells[0], tuple)
    m.stack.push(42)
    assert state.stack == (5,)
    assert (state.width, state.height) == (2, 1)


def test_run_for_one_repeatedly():
    m = FungeMachine("12+.@", stdout=io.StringIO())
    counted = 0
    while True:
        try:
            counted += m.run_for(1)
        except EmptyRun:
            break
    assert counted == 4
    assert m.stopped


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

def test_operand_order():
    assert run("92-.@")[1] == "7"
    assert run("82/.@")[1] == "4"
    assert run("73%.@")[1] == "1"
    assert run("52`.@")[1] == "1"
    assert run("25`.@")[1] == "0"
    assert run("34*.@")[1] == "12"


def test_subtraction_wraps_unsigned():
    assert run("35-.@")[1] == str(WORD_MASK - 1)


def test_division_by_zero_guarded():
    m, out, _ = run("50/.50%.@")
    assert out == "00"
    assert m.stopped


def test_not_and_pop():
    assert run("0!.5!.@")[1] == "10"
    assert run("12$.@")[1] == "1"
    assert run(".@")[1] == "0"


def test_duplicate_and_swap():
    assert run("7:..@")[1] == "77"
    assert run("12\\..@")[1] == "12"


def test_string_mode_and_print_char():
    m, out, _ = run('"olleh",,,,,@')
    assert out == "hello"


def test_print_char_uses_low_byte():
    # 'A' + 256
    assert run('"A"88*4*+,@')[1] == "A"


def test_bridge_skips_next_cell():
    assert run("#1.@")[1] == "0"
    assert run("1#2.@")[1] == "1"


def test_bridge_wraps_at_edge():
    # '#' in the last column jumps over column 0 onto column 1
    m, out, _ = run("   v \n7.@5#")
    assert out == "5"
    assert m.location.as_tuple() == (2, 1)


def test_arrows_and_wraparound():
    program = (
        "v  \n"
        "   \n"
        ">3.@"
    )
    m, out, _ = run(program)
    assert out == "3"
    # heading west from (0,0) wraps to the last column
    assert run("<@.5")[1] == "5"
    # heading north from row 0 wraps to the last row
    assert run("^\n@\n.\n7")[1] == "7"


def test_horizontal_if():
    # 0 -> east, nonzero -> west
    assert run('0_"1".@')[1] == str(ord("1"))
    m, _, _ = run("v\n1\n_@")
    assert m.delta == WEST


def test_vertical_if():
    # 0 -> north, nonzero -> south
    m, _, _ = run("0|\n @\n @")
    assert m.delta == NORTH
    assert m.location.as_tuple() == (1, 2)

    m, _, _ = run("1|\n @\n @")
    assert m.delta == SOUTH
    assert m.location.as_tuple() == (1, 1)


def test_random_direction_uses_injected_source():
    rng = FixedChoice(SOUTH)
    m, out, _ = run("?\n4\n.\n@", rng=rng)
    assert out == "4"
    assert rng.calls == 1


def test_random_direction_covers_all_four():
    rng = random.Random(1234)
    seen = set()
    for _ in range(200):
        m = FungeMachine("?", rng=rng, stdout=io.StringIO())
        m.tick()
        seen.add(m.delta)
    assert seen == {NORTH, EAST, SOUTH, WEST}


def test_get_reads_normalized():
    # g with (x=5, y=0) on a 5-wide row wraps to column 0
    assert run("50g.@")[1] == str(ord("5"))
    assert run("10g,@")[1] == "0"


def test_put_writes_cell():
    # write '@' (64) at (8,0) so the program stops there
    m, out, _ = run('88*80p1. 2.')
    assert out == "1"
    assert m.space.points[0][8] == ord("@")
    assert m.space_writes == 1


def test_put_out_of_bounds_is_fatal():
    m = FungeMachine("950p", stdout=io.StringIO())
    with pytest.raises(SpaceWriteError):
        m.run_for(FOREVER)
    assert m.stopped
    with pytest.raises(EmptyRun):
        m.run_for(FOREVER)


def test_read_int_uses_last_character():
    assert run("&.@", stdin="17")[1] == "7"
    assert run("&.@", stdin="")[1] == "0"
    # clamped into [0, 9]
    assert run("&.@", stdin="z")[1] == "9"
    assert run("&.@", stdin="5\n")[1] == "0"


def test_read_char():
    m, out, _ = run("~.~.~.@", stdin="AB")
    assert out == f"{ord('A')}{ord('B')}{WORD_MASK}"


def test_unrecognized_cells_push_raw_value():
    assert run("A.@")[1] == str(ord("A"))


def test_blank_cells_are_noops():
    m, out, _ = run("1   .@")
    assert out == "1"
    assert m.space.get(m.location) == ord("@")
    assert BLANK == ord(" ")


def test_default_streams(capsys):
    m = FungeMachine("9.@")
    m.run_for(FOREVER)
    assert capsys.readouterr().out == "9"


def test_stats():
    m, _, _ = run("94+.@")
    s = m.stats()
    assert s["cycles"] == 5
    assert s["io_ops"] == 1
    assert s["stack_peak"] == 2
    assert s["space"] == "5x1"
    assert "Cycles: 5" in m.stats_summary()
