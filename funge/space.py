"""
Program space for the funge machine.

A fixed-size toroidal grid of integer cells, one cell per source character,
plus the instruction pointer location and the four directions it can travel.
"""

from __future__ import annotations

from dataclasses import dataclass


BLANK = ord(" ")  # 32

# ---------------------------------------------------------------------------
# Directions: unit deltas in screen coordinates (y grows downward)
# ---------------------------------------------------------------------------

NORTH = 0
EAST  = 1
SOUTH = 2
WEST  = 3

DIRECTIONS = (NORTH, EAST, SOUTH, WEST)

DELTAS: dict[int, tuple[int, int]] = {
    NORTH: (0, -1),
    EAST:  (1, 0),
    SOUTH: (0, 1),
    WEST:  (-1, 0),
}

DIRECTION_NAMES = {NORTH: "North", EAST: "East", SOUTH: "South", WEST: "West"}
DIRECTION_ARROWS = {NORTH: "^", EAST: ">", SOUTH: "v", WEST: "<"}


class FungeError(Exception):
    """Base class for errors raised by the funge machine."""


class EmptyProgramError(FungeError, ValueError):
    """Source text with no rows or no columns."""


class SpaceWriteError(FungeError, IndexError):
    """A direct write landed outside the grid."""


# ---------------------------------------------------------------------------
# Location
# ---------------------------------------------------------------------------

@dataclass
class Location:
    x: int = 0
    y: int = 0

    def go(self, direction: int):
        dx, dy = DELTAS[direction]
        self.x += dx
        self.y += dy

    def constrain(self, width: int, height: int):
        """Wrap both coordinates back into [0,width) x [0,height)."""
        self.x = (self.x + width) % width
        self.y = (self.y + height) % height

    def copy(self) -> Location:
        return Location(self.x, self.y)

    def as_tuple(self) -> tuple[int, int]:
        return (self.x, self.y)


# ---------------------------------------------------------------------------
# Space
# ---------------------------------------------------------------------------

def split_source(text: str) -> list[str]:
    """Split source text into lines. A final newline does not add a row."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class Space:
    """Toroidal program grid. Reads wrap; writes index directly."""

    def __init__(self, points: list[list[int]]):
        if not points or not points[0]:
            raise EmptyProgramError("program space needs at least one cell")
        self.points = points

    @classmethod
    def from_source(cls, code: str) -> Space:
        lines = split_source(code)
        width = max((len(line) for line in lines), default=0)
        height = len(lines)

        points = [[BLANK] * width for _ in range(height)]
        for y, line in enumerate(lines):
            for x, ch in enumerate(line):
                points[y][x] = ord(ch)
        return cls(points)

    def dims(self) -> tuple[int, int]:
        return (len(self.points[0]), len(self.points))

    @property
    def width(self) -> int:
        return len(self.points[0])

    @property
    def height(self) -> int:
        return len(self.points)

    def get(self, at: Location) -> int:
        loc = at.copy()
        loc.constrain(*self.dims())
        return self.points[loc.y][loc.x]

    def set(self, value: int, at: Location):
        w, h = self.dims()
        if not (0 <= at.x < w and 0 <= at.y < h):
            raise SpaceWriteError(
                f"write to ({at.x}, {at.y}) outside {w}x{h} program space")
        self.points[at.y][at.x] = value

    def copy(self) -> Space:
        return Space([list(row) for row in self.points])

    def rows(self) -> tuple[tuple[int, ...], ...]:
        return tuple(tuple(row) for row in self.points)

    def render(self) -> str:
        """Grid as text; cells that are not printable show as '·'."""
        return "\n".join(
            "".join(cell_char(v) for v in row) for row in self.points)


def cell_char(value: int) -> str:
    if 32 <= value < 127:
        return chr(value)
    if value >= 160 and value <= 0x10FFFF and chr(value).isprintable():
        return chr(value)
    return "·"
