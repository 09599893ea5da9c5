"""
Data stack for the funge machine.

LIFO of unsigned machine words. Underflow is absorbed: popping an empty
stack yields 0. Values are masked to WORD_BITS on push, the way a hardware
register of that width would hold them.
"""

from __future__ import annotations

from typing import Callable


WORD_BITS = 64
WORD_MASK = (1 << WORD_BITS) - 1


# ---------------------------------------------------------------------------
# Operators: arguments arrive in push order, so for a binary operator the
# first argument was popped second (lhs) and the second was popped first (rhs)
# ---------------------------------------------------------------------------

def op_add(a: int, b: int) -> int:
    return a + b


def op_sub(a: int, b: int) -> int:
    return a - b


def op_mul(a: int, b: int) -> int:
    return a * b


def op_div(a: int, b: int) -> int:
    # division by zero is guarded: result 0, execution continues
    return a // b if b else 0


def op_mod(a: int, b: int) -> int:
    return a % b if b else 0


def op_gt(a: int, b: int) -> int:
    return 1 if a > b else 0


def op_not(a: int) -> int:
    return 1 if a == 0 else 0


class Stack:
    """Unsigned word stack."""

    def __init__(self, items: list[int] | None = None):
        self.data: list[int] = [v & WORD_MASK for v in items or ()]
        self.peak = len(self.data)

    def push(self, val: int):
        self.data.append(val & WORD_MASK)
        if len(self.data) > self.peak:
            self.peak = len(self.data)

    def pop(self) -> int:
        return self.data.pop() if self.data else 0

    def peek(self) -> int:
        return self.data[-1] if self.data else 0

    def duplicate(self):
        item = self.pop()
        self.push(item)
        self.push(item)

    def swap(self):
        first = self.pop()
        second = self.pop()
        self.push(first)
        self.push(second)

    def apply(self, op: Callable[..., int], arity: int):
        """Pop `arity` values, push op(*args) with args in push order."""
        args = [self.pop() for _ in range(arity)]
        args.reverse()
        self.push(op(*args))

    def items(self) -> tuple[int, ...]:
        """Bottom-to-top snapshot."""
        return tuple(self.data)

    def copy(self) -> Stack:
        return Stack(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"Stack({self.data!r})"
