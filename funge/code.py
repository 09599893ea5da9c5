"""
Instruction decoder for the funge machine.

Turns a raw cell value plus the string-mode flag into an Instruction.
Decoding is a pure table lookup; nothing here touches machine state.
"""

from __future__ import annotations

from dataclasses import dataclass

from .space import NORTH, EAST, SOUTH, WEST


# ---------------------------------------------------------------------------
# Opcodes
# ---------------------------------------------------------------------------

OP_PUSH        = 0   # value = literal to push
OP_NOP         = 1
OP_STOP        = 2
OP_SKIP        = 3
OP_STRING_MODE = 4
OP_MOVE        = 5   # value = direction
OP_EAST_WEST   = 6
OP_NORTH_SOUTH = 7
OP_RANDOM      = 8
OP_DUPLICATE   = 9
OP_SWAP        = 10
OP_POP         = 11
OP_ADD         = 12
OP_SUB         = 13
OP_MUL         = 14
OP_DIV         = 15
OP_MOD         = 16
OP_GREATER     = 17
OP_NOT         = 18
OP_PRINT_INT   = 19
OP_PRINT_CHR   = 20
OP_READ_INT    = 21
OP_READ_CHR    = 22
OP_PUT         = 23
OP_GET         = 24

OP_NAMES = {
    OP_PUSH: "PUSH", OP_NOP: "NOP", OP_STOP: "STOP", OP_SKIP: "SKIP",
    OP_STRING_MODE: "STRING", OP_MOVE: "MOVE", OP_EAST_WEST: "IF_EW",
    OP_NORTH_SOUTH: "IF_NS", OP_RANDOM: "RANDOM", OP_DUPLICATE: "DUP",
    OP_SWAP: "SWAP", OP_POP: "POP", OP_ADD: "ADD", OP_SUB: "SUB",
    OP_MUL: "MUL", OP_DIV: "DIV", OP_MOD: "MOD", OP_GREATER: "GT",
    OP_NOT: "NOT", OP_PRINT_INT: "PRINT_INT", OP_PRINT_CHR: "PRINT_CHR",
    OP_READ_INT: "READ_INT", OP_READ_CHR: "READ_CHR", OP_PUT: "PUT",
    OP_GET: "GET",
}


@dataclass(frozen=True)
class Instruction:
    op: int
    value: int = 0

    def __str__(self) -> str:
        name = OP_NAMES.get(self.op, f"?{self.op}")
        if self.op in (OP_PUSH, OP_MOVE):
            return f"{name} {self.value}"
        return name


# ---------------------------------------------------------------------------
# Character table (string mode off)
# ---------------------------------------------------------------------------

INSTRUCTION_TABLE: dict[int, Instruction] = {
    ord(ch): ins for ch, ins in [
        (" ",  Instruction(OP_NOP)),
        ("@",  Instruction(OP_STOP)),
        ("#",  Instruction(OP_SKIP)),
        ('"',  Instruction(OP_STRING_MODE)),
        ("^",  Instruction(OP_MOVE, NORTH)),
        (">",  Instruction(OP_MOVE, EAST)),
        ("v",  Instruction(OP_MOVE, SOUTH)),
        ("<",  Instruction(OP_MOVE, WEST)),
        ("_",  Instruction(OP_EAST_WEST)),
        ("|",  Instruction(OP_NORTH_SOUTH)),
        ("?",  Instruction(OP_RANDOM)),
        (":",  Instruction(OP_DUPLICATE)),
        ("\\", Instruction(OP_SWAP)),
        ("$",  Instruction(OP_POP)),
        ("+",  Instruction(OP_ADD)),
        ("-",  Instruction(OP_SUB)),
        ("*",  Instruction(OP_MUL)),
        ("/",  Instruction(OP_DIV)),
        ("%",  Instruction(OP_MOD)),
        ("`",  Instruction(OP_GREATER)),
        ("!",  Instruction(OP_NOT)),
        (".",  Instruction(OP_PRINT_INT)),
        (",",  Instruction(OP_PRINT_CHR)),
        ("&",  Instruction(OP_READ_INT)),
        ("~",  Instruction(OP_READ_CHR)),
        ("p",  Instruction(OP_PUT)),
        ("g",  Instruction(OP_GET)),
    ]
}

INSTRUCTION_TABLE.update(
    {ord("0") + d: Instruction(OP_PUSH, d) for d in range(10)})

_QUOTE = ord('"')


def decode(raw: int, string_mode: bool) -> Instruction:
    """Decode one cell. Unrecognized values push themselves."""
    if string_mode:
        if raw == _QUOTE:
            return INSTRUCTION_TABLE[_QUOTE]
        return Instruction(OP_PUSH, raw)

    ins = INSTRUCTION_TABLE.get(raw)
    if ins is None:
        return Instruction(OP_PUSH, raw)
    return ins
