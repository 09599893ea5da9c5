"""funge — a two-dimensional stack-language machine with a TUI debugger."""

from .machine import (
    FungeMachine, MachineState, Observer, FOREVER,
    FungeError, EmptyRun, SpaceWriteError, EmptyProgramError,
)
from .runner import ProgramRunner, load_file

__version__ = "0.1.0"
