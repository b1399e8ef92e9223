"""
CHIP-8 virtual machine.

The interpreter core (Machine) has no I/O; Emulator adds frame pacing and
thread-safe access, and chip8vm.gui provides a Tkinter window.
"""

from .config import FaultPolicy, MachineConfig, TimerMode
from .emulator import Emulator
from .errors import (
    CapacityExceeded, Chip8Error, DecodeFailure, ExecutionFault,
    StackOverflow, StackUnderflow,
)
from .instructions import Instruction, Op, decode
from .machine import Machine
from .state import MachineState, load_state_file, save_state

__version__ = "1.0.0"

__all__ = [
    "CapacityExceeded",
    "Chip8Error",
    "DecodeFailure",
    "Emulator",
    "ExecutionFault",
    "FaultPolicy",
    "Instruction",
    "Machine",
    "MachineConfig",
    "MachineState",
    "Op",
    "StackOverflow",
    "StackUnderflow",
    "TimerMode",
    "decode",
    "load_state_file",
    "save_state",
]
