"""Exceptions raised by the interpreter."""


class Chip8Error(Exception):
    """Base class for all interpreter errors"""


class CapacityExceeded(Chip8Error):
    """Program image does not fit between 0x200 and the top of memory"""

    def __init__(self, size: int, capacity: int):
        super().__init__(f"ROM too large: {size} bytes (max {capacity})")
        self.size = size
        self.capacity = capacity


class ExecutionFault(Chip8Error):
    """
    An instruction could not be executed.

    Raised from Machine.step() before any state is modified, so the
    program counter still points at the offending word.
    """

    reason = "execution fault"

    def __init__(self, word: int, pc: int):
        super().__init__(f"{self.reason}: 0x{word:04X} at PC 0x{pc:04X}")
        self.word = word
        self.pc = pc


class DecodeFailure(ExecutionFault):
    """Fetched word matches no known opcode"""

    reason = "unknown instruction"


class StackOverflow(ExecutionFault):
    """CALL with all 16 stack slots in use"""

    reason = "stack overflow"


class StackUnderflow(ExecutionFault):
    """RET with an empty stack"""

    reason = "stack underflow"
