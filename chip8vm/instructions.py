"""
Instruction decoding.

decode() turns a raw 16-bit word into an Instruction: an Op tag plus the
operand fields that opcode uses. Machine.step() then dispatches on the tag,
so mask/shift arithmetic lives only here.
"""

from enum import Enum
from typing import NamedTuple, Optional


class Op(Enum):
    """The 35 base CHIP-8 operations"""
    SYS = "0NNN"
    CLS = "00E0"
    RET = "00EE"
    JP = "1NNN"
    CALL = "2NNN"
    SE_BYTE = "3XNN"
    SNE_BYTE = "4XNN"
    SE_REG = "5XY0"
    LD_BYTE = "6XNN"
    ADD_BYTE = "7XNN"
    LD_REG = "8XY0"
    OR = "8XY1"
    AND = "8XY2"
    XOR = "8XY3"
    ADD_REG = "8XY4"
    SUB = "8XY5"
    SHR = "8XY6"
    SUBN = "8XY7"
    SHL = "8XYE"
    SNE_REG = "9XY0"
    LD_I = "ANNN"
    JP_V0 = "BNNN"
    RND = "CXNN"
    DRW = "DXYN"
    SKP = "EX9E"
    SKNP = "EXA1"
    LD_VX_DT = "FX07"
    LD_VX_K = "FX0A"
    LD_DT_VX = "FX15"
    LD_ST_VX = "FX18"
    ADD_I_VX = "FX1E"
    LD_F_VX = "FX29"
    LD_B_VX = "FX33"
    LD_I_VX = "FX55"
    LD_VX_I = "FX65"


class Instruction(NamedTuple):
    """A decoded instruction word"""
    op: Op
    word: int
    x: int = 0       # Register X index
    y: int = 0       # Register Y index
    n: int = 0       # 4-bit constant
    kk: int = 0      # 8-bit constant
    nnn: int = 0     # 12-bit address

    def __str__(self) -> str:
        return f"{self.word:04X} {self.op.name}"


# Sub-opcode tables for the multi-way classes
_ALU_OPS = {
    0x0: Op.LD_REG,
    0x1: Op.OR,
    0x2: Op.AND,
    0x3: Op.XOR,
    0x4: Op.ADD_REG,
    0x5: Op.SUB,
    0x6: Op.SHR,
    0x7: Op.SUBN,
    0xE: Op.SHL,
}

_KEY_OPS = {
    0x9E: Op.SKP,
    0xA1: Op.SKNP,
}

_MISC_OPS = {
    0x07: Op.LD_VX_DT,
    0x0A: Op.LD_VX_K,
    0x15: Op.LD_DT_VX,
    0x18: Op.LD_ST_VX,
    0x1E: Op.ADD_I_VX,
    0x29: Op.LD_F_VX,
    0x33: Op.LD_B_VX,
    0x55: Op.LD_I_VX,
    0x65: Op.LD_VX_I,
}

# Classes fully identified by their first nibble
_SIMPLE_OPS = {
    0x1: Op.JP,
    0x2: Op.CALL,
    0x3: Op.SE_BYTE,
    0x4: Op.SNE_BYTE,
    0x6: Op.LD_BYTE,
    0x7: Op.ADD_BYTE,
    0xA: Op.LD_I,
    0xB: Op.JP_V0,
    0xC: Op.RND,
    0xD: Op.DRW,
}


def _classify(word: int) -> Optional[Op]:
    first = word >> 12
    n = word & 0x000F
    nn = word & 0x00FF

    if first == 0x0:
        if word == 0x00E0:
            return Op.CLS
        if word == 0x00EE:
            return Op.RET
        # 0000 is zeroed memory, not a machine-code call
        return Op.SYS if word != 0x0000 else None
    if first in _SIMPLE_OPS:
        return _SIMPLE_OPS[first]
    if first == 0x5:
        return Op.SE_REG if n == 0 else None
    if first == 0x9:
        return Op.SNE_REG if n == 0 else None
    if first == 0x8:
        return _ALU_OPS.get(n)
    if first == 0xE:
        return _KEY_OPS.get(nn)
    # first == 0xF
    return _MISC_OPS.get(nn)


def decode(word: int) -> Optional[Instruction]:
    """
    Decode a 16-bit instruction word.

    Returns None when the word matches no known opcode; the caller decides
    how to report it.
    """
    word &= 0xFFFF
    op = _classify(word)
    if op is None:
        return None
    return Instruction(
        op=op,
        word=word,
        x=(word >> 8) & 0x0F,
        y=(word >> 4) & 0x0F,
        n=word & 0x000F,
        kk=word & 0x00FF,
        nnn=word & 0x0FFF,
    )
