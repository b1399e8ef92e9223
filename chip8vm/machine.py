"""
CHIP-8 interpreter core.

Machine owns memory, registers, stack, timers, framebuffer and keypad, and
executes one instruction per step(). It performs no I/O: a driver feeds it
key state, reads the framebuffer and reacts to tone_requested.
"""

import logging
import random
from typing import List, Optional

from .config import MachineConfig, TimerMode
from .constants import (
    ADDRESS_MASK, DISPLAY_HEIGHT, DISPLAY_WIDTH, FLAG_REGISTER, FONT_4X5,
    FONT_START, GLYPH_SIZE, MEMORY_SIZE, NUM_KEYS, NUM_REGISTERS,
    PROGRAM_CAPACITY, PROGRAM_START, SPRITE_WIDTH, STACK_SIZE,
)
from .errors import CapacityExceeded, DecodeFailure, StackOverflow, StackUnderflow
from .instructions import Instruction, Op, decode
from .state import MachineState

logger = logging.getLogger(__name__)


class Machine:
    """CHIP-8 CPU core with all 35 base opcodes"""

    def __init__(self, config: MachineConfig = None, rng: Optional[random.Random] = None):
        self.config = config or MachineConfig()
        self.rng = rng or random.Random()
        self.reset()

    def reset(self):
        """Reset to initial power-on state"""
        # Main memory (4KB), font at 0x000
        self.memory = bytearray(MEMORY_SIZE)
        self.memory[FONT_START:FONT_START + len(FONT_4X5)] = FONT_4X5

        # 16 general-purpose 8-bit registers V0-VF
        self.v: List[int] = [0] * NUM_REGISTERS

        # 16-bit index register and program counter
        self.i = 0
        self.pc = PROGRAM_START

        # Stack (16 levels of 16-bit addresses)
        self.stack: List[int] = [0] * STACK_SIZE
        self.sp = 0

        self.delay_timer = 0
        self.sound_timer = 0

        # 64x32 framebuffer, row-major, one byte (0/1) per pixel
        self.framebuffer = bytearray(DISPLAY_WIDTH * DISPLAY_HEIGHT)

        self.keys: List[bool] = [False] * NUM_KEYS

        # Per-cycle outputs for the presentation layer
        self.tone_requested = False
        self.draw_flag = False
        self.waiting_for_key = False

        self.rom_name = ""
        self.rom_size = 0
        self.cycles = 0

    # ==================== LOADING & INPUT ====================

    def load_image(self, data: bytes):
        """Copy a program image to 0x200"""
        if len(data) > PROGRAM_CAPACITY:
            raise CapacityExceeded(len(data), PROGRAM_CAPACITY)
        self.memory[PROGRAM_START:PROGRAM_START + len(data)] = data
        self.rom_size = len(data)

    def load_hex(self, text: str):
        """Load a program written as a string of hex instruction words"""
        self.load_image(bytes.fromhex("".join(text.split())))

    def load_rom(self, data: bytes, name: str = ""):
        """Reset, then load ROM data into memory starting at 0x200"""
        if len(data) > PROGRAM_CAPACITY:
            raise CapacityExceeded(len(data), PROGRAM_CAPACITY)
        self.reset()
        self.load_image(data)
        self.rom_name = name or "Unknown"
        logger.info("Loaded ROM %s (%d bytes)", self.rom_name, len(data))

    def set_key(self, index: int, pressed: bool):
        """Update keypad state; indices outside 0-F are ignored"""
        if 0 <= index < NUM_KEYS:
            self.keys[index] = bool(pressed)

    # ==================== DISPLAY ACCESS ====================

    def pixel(self, x: int, y: int) -> int:
        return self.framebuffer[y * DISPLAY_WIDTH + x]

    def rows(self):
        """Yield the framebuffer one row at a time"""
        for y in range(DISPLAY_HEIGHT):
            start = y * DISPLAY_WIDTH
            yield self.framebuffer[start:start + DISPLAY_WIDTH]

    # ==================== EXECUTION ====================

    def fetch(self) -> int:
        """Read the big-endian instruction word at PC"""
        hi = self.memory[self.pc & ADDRESS_MASK]
        lo = self.memory[(self.pc + 1) & ADDRESS_MASK]
        return (hi << 8) | lo

    def step(self):
        """
        Execute one instruction cycle, then tick the timers (coupled mode).

        Raises DecodeFailure, StackOverflow or StackUnderflow without
        touching any state; what to do next is the caller's decision.
        """
        coupled = self.config.timer_mode is TimerMode.COUPLED
        if coupled:
            self.tone_requested = False

        word = self.fetch()
        instr = decode(word)
        if instr is None:
            raise DecodeFailure(word, self.pc)
        if self.config.trace:
            logger.debug("%04X: %s", self.pc, instr)

        self._execute(instr)
        self.cycles += 1

        if coupled:
            self.tick_timers()

    def tick_timers(self) -> bool:
        """
        Decrement delay and sound timers.

        Returns True (and sets tone_requested) when the sound timer
        reached zero on this tick.
        """
        self.tone_requested = False
        if self.delay_timer > 0:
            self.delay_timer -= 1
        if self.sound_timer > 0:
            self.sound_timer -= 1
            if self.sound_timer == 0:
                self.tone_requested = True
        return self.tone_requested

    def _execute(self, instr: Instruction):
        """Dispatch a decoded instruction"""
        op = instr.op
        x, y = instr.x, instr.y
        v = self.v

        if op is Op.CLS:
            self.framebuffer[:] = bytes(len(self.framebuffer))
            self.draw_flag = True
            self.pc += 2

        elif op is Op.RET:
            if self.sp == 0:
                raise StackUnderflow(instr.word, self.pc)
            self.sp -= 1
            self.pc = self.stack[self.sp] + 2

        elif op is Op.SYS:
            # Machine-code routines on the original host; ignored
            self.pc += 2

        elif op is Op.JP:
            self.pc = instr.nnn

        elif op is Op.CALL:
            if self.sp >= STACK_SIZE:
                raise StackOverflow(instr.word, self.pc)
            self.stack[self.sp] = self.pc
            self.sp += 1
            self.pc = instr.nnn

        elif op is Op.SE_BYTE:
            self.pc += 4 if v[x] == instr.kk else 2

        elif op is Op.SNE_BYTE:
            self.pc += 4 if v[x] != instr.kk else 2

        elif op is Op.SE_REG:
            self.pc += 4 if v[x] == v[y] else 2

        elif op is Op.SNE_REG:
            self.pc += 4 if v[x] != v[y] else 2

        elif op is Op.LD_BYTE:
            v[x] = instr.kk
            self.pc += 2

        elif op is Op.ADD_BYTE:
            # No carry flag
            v[x] = (v[x] + instr.kk) & 0xFF
            self.pc += 2

        elif op in (Op.LD_REG, Op.OR, Op.AND, Op.XOR, Op.ADD_REG,
                    Op.SUB, Op.SHR, Op.SUBN, Op.SHL):
            self._execute_alu(op, x, y)
            self.pc += 2

        elif op is Op.LD_I:
            self.i = instr.nnn
            self.pc += 2

        elif op is Op.JP_V0:
            self.pc = v[0] + instr.nnn

        elif op is Op.RND:
            v[x] = self.rng.randint(0, 255) & instr.kk
            self.pc += 2

        elif op is Op.DRW:
            self._draw(v[x], v[y], instr.n)
            self.pc += 2

        elif op is Op.SKP:
            self.pc += 4 if self.keys[v[x] & 0xF] else 2

        elif op is Op.SKNP:
            self.pc += 4 if not self.keys[v[x] & 0xF] else 2

        else:
            self._execute_misc(op, x)

    def _execute_alu(self, op: Op, x: int, y: int):
        """8XYN arithmetic/logic; VF is always written after Vx"""
        v = self.v
        a, b = v[x], v[y]

        if op is Op.LD_REG:
            v[x] = b
        elif op is Op.OR:
            v[x] = a | b
        elif op is Op.AND:
            v[x] = a & b
        elif op is Op.XOR:
            v[x] = a ^ b
        elif op is Op.ADD_REG:
            result = a + b
            v[x] = result & 0xFF
            v[FLAG_REGISTER] = 1 if result > 0xFF else 0
        elif op is Op.SUB:
            v[x] = (a - b) & 0xFF
            v[FLAG_REGISTER] = 1 if a >= b else 0
        elif op is Op.SUBN:
            v[x] = (b - a) & 0xFF
            v[FLAG_REGISTER] = 1 if b >= a else 0
        elif op is Op.SHR:
            v[x] = a >> 1
            v[FLAG_REGISTER] = a & 0x01
        elif op is Op.SHL:
            v[x] = (a << 1) & 0xFF
            v[FLAG_REGISTER] = (a >> 7) & 0x01

    def _execute_misc(self, op: Op, x: int):
        """FXNN timer, key-wait and index/memory operations"""
        v = self.v
        mem = self.memory

        if op is Op.LD_VX_DT:
            v[x] = self.delay_timer

        elif op is Op.LD_VX_K:
            # Busy-wait: PC stays put until some key is down
            pressed = next((k for k in range(NUM_KEYS) if self.keys[k]), None)
            if pressed is None:
                self.waiting_for_key = True
                return
            self.waiting_for_key = False
            v[x] = pressed

        elif op is Op.LD_DT_VX:
            self.delay_timer = v[x]

        elif op is Op.LD_ST_VX:
            self.sound_timer = v[x]

        elif op is Op.ADD_I_VX:
            self.i = (self.i + v[x]) & 0xFFFF

        elif op is Op.LD_F_VX:
            self.i = FONT_START + v[x] * GLYPH_SIZE

        elif op is Op.LD_B_VX:
            value = v[x]
            mem[self.i & ADDRESS_MASK] = value // 100
            mem[(self.i + 1) & ADDRESS_MASK] = (value // 10) % 10
            mem[(self.i + 2) & ADDRESS_MASK] = value % 10

        elif op is Op.LD_I_VX:
            for idx in range(x + 1):
                mem[(self.i + idx) & ADDRESS_MASK] = v[idx]
            self.i = (self.i + x + 1) & 0xFFFF

        elif op is Op.LD_VX_I:
            for idx in range(x + 1):
                v[idx] = mem[(self.i + idx) & ADDRESS_MASK]
            self.i = (self.i + x + 1) & 0xFFFF

        self.pc += 2

    def _draw(self, vx: int, vy: int, n: int):
        """
        DXYN: XOR an 8xN sprite from memory[I] onto the framebuffer.

        The origin wraps into the screen. Pixels running past the right or
        bottom edge wrap around, or are dropped when clip_sprites is set.
        VF = 1 if any lit pixel was turned off.
        """
        px = vx % DISPLAY_WIDTH
        py = vy % DISPLAY_HEIGHT
        clip = self.config.clip_sprites
        fb = self.framebuffer
        collision = 0

        for row in range(n):
            dy = py + row
            if dy >= DISPLAY_HEIGHT:
                if clip:
                    break
                dy %= DISPLAY_HEIGHT
            sprite_byte = self.memory[(self.i + row) & ADDRESS_MASK]

            for col in range(SPRITE_WIDTH):
                if not sprite_byte & (0x80 >> col):
                    continue
                dx = px + col
                if dx >= DISPLAY_WIDTH:
                    if clip:
                        break
                    dx %= DISPLAY_WIDTH
                offset = dy * DISPLAY_WIDTH + dx
                if fb[offset]:
                    collision = 1
                fb[offset] ^= 1

        self.v[FLAG_REGISTER] = collision
        self.draw_flag = True

    # ==================== STATE SAVE/LOAD ====================

    def get_state(self) -> MachineState:
        """Get complete interpreter state for saving"""
        return MachineState(
            memory=bytes(self.memory),
            v=list(self.v),
            i=self.i,
            pc=self.pc,
            stack=list(self.stack),
            sp=self.sp,
            delay_timer=self.delay_timer,
            sound_timer=self.sound_timer,
            framebuffer=bytes(self.framebuffer),
            keys=list(self.keys),
        )

    def load_state(self, state: MachineState):
        """Restore interpreter state from a snapshot"""
        self.memory = bytearray(state.memory)
        self.v = list(state.v)
        self.i = state.i
        self.pc = state.pc
        self.stack = list(state.stack)
        self.sp = state.sp
        self.delay_timer = state.delay_timer
        self.sound_timer = state.sound_timer
        self.framebuffer = bytearray(state.framebuffer)
        self.keys = list(state.keys)

        self.draw_flag = True
        self.tone_requested = False
        self.waiting_for_key = False

    def dump_state(self) -> str:
        """Human-readable register dump"""
        lines = [
            f"PC: ${self.pc:04X}  I: ${self.i:04X}  SP: {self.sp}",
            f"DT: {self.delay_timer:3d}  ST: {self.sound_timer:3d}",
            "Registers:",
        ]
        for base in range(0, NUM_REGISTERS, 4):
            regs = " ".join(f"V{j:X}=${self.v[j]:02X}" for j in range(base, base + 4))
            lines.append(f"  {regs}")
        lines.append(f"Waiting: {self.waiting_for_key}")
        return "\n".join(lines)
